#!/usr/bin/env python3
"""
Basic usage example for optimistic_ddb.

This example walks through a blog with posts and comments:
1. Setting up configuration and declaring tables
2. Drafting and committing new items
3. Reading, mutating and committing items atomically
4. Handling optimistic lock failures by re-reading and retrying
5. Paging through a query with resume keys

It expects the BlogPosts and Comments tables to exist (see TABLE_DEFINITIONS
in tests/helpers/tables.py for their create_table requests).
"""

from optimistic_ddb import (
    DynamoDBConfig,
    OptimisticDdbClient,
    OptimisticLockError,
    Table,
    TableItem,
)


class BlogPost(TableItem):
    id: str
    name: str
    content: str
    numComments: int


class Comment(TableItem):
    blogPostId: str
    id: str
    content: str


blog_posts = Table(table_name="BlogPosts", item_shape=BlogPost, partition_key="id")
comments = Table(table_name="Comments", item_shape=Comment, partition_key="blogPostId", sort_key="id")


def add_comment(client: OptimisticDdbClient, post_id: str, comment_id: str, content: str, attempts: int = 3):
    """Add a comment and bump the post's comment count in one transaction."""
    for attempt in range(1, attempts + 1):
        post = client.get_item(blog_posts, {"id": post_id})
        post.numComments += 1
        comment = client.draft_item(comments, {"blogPostId": post_id, "id": comment_id, "content": content})
        try:
            client.commit_items([post, comment])
            return comment
        except OptimisticLockError:
            print(f"Post {post_id} changed concurrently (attempt {attempt}), retrying...")
    raise RuntimeError(f"Could not add comment to {post_id} after {attempts} attempts")


def main():
    """Demonstrate basic usage of OptimisticDdbClient."""

    # 1. Configure DynamoDB connection
    print("1. Setting up DynamoDB configuration...")
    config = DynamoDBConfig.from_env()  # Uses environment variables

    # For local development, you might use:
    # config = DynamoDBConfig.for_local_development()

    client = OptimisticDdbClient(config)

    # 2. Create a post (no network call until commit)
    print("2. Creating blog post...")
    post = client.draft_item(blog_posts, {
        "id": "post-1",
        "name": "Hello",
        "content": "First post",
        "numComments": 0
    })
    client.commit_items([post])
    print(f"Created post {post.id} at version {client.get_item_version(post)}")

    # 3. Add comments, each committed together with the post
    print("3. Adding comments...")
    for i in range(3):
        add_comment(client, "post-1", f"comment-{i}", f"Comment number {i}")

    post = client.get_item(blog_posts, {"id": "post-1"})
    print(f"Post has {post.numComments} comments, version {client.get_item_version(post)}")

    # 4. Page through comments two at a time
    print("4. Listing comments...")
    resume_key = None
    while True:
        page, resume_key = client.query_items(
            comments, ("blogPostId", "=", "post-1"), limit=2, resume_key=resume_key
        )
        for comment in page:
            print(f"  {comment.id}: {comment.content}")
        if resume_key is None:
            break

    # 5. Delete a comment and decrement the count atomically
    print("5. Deleting a comment...")
    comment = client.get_item(comments, {"blogPostId": "post-1", "id": "comment-0"})
    client.mark_item_for_deletion(comment)
    post.numComments -= 1
    client.commit_items([post, comment])
    print(f"Post now has {post.numComments} comments")


if __name__ == "__main__":
    main()
