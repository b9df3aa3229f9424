"""
End-to-End Commit Tests

These tests verify optimistic locking with real TransactWriteItems calls
against moto's DynamoDB.

Key testing scenarios:
1. Creates, updates and deletes with version bookkeeping
2. Concurrent writers: the loser gets OptimisticLockError and writes nothing
3. Key changes, attribute removal and custom version attributes
4. Multi-table commits
"""

import pytest

from optimistic_ddb import ItemNotFoundError, OptimisticLockError
from tests.helpers import (
    ResourceDeletedEvent,
    blog_posts_table,
    connections_table,
    fruit_table,
    resource_events_table,
    resources_table,
)


def stored(all_tables, table_name, key):
    return all_tables[table_name].get_item(Key=key, ConsistentRead=True).get('Item')


@pytest.mark.integration
class TestCommitLifecycle:
    """Create, update and delete through one client."""

    def test_create(self, client, all_tables):
        item = client.draft_item(resources_table, {"id": "a", "status": "available", "updatedAt": 1})

        client.commit_items([item])

        assert stored(all_tables, 'Resources', {'id': 'a'}) == {
            'id': 'a', 'status': 'available', 'updatedAt': 1, 'version': 0
        }
        assert client.get_item_version(item) == 0

    def test_versions_increase_by_one_per_commit(self, client, all_tables):
        item = client.draft_item(resources_table, {"id": "a", "status": "available", "updatedAt": 1})
        client.commit_items([item])

        for updated_at in range(2, 5):
            item.updatedAt = updated_at
            client.commit_items([item])

        assert client.get_item_version(item) == 3
        assert stored(all_tables, 'Resources', {'id': 'a'})['version'] == 3
        reread = client.get_item(resources_table, {"id": "a"})
        assert reread.updatedAt == 4
        assert client.get_item_version(reread) == 3

    def test_unchanged_item_still_bumps_version(self, client, all_tables):
        item = client.draft_item(resources_table, {"id": "a", "status": "available", "updatedAt": 1})
        client.commit_items([item])

        client.commit_items([item])

        assert stored(all_tables, 'Resources', {'id': 'a'})['version'] == 1

    def test_none_attribute_is_removed(self, client, all_tables):
        item = client.draft_item(resources_table, {"id": "a", "status": "busy", "updatedAt": 1, "ttl": 600})
        client.commit_items([item])

        item.ttl = None
        client.commit_items([item])

        assert 'ttl' not in stored(all_tables, 'Resources', {'id': 'a'})

    def test_delete(self, client, all_tables):
        item = client.draft_item(resources_table, {"id": "a", "status": "busy", "updatedAt": 1})
        client.commit_items([item])

        client.mark_item_for_deletion(item)
        client.commit_items([item])

        assert stored(all_tables, 'Resources', {'id': 'a'}) is None
        with pytest.raises(ItemNotFoundError):
            client.get_item(resources_table, {"id": "a"})

    def test_key_change(self, client, all_tables):
        item = client.draft_item(resources_table, {"id": "a", "status": "busy", "updatedAt": 1})
        client.commit_items([item])
        item.updatedAt = 2
        client.commit_items([item])

        item.id = "b"
        client.commit_items([item])

        assert stored(all_tables, 'Resources', {'id': 'a'}) is None
        assert stored(all_tables, 'Resources', {'id': 'b'})['version'] == 0
        assert client.get_item_version(item) == 0

    def test_custom_version_attribute(self, client, all_tables):
        fruit = client.draft_item(fruit_table, {"id": "f", "name": "pear", "ratio": 0.25})
        client.commit_items([fruit])
        fruit.ratio = 0.5
        client.commit_items([fruit])

        item = stored(all_tables, 'Fruit', {'id': 'f'})
        assert item['_version'] == 1
        assert 'version' not in item
        assert client.get_item(fruit_table, {"id": "f"}).ratio == 0.5

    def test_union_item_shape(self, client, all_tables):
        event = client.draft_item(
            resource_events_table, {"resourceId": "r", "timestamp": 1, "type": "deleted"}
        )
        client.commit_items([event])

        event.reason = "expired"
        client.commit_items([event])

        reread = client.get_item(resource_events_table, {"resourceId": "r", "timestamp": 1})
        assert isinstance(reread, ResourceDeletedEvent)
        assert reread.reason == "expired"
        assert client.get_item_version(reread) == 1

    def test_multi_table_commit(self, client, all_tables):
        resource = client.draft_item(resources_table, {"id": "r", "status": "busy", "updatedAt": 1})
        connection = client.draft_item(connections_table, {"id": "c", "resourceId": "r", "updatedAt": 1})

        client.commit_items([resource, connection])

        assert stored(all_tables, 'Resources', {'id': 'r'}) is not None
        assert stored(all_tables, 'Connections', {'id': 'c'}) is not None


@pytest.mark.integration
class TestOptimisticLocking:
    """Two clients racing on the same items."""

    def test_stale_update_fails(self, client, second_client, all_tables):
        all_tables['Resources'].put_item(Item={'id': 'a', 'status': 'available', 'updatedAt': 1, 'version': 0})
        mine = client.get_item(resources_table, {"id": "a"})
        theirs = second_client.get_item(resources_table, {"id": "a"})

        theirs.status = "busy"
        second_client.commit_items([theirs])
        mine.updatedAt = 99

        with pytest.raises(OptimisticLockError):
            client.commit_items([mine])

        assert stored(all_tables, 'Resources', {'id': 'a'}) == {
            'id': 'a', 'status': 'busy', 'updatedAt': 1, 'version': 1
        }
        assert client.get_item_version(mine) == 0

    def test_failed_transaction_writes_nothing(self, client, second_client, all_tables):
        all_tables['Resources'].put_item(Item={'id': 'a', 'status': 'available', 'updatedAt': 1, 'version': 0})
        resource = client.get_item(resources_table, {"id": "a"})
        connection = client.draft_item(connections_table, {"id": "c", "resourceId": "a", "updatedAt": 1})
        concurrent = second_client.get_item(resources_table, {"id": "a"})
        second_client.mark_item_for_deletion(concurrent)
        second_client.commit_items([concurrent])

        resource.status = "busy"
        with pytest.raises(OptimisticLockError):
            client.commit_items([resource, connection])

        assert stored(all_tables, 'Connections', {'id': 'c'}) is None

    def test_create_over_existing_item_fails(self, client, all_tables):
        all_tables['Resources'].put_item(Item={'id': 'a', 'status': 'available', 'updatedAt': 1, 'version': 4})
        item = client.draft_item(resources_table, {"id": "a", "status": "busy", "updatedAt": 2})

        with pytest.raises(OptimisticLockError):
            client.commit_items([item])

        assert stored(all_tables, 'Resources', {'id': 'a'})['version'] == 4

    def test_retry_after_rereading(self, client, second_client, all_tables):
        all_tables['Resources'].put_item(Item={'id': 'a', 'status': 'available', 'updatedAt': 1, 'version': 0})
        stale = client.get_item(resources_table, {"id": "a"})
        theirs = second_client.get_item(resources_table, {"id": "a"})
        theirs.updatedAt = 2
        second_client.commit_items([theirs])

        stale.status = "busy"
        with pytest.raises(OptimisticLockError):
            client.commit_items([stale])
        fresh = client.get_item(resources_table, {"id": "a"})
        fresh.status = "busy"
        client.commit_items([fresh])

        assert stored(all_tables, 'Resources', {'id': 'a'}) == {
            'id': 'a', 'status': 'busy', 'updatedAt': 2, 'version': 2
        }

    def test_lock_error_override(self, client, second_client, all_tables):
        all_tables['Resources'].put_item(Item={'id': 'a', 'status': 'available', 'updatedAt': 1, 'version': 0})
        mine = client.get_item(resources_table, {"id": "a"})
        theirs = second_client.get_item(resources_table, {"id": "a"})
        second_client.commit_items([theirs])

        class Conflict(Exception):
            pass

        with pytest.raises(Conflict):
            client.commit_items([mine], optimistic_lock_error_override=lambda e: Conflict(str(e)))


@pytest.mark.integration
class TestCommittedTypes:
    """Committed attributes are written with the types of the item shape."""

    def test_coerced_mutation_is_stored_as_declared_type(self, client, all_tables):
        post = client.draft_item(
            blog_posts_table, {"id": "p", "name": "Hello", "content": "First post", "numComments": 0}
        )
        client.commit_items([post])

        post.numComments = "1"
        client.commit_items([post])

        item = stored(all_tables, 'BlogPosts', {'id': 'p'})
        assert not isinstance(item['numComments'], str)
        assert item['numComments'] == 1
        assert item['version'] == 1

    def test_coerced_mutation_keeps_numeric_filters_working(self, client, all_tables):
        post = client.draft_item(
            blog_posts_table, {"id": "p", "name": "Hello", "content": "First post", "numComments": 0}
        )
        client.commit_items([post])
        post.numComments = "5"
        client.commit_items([post])

        items, _ = client.scan_items(blog_posts_table, filter_condition=("numComments", ">", 3))

        assert [item.id for item in items] == ["p"]
        assert items[0].numComments == 5
