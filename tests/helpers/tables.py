"""
Item shapes, Table declarations and DynamoDB table definitions used across tests.

Each entry of TABLE_DEFINITIONS is the create_table request for one of the
declared tables, so fixtures can create exactly what the client expects.
"""

from typing import Literal, Optional, Union

from optimistic_ddb import SecondaryIndex, Table, TableItem


class Resource(TableItem):
    id: str
    status: Literal["available", "busy"]
    updatedAt: int
    ttl: Optional[int] = None


class Connection(TableItem):
    id: str
    resourceId: str
    updatedAt: int


class Livestream(TableItem):
    id: str
    category: str
    viewerCount: int
    title: str


class Fruit(TableItem):
    id: str
    name: str
    ratio: Optional[float] = None


class ResourceCreatedEvent(TableItem):
    resourceId: str
    timestamp: int
    type: Literal["created"]
    resourceName: str


class ResourceDeletedEvent(TableItem):
    resourceId: str
    timestamp: int
    type: Literal["deleted"]
    reason: Optional[str] = None


class BlogPost(TableItem):
    id: str
    name: str
    content: str
    numComments: int


class Comment(TableItem):
    blogPostId: str
    id: str
    content: str


resources_table = Table(table_name="Resources", item_shape=Resource, partition_key="id")

connections_table = Table(table_name="Connections", item_shape=Connection, partition_key="id")
connections_by_resource = SecondaryIndex(
    table=connections_table, index_name="resource-id", partition_key="resourceId"
)

livestreams_table = Table(table_name="Livestreams", item_shape=Livestream, partition_key="id")
livestreams_by_category = SecondaryIndex(
    table=livestreams_table, index_name="category-viewerCount", partition_key="category", sort_key="viewerCount"
)

fruit_table = Table(table_name="Fruit", item_shape=Fruit, partition_key="id", version_attribute="_version")

resource_events_table = Table(
    table_name="ResourceEvents",
    item_shape=Union[ResourceCreatedEvent, ResourceDeletedEvent],
    partition_key="resourceId",
    sort_key="timestamp",
)

blog_posts_table = Table(table_name="BlogPosts", item_shape=BlogPost, partition_key="id")
comments_table = Table(table_name="Comments", item_shape=Comment, partition_key="blogPostId", sort_key="id")


def _table_definition(table_name, key_schema, attribute_definitions, global_secondary_indexes=None):
    definition = {
        'TableName': table_name,
        'KeySchema': [
            {'AttributeName': name, 'KeyType': key_type} for name, key_type in key_schema
        ],
        'AttributeDefinitions': [
            {'AttributeName': name, 'AttributeType': attribute_type} for name, attribute_type in attribute_definitions
        ],
        'BillingMode': 'PAY_PER_REQUEST'
    }
    if global_secondary_indexes:
        definition['GlobalSecondaryIndexes'] = global_secondary_indexes
    return definition


TABLE_DEFINITIONS = [
    _table_definition("Resources", [("id", "HASH")], [("id", "S")]),
    _table_definition(
        "Connections",
        [("id", "HASH")],
        [("id", "S"), ("resourceId", "S")],
        [{
            'IndexName': 'resource-id',
            'KeySchema': [{'AttributeName': 'resourceId', 'KeyType': 'HASH'}],
            'Projection': {'ProjectionType': 'ALL'}
        }]
    ),
    _table_definition(
        "Livestreams",
        [("id", "HASH")],
        [("id", "S"), ("category", "S"), ("viewerCount", "N")],
        [{
            'IndexName': 'category-viewerCount',
            'KeySchema': [
                {'AttributeName': 'category', 'KeyType': 'HASH'},
                {'AttributeName': 'viewerCount', 'KeyType': 'RANGE'}
            ],
            'Projection': {'ProjectionType': 'KEYS_ONLY'}
        }]
    ),
    _table_definition("Fruit", [("id", "HASH")], [("id", "S")]),
    _table_definition(
        "ResourceEvents",
        [("resourceId", "HASH"), ("timestamp", "RANGE")],
        [("resourceId", "S"), ("timestamp", "N")]
    ),
    _table_definition("BlogPosts", [("id", "HASH")], [("id", "S")]),
    _table_definition("Comments", [("blogPostId", "HASH"), ("id", "RANGE")], [("blogPostId", "S"), ("id", "S")]),
]
