"""
Test helpers for optimistic_ddb.

This module provides the item shapes, Table declarations and DynamoDB table
definitions shared by the unit and integration tests.
"""

from .tables import (
    TABLE_DEFINITIONS,
    BlogPost,
    Comment,
    Connection,
    Fruit,
    Livestream,
    Resource,
    ResourceCreatedEvent,
    ResourceDeletedEvent,
    blog_posts_table,
    comments_table,
    connections_by_resource,
    connections_table,
    fruit_table,
    livestreams_by_category,
    livestreams_table,
    resource_events_table,
    resources_table,
)

__all__ = [
    'TABLE_DEFINITIONS',
    'BlogPost',
    'Comment',
    'Connection',
    'Fruit',
    'Livestream',
    'Resource',
    'ResourceCreatedEvent',
    'ResourceDeletedEvent',
    'blog_posts_table',
    'comments_table',
    'connections_by_resource',
    'connections_table',
    'fruit_table',
    'livestreams_by_category',
    'livestreams_table',
    'resource_events_table',
    'resources_table',
]
