"""
Handler Layer for optimistic_ddb

This module contains the read and write handlers OptimisticDdbClient composes.

The handler layer:
- Translates table metadata and conditions into DynamoDB requests
- Validates items against their table's item shape
- Records and consumes tracking metadata

Organization:
- queries.py (read): get_item, get_items, query_items, scan_items
- commands.py (write): draft_item, mark_item_for_deletion, commit_items, get_item_version

Architecture:
client.py -> handlers/ (this layer) -> core/ (infrastructure) -> DynamoDB
handlers/ (this layer) <- models/ (table metadata)
"""

from .commands import ItemWriteApi
from .queries import ItemReadApi

__all__ = [
    'ItemReadApi',
    'ItemWriteApi',
]
