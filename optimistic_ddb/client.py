"""
Optimistic DynamoDB Client

OptimisticDdbClient is the entry point of the library. It reads items into
pydantic models, lets callers mutate them in place, and commits them back in
one DynamoDB transaction guarded by optimistic locking and table relationship
checks.

Example:
    client = OptimisticDdbClient()
    post = client.get_item(blog_posts, {"id": "post-1"})
    post.numComments += 1
    comment = client.draft_item(comments, {"blogPostId": "post-1", "id": "c-1", "content": "Hi"})
    client.commit_items([post, comment])
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from .config import DynamoDBConfig
from .core.store_gateway import StoreGateway
from .core.tracking import ItemTrackingStore
from .handlers import ItemReadApi, ItemWriteApi
from .models.table import Table
from .utils import ErrorOverride

logger = logging.getLogger(__name__)


class OptimisticDdbClient:
    """
    Transactional client over DynamoDB tables.

    Items returned by the read methods and by draft_item are tracked by
    identity for as long as the caller holds them. Only tracked items can be
    committed, marked for deletion or asked for their version.

    One client may be shared between threads; tracking metadata is guarded by
    a lock, and concurrent commits are arbitrated by DynamoDB's conditional
    writes.
    """

    def __init__(self, config: Optional[DynamoDBConfig] = None, dynamodb_resource=None):
        """Initialize client.

        Args:
            config: DynamoDB configuration (read from the environment if None)
            dynamodb_resource: Optional pre-built boto3 DynamoDB resource
        """
        self.config = config or DynamoDBConfig.from_env()
        if self.config.enable_debug_logging:
            logging.getLogger(__package__).setLevel(logging.DEBUG)
        self.gateway = StoreGateway(self.config, dynamodb_resource)
        self.tracker = ItemTrackingStore()
        self._reads = ItemReadApi(self.config, self.gateway, self.tracker)
        self._writes = ItemWriteApi(self.config, self.gateway, self.tracker)

    def draft_item(self, table: Table, item: Union[Mapping[str, Any], BaseModel]) -> BaseModel:
        """Create a new item to be written by the next commit that includes it."""
        return self._writes.draft_item(table, item)

    def get_item(
        self,
        table: Table,
        key: Dict[str, Any],
        item_not_found_error_override: Optional[ErrorOverride] = None
    ) -> Optional[BaseModel]:
        """Get one item with a strongly consistent read. See ItemReadApi.get_item."""
        return self._reads.get_item(table, key, item_not_found_error_override)

    def get_items(
        self,
        table: Table,
        keys: Sequence[Dict[str, Any]],
        item_not_found_error_override: Optional[ErrorOverride] = None
    ) -> List[BaseModel]:
        """Get many items with strongly consistent reads, in request order. See ItemReadApi.get_items."""
        return self._reads.get_items(table, keys, item_not_found_error_override)

    def query_items(
        self,
        index,
        partition_key_condition: Sequence[Any],
        sort_key_condition: Optional[Sequence[Any]] = None,
        filter_condition: Optional[Sequence[Any]] = None,
        scan_index_forward: bool = True,
        limit: Optional[int] = None,
        resume_key: Optional[str] = None,
        invalid_resume_key_error_override: Optional[ErrorOverride] = None
    ) -> Tuple[List[BaseModel], Optional[str]]:
        """Query a Table or SecondaryIndex. See ItemReadApi.query_items."""
        return self._reads.query_items(
            index,
            partition_key_condition,
            sort_key_condition=sort_key_condition,
            filter_condition=filter_condition,
            scan_index_forward=scan_index_forward,
            limit=limit,
            resume_key=resume_key,
            invalid_resume_key_error_override=invalid_resume_key_error_override
        )

    def scan_items(
        self,
        index,
        filter_condition: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        resume_key: Optional[str] = None,
        invalid_resume_key_error_override: Optional[ErrorOverride] = None
    ) -> Tuple[List[BaseModel], Optional[str]]:
        """Scan a Table or SecondaryIndex. See ItemReadApi.scan_items."""
        return self._reads.scan_items(
            index,
            filter_condition=filter_condition,
            limit=limit,
            resume_key=resume_key,
            invalid_resume_key_error_override=invalid_resume_key_error_override
        )

    def mark_item_for_deletion(self, item: BaseModel) -> None:
        self._writes.mark_item_for_deletion(item)

    def commit_items(
        self,
        items: List[BaseModel],
        optimistic_lock_error_override: Optional[ErrorOverride] = None
    ) -> None:
        """Atomically write tracked items. See ItemWriteApi.commit_items."""
        self._writes.commit_items(items, optimistic_lock_error_override)

    def get_item_version(self, item: BaseModel) -> int:
        return self._writes.get_item_version(item)
