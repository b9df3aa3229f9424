"""
Item Read API

This module implements the read operations of OptimisticDdbClient:
- Strongly consistent point reads (GetItem)
- Batched point reads (BatchGetItem, up to 100 keys per call, with
  unprocessed-key retry and no-progress detection)
- Paged queries and scans with opaque resume keys

Every item returned is validated against its table's item shape, stripped of
its version attribute and recorded in the tracking store so it can later be
committed or marked for deletion.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..config import DynamoDBConfig
from ..core.expressions import (
    PARTITION_KEY_OPERATORS,
    SORT_KEY_OPERATORS,
    get_dynamodb_expression,
    validate_key_condition,
)
from ..core.store_gateway import StoreGateway
from ..core.tracking import ItemTrackingStore, TrackedItem
from ..exceptions import (
    InvalidResumeKeyError,
    ItemNotFoundError,
    ItemValidationError,
    ItemWithoutVersionError,
    UnprocessedKeysError,
)
from ..models.table import Table
from ..utils import (
    ErrorOverride,
    apply_error_override,
    decode_resume_key,
    encode_resume_key,
    from_store_value,
    key_tuple,
    to_store_value,
)

logger = logging.getLogger(__name__)


class ItemReadApi:
    """
    Read API over tables and secondary indexes.

    Access patterns:
    - Base-table reads use ConsistentRead
    - Secondary-index reads are eventually consistent; items the index does
      not fully project are resolved with a follow-up BatchGetItem on the table
    - Pagination follows LastEvaluatedKey until the limit is reached
    """

    def __init__(self, config: DynamoDBConfig, gateway: StoreGateway, tracker: ItemTrackingStore):
        """Initialize read API with configuration and shared collaborators."""
        self.config = config
        self.gateway = gateway
        self.tracker = tracker

    def get_item(
        self,
        table: Table,
        key: Dict[str, Any],
        item_not_found_error_override: Optional[ErrorOverride] = None
    ) -> Optional[BaseModel]:
        """
        Get one item by key.

        DynamoDB Operation: GetItem with ConsistentRead

        Args:
            table: Table to read from
            key: Full key of the item
            item_not_found_error_override: Maps ItemNotFoundError to another error,
                or to None to return None instead

        Returns:
            The item, or None when missing and the override chose absence

        Raises:
            ItemNotFoundError: No item has this key
            ItemWithoutVersionError: The stored item has no integer version
            ItemValidationError: The stored item does not match the item shape
        """
        self._check_key(table, key)
        stored_item = self.gateway.get_item(table.table_name, to_store_value(key), consistent_read=True)
        if stored_item is None:
            return apply_error_override(
                ItemNotFoundError(table.table_name, [key]), item_not_found_error_override, allow_absence=True
            )
        return self.record_stored_item(table, stored_item)

    def get_items(
        self,
        table: Table,
        keys: Sequence[Dict[str, Any]],
        item_not_found_error_override: Optional[ErrorOverride] = None
    ) -> List[BaseModel]:
        """
        Get many items by key, in the order of the requested keys.

        DynamoDB Operation: BatchGetItem with ConsistentRead, repeated until every
        key is processed. Unprocessed keys are retried in the next call; a call
        returning every key it was given as unprocessed fails the read.

        Args:
            table: Table to read from
            keys: Full keys of the items. Repeated keys yield the same item.
            item_not_found_error_override: Maps ItemNotFoundError (naming every missing
                key) to another error, or to None to omit missing items

        Returns:
            Found items in request order

        Raises:
            ItemNotFoundError: Some keys have no item
            UnprocessedKeysError: BatchGetItem made no progress
        """
        if not keys:
            return []
        for key in keys:
            self._check_key(table, key)

        key_names = table.key_attribute_names
        requested_keys: Dict[Tuple, Dict[str, Any]] = {}
        for key in keys:
            requested_keys.setdefault(key_tuple(key, key_names), key)

        found: Dict[Tuple, Dict[str, Any]] = {}
        pending = list(requested_keys.values())
        batch_size = self.config.batch_get_max_keys
        while pending:
            batch, pending = pending[:batch_size], pending[batch_size:]
            result = self.gateway.batch_get_item(
                table.table_name, [to_store_value(key) for key in batch], consistent_read=True
            )
            for stored_item in result['items']:
                found[key_tuple(from_store_value(stored_item), key_names)] = stored_item
            unprocessed_keys = [from_store_value(key) for key in result['unprocessed_keys']]
            if unprocessed_keys and len(unprocessed_keys) >= len(batch):
                raise UnprocessedKeysError(table.table_name, unprocessed_keys)
            if unprocessed_keys:
                logger.info(f"Retrying {len(unprocessed_keys)} unprocessed key(s) on {table.table_name}")
            pending = unprocessed_keys + pending

        missing_keys = [key for identity, key in requested_keys.items() if identity not in found]
        if missing_keys:
            apply_error_override(
                ItemNotFoundError(table.table_name, missing_keys), item_not_found_error_override, allow_absence=True
            )

        items: Dict[Tuple, BaseModel] = {}
        for identity in requested_keys:
            if identity in found:
                items[identity] = self.record_stored_item(table, found[identity])
        return [items[key_tuple(key, key_names)] for key in keys if key_tuple(key, key_names) in items]

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
        """
        Query a table or secondary index.

        DynamoDB Operation: Query, paged through LastEvaluatedKey

        Args:
            index: Table or SecondaryIndex to query
            partition_key_condition: e.g. ("resourceId", "=", "aaaa")
            sort_key_condition: e.g. ("viewerCount", "between", 10, "and", 20)
            filter_condition: Any condition, including and/or composition
            scan_index_forward: False for descending sort key order
            limit: Maximum number of items to return
            resume_key: Resume key returned by a previous call with the same conditions
            invalid_resume_key_error_override: Maps InvalidResumeKeyError to another error

        Returns:
            Tuple of (items, resume_key). resume_key is only returned when a limit
            was given and DynamoDB has more items to evaluate.

        Raises:
            ValueError: Key conditions do not target the index's keys
            InvalidResumeKeyError: The resume key does not match the index's key shape
        """
        validate_key_condition(partition_key_condition, index.partition_key, PARTITION_KEY_OPERATORS, "partition key")
        if sort_key_condition is not None:
            validate_key_condition(sort_key_condition, index.sort_key, SORT_KEY_OPERATORS, "sort key")
        params = get_dynamodb_expression(
            partition_key_condition=partition_key_condition,
            sort_key_condition=sort_key_condition,
            filter_conditions=[filter_condition] if filter_condition is not None else None
        )
        params['ScanIndexForward'] = scan_index_forward
        return self._read_pages(
            index, self.gateway.query, params, limit, resume_key, invalid_resume_key_error_override
        )

    def scan_items(
        self,
        index,
        filter_condition: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
        resume_key: Optional[str] = None,
        invalid_resume_key_error_override: Optional[ErrorOverride] = None
    ) -> Tuple[List[BaseModel], Optional[str]]:
        """
        Scan a table or secondary index.

        DynamoDB Operation: Scan, paged through LastEvaluatedKey

        Returns:
            Tuple of (items, resume_key), as for query_items
        """
        params = get_dynamodb_expression(
            filter_conditions=[filter_condition] if filter_condition is not None else None
        )
        return self._read_pages(
            index, self.gateway.scan, params, limit, resume_key, invalid_resume_key_error_override
        )

    def record_stored_item(self, table: Table, stored_item: Dict[str, Any]) -> BaseModel:
        """Strip the version from a stored item, validate it and start tracking it."""
        attributes = from_store_value(stored_item)
        version = attributes.pop(table.version_attribute_name, None)
        if not isinstance(version, int) or isinstance(version, bool):
            raise ItemWithoutVersionError(table.table_name, table.version_attribute_name, attributes)
        item = table.validate_item(attributes)
        self.tracker.put(item, TrackedItem(
            table=table,
            prior_snapshot=table.item_attributes(item),
            version=version
        ))
        return item

    def _read_pages(
        self,
        index,
        read: Callable[..., Dict[str, Any]],
        params: Dict[str, Any],
        limit: Optional[int],
        resume_key: Optional[str],
        invalid_resume_key_error_override: Optional[ErrorOverride]
    ) -> Tuple[List[BaseModel], Optional[str]]:
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit}")

        exclusive_start_key = None
        if resume_key is not None:
            exclusive_start_key = self._decode_resume_key(index, resume_key, invalid_resume_key_error_override)

        if 'ExpressionAttributeValues' in params:
            params['ExpressionAttributeValues'] = to_store_value(params['ExpressionAttributeValues'])
        if index.index_name is not None:
            params['IndexName'] = index.index_name
        else:
            params['ConsistentRead'] = True

        stored_items: List[Dict[str, Any]] = []
        while True:
            page_params = dict(params)
            if limit is not None:
                page_params['Limit'] = limit - len(stored_items)
            if exclusive_start_key is not None:
                page_params['ExclusiveStartKey'] = exclusive_start_key
            response = read(index.table.table_name, **page_params)
            stored_items.extend(response.get('Items', []))
            exclusive_start_key = response.get('LastEvaluatedKey')
            if exclusive_start_key is None or (limit is not None and len(stored_items) >= limit):
                break

        logger.debug(
            f"Read {len(stored_items)} item(s) from {index!r} (more={exclusive_start_key is not None})"
        )
        items = self._record_page_items(index, stored_items)
        return items, encode_resume_key(exclusive_start_key) if limit is not None else None

    def _record_page_items(self, index, stored_items: List[Dict[str, Any]]) -> List[BaseModel]:
        table = index.table
        if index.index_name is None:
            return [self.record_stored_item(table, stored_item) for stored_item in stored_items]

        # Items the index does not fully project are resolved from the table
        slots: List[Tuple[str, Any]] = []
        incomplete_keys: List[Dict[str, Any]] = []
        for stored_item in stored_items:
            try:
                slots.append(('item', self.record_stored_item(table, stored_item)))
            except (ItemWithoutVersionError, ItemValidationError) as e:
                if isinstance(e, ItemValidationError) and not e.only_missing_attributes:
                    raise
                key = table.item_key(from_store_value(stored_item))
                slots.append(('key', key_tuple(key, table.key_attribute_names)))
                incomplete_keys.append(key)

        if not incomplete_keys:
            return [item for _, item in slots]

        logger.debug(f"Resolving {len(incomplete_keys)} incomplete item(s) of {index!r} from {table!r}")
        resolved = {
            key_tuple(table.item_attributes(item), table.key_attribute_names): item
            for item in self.get_items(table, incomplete_keys, item_not_found_error_override=lambda error: None)
        }
        items = []
        for kind, value in slots:
            if kind == 'item':
                items.append(value)
            elif value in resolved:
                items.append(resolved[value])
        return items

    def _decode_resume_key(
        self,
        index,
        resume_key: str,
        invalid_resume_key_error_override: Optional[ErrorOverride]
    ) -> Dict[str, Any]:
        key_model = index.table.key_model(
            index.resume_key_attribute_names,
            f"{index.table.table_name}{index.index_name or ''}ResumeKey"
        )
        try:
            return decode_resume_key(resume_key, key_model)
        except InvalidResumeKeyError as e:
            apply_error_override(e, invalid_resume_key_error_override)
            raise

    @staticmethod
    def _check_key(table: Table, key: Dict[str, Any]) -> None:
        if sorted(key) != sorted(table.key_attribute_names):
            raise ValueError(
                f"Key of table '{table.table_name}' must have exactly the attributes "
                f"{table.key_attribute_names}, got {sorted(key)}"
            )
