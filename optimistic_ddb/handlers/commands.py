"""
Item Write API

This module implements the write side of OptimisticDdbClient:
- Drafting new items (no network call)
- Marking tracked items for deletion (no network call)
- Committing tracked items atomically with TransactWriteItems

Every committed key is written under an optimistic lock:
- Creates are conditioned on attribute_not_exists(partition key)
- Updates and deletes are conditioned on the version read earlier
- Updates bump the version by exactly 1; creates start it at 0

Table relationships are validated before the transaction is sent.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from ..config import DynamoDBConfig
from ..core.expressions import ExpressionBuilder, get_dynamodb_expression
from ..core.relationships import PerKeyItemChange, validate_relationships
from ..core.store_gateway import StoreGateway
from ..core.tracking import ItemTrackingStore, TrackedItem
from ..exceptions import (
    ConflictingItemChangesError,
    ItemAlreadyMarkedForDeletionError,
    OptimisticLockError,
    TransactionCanceledError,
    UnrecordedItemError,
)
from ..models.table import Table
from ..utils import ErrorOverride, apply_error_override, key_tuple, to_store_value

logger = logging.getLogger(__name__)


class ItemWriteApi:
    """
    Write API for tracked items.

    Provides safe, atomic operations with:
    - Conditional expressions on every write (version or existence checks)
    - Partial updates using UpdateExpression (SET present, REMOVE absent attributes)
    - One TransactWriteItems call per commit
    """

    def __init__(self, config: DynamoDBConfig, gateway: StoreGateway, tracker: ItemTrackingStore):
        """Initialize write API with configuration and shared collaborators."""
        self.config = config
        self.gateway = gateway
        self.tracker = tracker

    def draft_item(self, table: Table, item: Union[Mapping[str, Any], BaseModel]) -> BaseModel:
        """
        Create a new item to be written by the next commit.

        Args:
            table: Table the item belongs to
            item: Attribute mapping or model instance. A version attribute is ignored.

        Returns:
            New tracked item (a copy; the argument itself is not tracked)

        Raises:
            ItemValidationError: The item does not match the item shape
        """
        if isinstance(item, BaseModel):
            data = item.model_dump()
        else:
            data = dict(item)
        data.pop(table.version_attribute_name, None)
        drafted = table.validate_item(data)
        self.tracker.put(drafted, TrackedItem(table=table, version=0, is_newly_created=True))
        return drafted

    def mark_item_for_deletion(self, item: BaseModel) -> None:
        """
        Mark a tracked item to be deleted by the next commit that includes it.

        Raises:
            UnrecordedItemError: The item is not tracked by this client
            ItemAlreadyMarkedForDeletionError: The item is already marked
        """
        with self.tracker.lock:
            tracked_item = self.tracker.get(item)
            if tracked_item is None:
                raise UnrecordedItemError("marked for deletion", item)
            if tracked_item.is_marked_for_deletion:
                raise ItemAlreadyMarkedForDeletionError(item)
            tracked_item.is_marked_for_deletion = True

    def get_item_version(self, item: BaseModel) -> int:
        """
        Version of a tracked item: 0 when drafted, otherwise the last read or committed version.

        Raises:
            UnrecordedItemError: The item is not tracked by this client
        """
        tracked_item = self.tracker.get(item)
        if tracked_item is None:
            raise UnrecordedItemError("versioned", item)
        return tracked_item.version

    def commit_items(
        self,
        items: List[BaseModel],
        optimistic_lock_error_override: Optional[ErrorOverride] = None
    ) -> None:
        """
        Atomically write the current state of tracked items.

        DynamoDB Operation: TransactWriteItems with one operation per touched key
        - Drafted item: Put, conditioned on attribute_not_exists(partition key)
        - Item marked for deletion: Delete, conditioned on its version
        - Item with unchanged key: Update, conditioned on its version
        - Item whose key changed: Delete of the old key plus Put of the new key

        Args:
            items: Tracked items to commit
            optimistic_lock_error_override: Maps OptimisticLockError to another error

        Raises:
            UnrecordedItemError: An item is not tracked by this client
            ItemValidationError: An item no longer matches its item shape
            TableRelationshipViolationError: The commit would break a table relationship
            ConflictingItemChangesError: Two items write to the same key
            OptimisticLockError: A version or existence condition failed
            TransactionCanceledError: The transaction was cancelled for another reason
        """
        if not items:
            return

        entries: List[Tuple[BaseModel, TrackedItem, Dict[str, Any]]] = []
        seen = set()
        for item in items:
            if id(item) in seen:
                continue
            seen.add(id(item))
            tracked_item = self.tracker.get(item)
            if tracked_item is None:
                raise UnrecordedItemError("committed", item)
            table = tracked_item.table
            attributes = table.item_attributes(table.validate_item(table.item_attributes(item)))
            entries.append((item, tracked_item, attributes))

        with self.tracker.lock:
            changes = self._get_item_changes(entries)
        validate_relationships(list(changes.values()))

        transact_items = [self._get_write_operation(change) for change in changes.values()]
        if transact_items:
            logger.info(f"Committing {len(entries)} item(s) as {len(transact_items)} operation(s)")
            try:
                self.gateway.transact_write_items(transact_items)
            except TransactionCanceledError as e:
                if not e.is_conditional_only:
                    raise
                logger.info(f"Optimistic lock failure: {e.cancellation_reasons}")
                apply_error_override(OptimisticLockError(e), optimistic_lock_error_override)

        with self.tracker.lock:
            for item, tracked_item, attributes in entries:
                if tracked_item.is_marked_for_deletion:
                    self.tracker.remove(item)
                    continue
                table = tracked_item.table
                change = changes[self._change_id(table, table.item_key(attributes))]
                tracked_item.version = self._resulting_version(change)
                tracked_item.is_newly_created = False
                tracked_item.prior_snapshot = attributes

    # =========================================================================
    # Change derivation
    # =========================================================================

    @staticmethod
    def _change_id(table: Table, key: Dict[str, Any]) -> Tuple:
        return (id(table), key_tuple(key, table.key_attribute_names))

    def _get_item_changes(
        self,
        entries: List[Tuple[BaseModel, TrackedItem, Dict[str, Any]]]
    ) -> Dict[Tuple, PerKeyItemChange]:
        """One change per table+key, merging an old side and a new side written by different items."""
        changes: Dict[Tuple, PerKeyItemChange] = {}

        def add_old_side(table: Table, snapshot: Dict[str, Any], version: int) -> None:
            key = table.item_key(snapshot)
            change = changes.setdefault(
                self._change_id(table, key), PerKeyItemChange(table, key, None, None, None)
            )
            if change.old_item is not None:
                raise ConflictingItemChangesError(table.table_name, key)
            change.old_item = snapshot
            change.existing_version = version

        def add_new_side(table: Table, attributes: Dict[str, Any]) -> None:
            key = table.item_key(attributes)
            change = changes.setdefault(
                self._change_id(table, key), PerKeyItemChange(table, key, None, None, None)
            )
            if change.new_item is not None:
                raise ConflictingItemChangesError(table.table_name, key)
            change.new_item = attributes

        for item, tracked_item, attributes in entries:
            table = tracked_item.table
            if tracked_item.is_newly_created:
                if not tracked_item.is_marked_for_deletion:
                    add_new_side(table, attributes)
                continue
            add_old_side(table, tracked_item.prior_snapshot, tracked_item.version)
            if not tracked_item.is_marked_for_deletion:
                add_new_side(table, attributes)
        return changes

    @staticmethod
    def _resulting_version(change: PerKeyItemChange) -> int:
        if change.old_item is None:
            return 0
        return change.existing_version + 1

    # =========================================================================
    # Write operations
    # =========================================================================

    def _get_write_operation(self, change: PerKeyItemChange) -> Dict[str, Any]:
        table = change.table
        version_attribute_name = table.version_attribute_name

        if change.old_item is None:
            return {
                'Put': {
                    'TableName': table.table_name,
                    'Item': to_store_value({**change.new_item, version_attribute_name: 0}),
                    **self._store_expression(get_dynamodb_expression(
                        condition_conditions=[(table.partition_key, "doesn't exist")]
                    ))
                }
            }

        version_conditions = [
            (version_attribute_name, "exists"),
            (version_attribute_name, "=", change.existing_version),
        ]
        if change.new_item is None:
            return {
                'Delete': {
                    'TableName': table.table_name,
                    'Key': to_store_value(change.key),
                    **self._store_expression(get_dynamodb_expression(condition_conditions=version_conditions))
                }
            }

        builder = ExpressionBuilder()
        set_actions = [
            f"{builder.add_name(name)} = {builder.add_value(change.new_item[name])}"
            for name in table.attribute_names
            if name not in table.key_attribute_names and name in change.new_item
        ]
        set_actions.append(
            f"{builder.add_name(version_attribute_name)} = {builder.add_value(change.existing_version + 1)}"
        )
        remove_actions = [
            builder.add_name(name)
            for name in table.attribute_names
            if name not in table.key_attribute_names and name not in change.new_item
        ]
        update_expression = f"SET {', '.join(set_actions)}"
        if remove_actions:
            update_expression += f" REMOVE {', '.join(remove_actions)}"
        return {
            'Update': {
                'TableName': table.table_name,
                'Key': to_store_value(change.key),
                'UpdateExpression': update_expression,
                **self._store_expression(get_dynamodb_expression(
                    condition_conditions=version_conditions, builder=builder
                ))
            }
        }

    @staticmethod
    def _store_expression(expression: Dict[str, Any]) -> Dict[str, Any]:
        if 'ExpressionAttributeValues' in expression:
            expression['ExpressionAttributeValues'] = to_store_value(expression['ExpressionAttributeValues'])
        return expression
