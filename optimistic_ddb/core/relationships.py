"""
Relationship Validator

Checks, before a commit touches the network, that the items being committed
keep every declared table relationship consistent in both directions.

A pointer may only be added or removed when the item it points to is part of
the same commit, and that item's new value must point back exactly when the
pointer was added.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from ..exceptions import TableRelationshipViolationError

if TYPE_CHECKING:
    from ..models.table import Table, TableRelationship

logger = logging.getLogger(__name__)


@dataclass
class PerKeyItemChange:
    """The change a commit makes to one table+key.

    old_item is the stored representation before the commit (None when the key
    is being created), new_item the representation after it (None when the key
    is being deleted).
    """

    table: 'Table'
    key: Dict[str, Any]
    existing_version: Optional[int]
    old_item: Optional[Dict[str, Any]]
    new_item: Optional[Dict[str, Any]]

    @property
    def item(self) -> Dict[str, Any]:
        return self.new_item if self.new_item is not None else self.old_item


def _pointers(item: Optional[Dict[str, Any]], relationship: 'TableRelationship') -> Set[str]:
    if item is None:
        return set()
    value = item.get(relationship.pointer_attribute_name)
    if value is None:
        return set()
    if relationship.type.points_to_many:
        return {str(pointer) for pointer in value}
    return {str(value)}


def _points_back(
    peer_item: Optional[Dict[str, Any]],
    relationship: 'TableRelationship',
    key_pointer: str
) -> bool:
    if peer_item is None:
        return False
    value = peer_item.get(relationship.peer_pointer_attribute_name)
    if value is None:
        return False
    if relationship.type.flipped.points_to_many:
        return key_pointer in {str(pointer) for pointer in value}
    return str(value) == key_pointer


def _find_peer_change(
    changes: List[PerKeyItemChange],
    relationship: 'TableRelationship',
    pointer: str,
    added: bool
) -> Optional[PerKeyItemChange]:
    for change in changes:
        if change.table is not relationship.peer_table:
            continue
        side = change.new_item if added else change.old_item
        if side is not None and change.table.key_pointer(side, relationship.composite_key_separator) == pointer:
            return change
    return None


def validate_relationships(changes: List[PerKeyItemChange]) -> None:
    """Verify every relationship of every table touched by the changes.

    Raises:
        TableRelationshipViolationError: On the first inconsistent pointer found
    """
    for change in changes:
        for relationship in change.table.relationships:
            if relationship.item_exemption is not None and relationship.item_exemption(change.item):
                continue

            existing_pointers = _pointers(change.old_item, relationship)
            latest_pointers = _pointers(change.new_item, relationship)
            removed = existing_pointers - latest_pointers
            added = latest_pointers - existing_pointers
            if not removed and not added:
                continue

            key_pointer = change.table.key_pointer(change.key, relationship.composite_key_separator)
            for pointer, was_added in [(p, False) for p in sorted(removed)] + [(p, True) for p in sorted(added)]:
                peer_change = _find_peer_change(changes, relationship, pointer, was_added)
                if peer_change is None:
                    logger.debug(
                        f"{change.table.table_name} item {change.key} changes pointer {pointer!r} to "
                        f"{relationship.peer_table.table_name} without committing the peer item"
                    )
                    raise TableRelationshipViolationError(
                        change.item,
                        relationship.type.value,
                        [change.table.table_name, relationship.peer_table.table_name]
                    )
                if relationship.peer_item_exemption is not None \
                        and relationship.peer_item_exemption(peer_change.item):
                    continue
                if _points_back(peer_change.new_item, relationship, key_pointer) != was_added:
                    logger.debug(
                        f"{relationship.peer_table.table_name} item {peer_change.key} does not match pointer "
                        f"{pointer!r} of {change.table.table_name} item {change.key}"
                    )
                    raise TableRelationshipViolationError(
                        change.item,
                        relationship.type.value,
                        [change.table.table_name, relationship.peer_table.table_name]
                    )
