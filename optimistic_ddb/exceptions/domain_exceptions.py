"""
Domain-Specific Exceptions for optimistic_ddb

This module holds the errors raised by the item tracking and commit engine.
They extend the base OptimisticDdbError and fall into the categories
callers handle differently:

1. Recoverable read/commit failures (overridable at the call site)
2. Data integrity failures (never overridable)
3. Programmer errors (always fatal)
"""

from typing import Any, Dict, List, Optional, Sequence

from .base import OptimisticDdbError, ProgrammerError


def _plurality(count: int) -> str:
    return "" if count == 1 else "s"


# =============================================================================
# Recoverable Failures (overridable)
# =============================================================================

class ItemNotFoundError(OptimisticDdbError):
    """Raised when one or more items do not exist in the table.

    Used for:
    - get_item on a key with no stored item
    - get_items where some requested keys have no stored item
    """

    def __init__(self, table_name: str, item_keys: List[Dict[str, Any]], original_error: Optional[Exception] = None):
        """Initialize item not found error.

        Args:
            table_name: Name of the DynamoDB table
            item_keys: The keys of the item(s) that were not found
            original_error: The original exception that caused this error
        """
        self.table_name = table_name
        self.item_keys = item_keys
        message = f"{len(item_keys)} item{_plurality(len(item_keys))} not found in table '{table_name}'."
        context = {
            'table_name': table_name,
            'item_keys': item_keys
        }
        super().__init__(message, original_error, context)


class OptimisticLockError(OptimisticDdbError):
    """Raised when a commit's transaction is cancelled by a version or existence check.

    Always safe to retry after re-reading the items involved.
    """

    def __init__(self, original_error: Optional[Exception] = None):
        super().__init__("Optimistic lock error.", original_error)


class InvalidResumeKeyError(OptimisticDdbError):
    """Raised when a resume key is malformed or does not match the index's key shape."""

    def __init__(self, resume_key: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resume_key = resume_key
        super().__init__("Invalid resumeKey.", original_error)


# =============================================================================
# Transport-Level Read Failures
# =============================================================================

class UnprocessedKeysError(OptimisticDdbError):
    """Raised when BatchGetItem makes no progress.

    get_items keeps calling BatchGetItem with up to 100 keys at a time until it
    has everything it needs, or until a call returns every key it asked for in
    UnprocessedKeys.
    """

    def __init__(self, table_name: str, unprocessed_keys: List[Dict[str, Any]]):
        self.table_name = table_name
        self.unprocessed_keys = unprocessed_keys
        super().__init__(
            f"Error processing {len(unprocessed_keys)} key{_plurality(len(unprocessed_keys))}.",
            context={'table_name': table_name}
        )


# =============================================================================
# Data Integrity Failures
# =============================================================================

class ItemValidationError(OptimisticDdbError):
    """Raised when an item does not match its table's item shape.

    Used for:
    - Items read from DynamoDB that do not match the declared shape
    - Items about to be committed after an invalid in-place mutation
    - Drafts that do not match the declared shape
    """

    def __init__(self, message: str, issues: Optional[Sequence[Dict[str, Any]]] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            issues: pydantic error dictionaries (loc, type, msg)
            original_error: The original pydantic ValidationError
        """
        self.issues = list(issues or [])
        super().__init__(message, original_error)

    @property
    def only_missing_attributes(self) -> bool:
        """True when every issue is a missing attribute (a partial projection)."""
        return len(self.issues) > 0 and all(issue.get('type') == 'missing' for issue in self.issues)


class ItemWithoutVersionError(OptimisticDdbError):
    """Raised when a stored item has no integer version attribute."""

    def __init__(self, table_name: str, version_attribute_name: str, item: Dict[str, Any]):
        self.table_name = table_name
        self.item = item
        super().__init__(
            f"Item in table '{table_name}' must have integer version attribute \"{version_attribute_name}\".",
            context={'item': item}
        )


class TableRelationshipViolationError(OptimisticDdbError):
    """Raised when committed items would break a table relationship."""

    def __init__(self, item: Dict[str, Any], relationship_type: str, table_names: Sequence[str]):
        """Initialize relationship violation error.

        Args:
            item: Stored representation of the item triggering the violation
            relationship_type: The type of the TableRelationship
            table_names: Names of the two tables of the relationship
        """
        self.item = item
        self.relationship_type = relationship_type
        self.table_names = list(table_names)
        super().__init__(
            f"Item violates {relationship_type} relationship between {' and '.join(self.table_names)}: {item}"
        )


# =============================================================================
# Programmer Errors
# =============================================================================

class UnrecordedItemError(ProgrammerError):
    """Raised when an item unknown to the client is committed, deleted or versioned."""

    def __init__(self, action: str, item: Any):
        self.item = item
        super().__init__(f"Unrecorded item cannot be {action}: {item!r}")


class ItemAlreadyMarkedForDeletionError(ProgrammerError):
    """Raised when an item is marked for deletion twice."""

    def __init__(self, item: Any):
        self.item = item
        super().__init__(f"Item is already marked for deletion: {item!r}")


class TableRelationshipAlreadyExistsError(ProgrammerError):
    """Raised when adding a table relationship which already exists."""

    def __init__(self, table_name: str, pointer_attribute_name: str, peer_table_name: str):
        super().__init__(
            f"The relationship from {table_name}.{pointer_attribute_name} to {peer_table_name} already exists."
        )


class ConflictingItemChangesError(ProgrammerError):
    """Raised when two committed items resolve to the same table and key."""

    def __init__(self, table_name: str, key: Dict[str, Any]):
        self.table_name = table_name
        self.key = key
        super().__init__(f"Multiple committed items write to the same key in table '{table_name}': {key}")
