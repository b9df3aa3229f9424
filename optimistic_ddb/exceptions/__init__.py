# Base exception class
from .base import OptimisticDdbError, ProgrammerError

# Transport exceptions
from .connection import (
    ConnectionError,
    RetryableError,
    StoreValidationError,
    TransactionCanceledError,
)

# Domain-specific exceptions
from .domain_exceptions import (
    ConflictingItemChangesError,
    InvalidResumeKeyError,
    ItemAlreadyMarkedForDeletionError,
    ItemNotFoundError,
    ItemValidationError,
    ItemWithoutVersionError,
    OptimisticLockError,
    TableRelationshipAlreadyExistsError,
    TableRelationshipViolationError,
    UnprocessedKeysError,
    UnrecordedItemError,
)

__all__ = [
    # Base exceptions
    "OptimisticDdbError",
    "ProgrammerError",

    # Transport exceptions
    "ConnectionError",
    "RetryableError",
    "StoreValidationError",
    "TransactionCanceledError",

    # Domain exceptions (alphabetically ordered)
    "ConflictingItemChangesError",
    "InvalidResumeKeyError",
    "ItemAlreadyMarkedForDeletionError",
    "ItemNotFoundError",
    "ItemValidationError",
    "ItemWithoutVersionError",
    "OptimisticLockError",
    "TableRelationshipAlreadyExistsError",
    "TableRelationshipViolationError",
    "UnprocessedKeysError",
    "UnrecordedItemError",
]
