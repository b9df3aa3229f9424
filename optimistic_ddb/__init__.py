from .config import DynamoDBConfig
from .exceptions import (
    ConflictingItemChangesError,
    ConnectionError,
    InvalidResumeKeyError,
    ItemAlreadyMarkedForDeletionError,
    ItemNotFoundError,
    ItemValidationError,
    ItemWithoutVersionError,
    OptimisticDdbError,
    OptimisticLockError,
    ProgrammerError,
    RetryableError,
    StoreValidationError,
    TableRelationshipAlreadyExistsError,
    TableRelationshipViolationError,
    TransactionCanceledError,
    UnprocessedKeysError,
    UnrecordedItemError,
)
from .models import (
    SecondaryIndex,
    Table,
    TableItem,
    TableRelationship,
    TableRelationshipType,
)
from .core import StoreGateway
from .client import OptimisticDdbClient

__version__ = "1.0.0"
__all__ = [
    # Client
    "OptimisticDdbClient",

    # Configuration
    "DynamoDBConfig",

    # Table metadata
    "SecondaryIndex",
    "Table",
    "TableItem",
    "TableRelationship",
    "TableRelationshipType",

    # Gateway
    "StoreGateway",

    # Exceptions
    "ConflictingItemChangesError",
    "ConnectionError",
    "InvalidResumeKeyError",
    "ItemAlreadyMarkedForDeletionError",
    "ItemNotFoundError",
    "ItemValidationError",
    "ItemWithoutVersionError",
    "OptimisticDdbError",
    "OptimisticLockError",
    "ProgrammerError",
    "RetryableError",
    "StoreValidationError",
    "TableRelationshipAlreadyExistsError",
    "TableRelationshipViolationError",
    "TransactionCanceledError",
    "UnprocessedKeysError",
    "UnrecordedItemError",
]
