"""
optimistic_ddb Utilities

Helpers shared by the read and write handlers:
- Value conversion between boto3's DynamoDB types and plain Python values
- Resume key encoding/decoding for paginated queries and scans

boto3 returns every DynamoDB number as Decimal and every binary as Binary,
and refuses Python floats on the way in. Items cross this boundary once in
each direction so the rest of the library only sees plain values.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Type

from boto3.dynamodb.types import Binary
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .exceptions import InvalidResumeKeyError, OptimisticDdbError, StoreValidationError

logger = logging.getLogger(__name__)

ErrorOverride = Callable[[OptimisticDdbError], Optional[Exception]]


# =============================================================================
# Error Overrides
# =============================================================================

def apply_error_override(
    error: OptimisticDdbError,
    override: Optional[ErrorOverride],
    allow_absence: bool = False
) -> None:
    """Pass a recoverable error through the caller's override.

    The override receives the error and returns the exception to raise instead,
    or None. None turns the failure into absence when allow_absence is set
    (the caller then returns None or omits the item); otherwise the original
    error is raised.

    Returns:
        None, only when the override chose absence

    Raises:
        The override's exception, or the original error
    """
    if override is None:
        raise error
    replacement = override(error)
    if isinstance(replacement, BaseException):
        raise replacement from error
    if replacement is None and allow_absence:
        logger.debug(f"{type(error).__name__} overridden to absence: {error.message}")
        return None
    raise error


# =============================================================================
# Value Conversion
# =============================================================================

def from_store_value(obj: Any) -> Any:
    """Convert a value returned by boto3 into plain Python types.

    - Decimal -> int when integral, float otherwise
    - Binary -> bytes
    - dict/list/set -> converted recursively

    Example:
        >>> from_store_value({'count': Decimal('3'), 'ratio': Decimal('0.5')})
        {'count': 3, 'ratio': 0.5}
    """
    if isinstance(obj, dict):
        return {k: from_store_value(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [from_store_value(list_item) for list_item in obj]
    elif isinstance(obj, set):
        return {from_store_value(set_item) for set_item in obj}
    elif isinstance(obj, Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    elif isinstance(obj, Binary):
        return obj.value
    else:
        return obj


def to_store_value(obj: Any) -> Any:
    """Convert a plain Python value into something boto3 can serialize.

    - float -> Decimal (boto3 rejects floats)
    - datetime -> ISO string
    - dict/list/set -> converted recursively
    - bool, int, str, bytes, Decimal, None -> unchanged
    """
    if isinstance(obj, dict):
        return {k: to_store_value(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [to_store_value(list_item) for list_item in obj]
    elif isinstance(obj, set):
        return {to_store_value(set_item) for set_item in obj}
    elif isinstance(obj, float):
        return Decimal(str(obj))
    elif isinstance(obj, datetime):
        return obj.isoformat()
    else:
        return obj


def key_tuple(key: Dict[str, Any], key_attribute_names) -> tuple:
    """Hashable identity of a key, used to match requested keys with results."""
    return tuple(key.get(name) for name in key_attribute_names)


# =============================================================================
# Resume Keys
# =============================================================================

def encode_resume_key(last_evaluated_key: Optional[Dict[str, Any]]) -> Optional[str]:
    """Encode DynamoDB's LastEvaluatedKey as an opaque resume key.

    The resume key is the plain JSON encoding of the key.

    Returns:
        Resume key string, or None when there is nothing left to read

    Raises:
        StoreValidationError: If the key holds values JSON cannot encode (binary key attributes)
    """
    if last_evaluated_key is None:
        return None
    try:
        return json.dumps(from_store_value(last_evaluated_key), sort_keys=True)
    except TypeError as e:
        raise StoreValidationError(
            f"Resume keys are not supported for indexes with binary key attributes: {e}", original_error=e
        ) from e


def decode_resume_key(resume_key: str, key_model: Type[BaseModel]) -> Dict[str, Any]:
    """Decode a resume key and validate it against the index's key shape.

    Args:
        resume_key: Resume key previously returned by a query or scan
        key_model: pydantic model of the index's key attributes

    Returns:
        ExclusiveStartKey ready to be sent to DynamoDB

    Raises:
        InvalidResumeKeyError: If the resume key is not JSON or does not match the key shape
    """
    try:
        decoded = json.loads(resume_key)
        if not isinstance(decoded, dict):
            raise ValueError(f"resume key must decode to an object, got {type(decoded).__name__}")
        validated = key_model.model_validate(decoded)
    except (ValueError, TypeError, PydanticValidationError) as e:
        logger.debug(f"Rejected resume key {resume_key!r}: {e}")
        raise InvalidResumeKeyError(resume_key, original_error=e) from e
    return to_store_value(validated.model_dump())
