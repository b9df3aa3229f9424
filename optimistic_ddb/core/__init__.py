"""
Core infrastructure components of the optimistic DynamoDB client.

This module contains the foundational components the handlers compose:
- StoreGateway: Thin wrapper over boto3 DynamoDB operations
- Expression compiler for key, filter and condition-check expressions
- ItemTrackingStore: identity-keyed persistence metadata of live items
- Relationship validator run before every commit
"""

from .expressions import (
    ExpressionBuilder,
    compile_condition,
    get_dynamodb_expression,
    validate_key_condition,
)
from .relationships import PerKeyItemChange, validate_relationships
from .store_gateway import StoreGateway, map_dynamodb_error
from .tracking import ItemTrackingStore, TrackedItem

__all__ = [
    "ExpressionBuilder",
    "compile_condition",
    "get_dynamodb_expression",
    "validate_key_condition",
    "PerKeyItemChange",
    "validate_relationships",
    "StoreGateway",
    "map_dynamodb_error",
    "ItemTrackingStore",
    "TrackedItem",
]
