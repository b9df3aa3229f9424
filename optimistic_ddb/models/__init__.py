# Item base model
from .base import TableItem

# Table metadata
from .table import (
    DEFAULT_COMPOSITE_KEY_SEPARATOR,
    DEFAULT_VERSION_ATTRIBUTE,
    SecondaryIndex,
    Table,
    TableRelationship,
    TableRelationshipType,
)

__all__ = [
    # Item base model
    "TableItem",

    # Table metadata
    "DEFAULT_COMPOSITE_KEY_SEPARATOR",
    "DEFAULT_VERSION_ATTRIBUTE",
    "SecondaryIndex",
    "Table",
    "TableRelationship",
    "TableRelationshipType",
]
