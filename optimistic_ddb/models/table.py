"""
Table, Secondary Index and Relationship Metadata

A Table describes a DynamoDB table the client reads from and commits to:
its name, item shape, key attributes, version attribute and the
relationships its items hold to items of other tables. A SecondaryIndex
describes a GSI over a Table.

Table and SecondaryIndex are both "indexes" for queries and scans: they
expose ``table``, ``index_name``, ``partition_key``, ``sort_key`` and
``resume_key_attribute_names``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Optional, Type, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, TypeAdapter, create_model
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ItemValidationError, TableRelationshipAlreadyExistsError
from ..utils import from_store_value, to_store_value

logger = logging.getLogger(__name__)

DEFAULT_VERSION_ATTRIBUTE = "version"
DEFAULT_COMPOSITE_KEY_SEPARATOR = "."


# =============================================================================
# Relationships
# =============================================================================

class TableRelationshipType(str, Enum):
    """Nature of a relationship, seen from the table it is declared on.

    ONE_TO_ONE: each side holds a single key-pointer to its coupled item.
    ONE_TO_MANY: this side holds a list of key-pointers; the peer holds one.
    MANY_TO_ONE: this side holds one key-pointer; the peer holds a list.
    MANY_TO_MANY: each side holds a list of key-pointers.
    """

    ONE_TO_ONE = "ONE_TO_ONE"
    ONE_TO_MANY = "ONE_TO_MANY"
    MANY_TO_ONE = "MANY_TO_ONE"
    MANY_TO_MANY = "MANY_TO_MANY"

    @property
    def flipped(self) -> 'TableRelationshipType':
        """The type of the same relationship seen from the peer table."""
        if self is TableRelationshipType.ONE_TO_MANY:
            return TableRelationshipType.MANY_TO_ONE
        if self is TableRelationshipType.MANY_TO_ONE:
            return TableRelationshipType.ONE_TO_MANY
        return self

    @property
    def points_to_many(self) -> bool:
        """True when this side's pointer attribute holds a list of key-pointers."""
        return self in (TableRelationshipType.ONE_TO_MANY, TableRelationshipType.MANY_TO_MANY)


@dataclass(frozen=True)
class TableRelationship:
    """One directed edge of a relationship, as registered on a Table."""

    type: TableRelationshipType
    pointer_attribute_name: str
    peer_table: 'Table'
    peer_pointer_attribute_name: str
    composite_key_separator: str = DEFAULT_COMPOSITE_KEY_SEPARATOR
    item_exemption: Optional[Callable[[Dict[str, Any]], bool]] = None
    peer_item_exemption: Optional[Callable[[Dict[str, Any]], bool]] = None


# =============================================================================
# Item Shape Helpers
# =============================================================================

def _shape_variants(item_shape: Any) -> List[Type[BaseModel]]:
    """List the model classes of an item shape (a model, or a Union of models)."""
    if get_origin(item_shape) is Annotated:
        return _shape_variants(get_args(item_shape)[0])
    if get_origin(item_shape) is Union:
        variants = []
        for arg in get_args(item_shape):
            variants.extend(_shape_variants(arg))
        return variants
    if isinstance(item_shape, type) and issubclass(item_shape, BaseModel):
        return [item_shape]
    raise ValueError(f"Item shape must be a pydantic model or a Union of pydantic models, got {item_shape!r}")


def _dedupe(values: List[Any]) -> List[Any]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


# =============================================================================
# Table
# =============================================================================

class Table:
    """
    A DynamoDB table whose items are read and committed through OptimisticDdbClient.

    Example:
        resources = Table(
            table_name="Resources",
            item_shape=Resource,
            partition_key="id",
        )
        connections = Table(
            table_name="Connections",
            item_shape=Connection,
            partition_key="id",
            version_attribute="_version",
        )
    """

    def __init__(
        self,
        table_name: str,
        item_shape: Any,
        partition_key: str,
        sort_key: Optional[str] = None,
        version_attribute: str = DEFAULT_VERSION_ATTRIBUTE
    ):
        """Initialize table metadata.

        Args:
            table_name: TableName of the DynamoDB table (before any configured prefix)
            item_shape: pydantic model class, or Union of model classes, describing items
                without the version attribute
            partition_key: Name of the table's partition key
            sort_key: Name of the table's sort key, if and only if it has one
            version_attribute: Name of the N attribute used for optimistic locking

        Raises:
            ValueError: If the keys are not declared attributes or the version attribute is
        """
        self.table_name = table_name
        self.item_shape = item_shape
        self.partition_key = partition_key
        self.sort_key = sort_key
        self.version_attribute_name = version_attribute
        self._variants = _shape_variants(item_shape)
        self._adapter = TypeAdapter(item_shape)
        self._relationships: List[TableRelationship] = []

        self.attribute_names: List[str] = _dedupe([
            name for variant in self._variants for name in variant.model_fields
        ])
        self.key_attribute_names: List[str] = [partition_key] + ([sort_key] if sort_key is not None else [])

        if self.version_attribute_name in self.attribute_names:
            raise ValueError(
                f"{table_name} table's item shape includes reserved version attribute "
                f"\"{self.version_attribute_name}\"."
            )
        for key_attribute_name in self.key_attribute_names:
            if key_attribute_name not in self.attribute_names:
                raise ValueError(
                    f"{table_name} table's key attribute \"{key_attribute_name}\" is not declared by its item shape."
                )

    def __repr__(self) -> str:
        return f"Table({self.table_name!r})"

    # Index interface
    @property
    def table(self) -> 'Table':
        return self

    @property
    def index_name(self) -> Optional[str]:
        return None

    @property
    def resume_key_attribute_names(self) -> List[str]:
        return list(self.key_attribute_names)

    def attribute_annotation(self, attribute_name: str) -> Any:
        """Type of an attribute across every variant of the item shape.

        When variants declare the attribute with different types, the result is
        the Union of those types.

        Raises:
            ValueError: If no variant declares the attribute
        """
        annotations = _dedupe([
            variant.model_fields[attribute_name].annotation
            for variant in self._variants
            if attribute_name in variant.model_fields
        ])
        if not annotations:
            raise ValueError(f"{self.table_name} table has no attribute \"{attribute_name}\".")
        if len(annotations) == 1:
            return annotations[0]
        return Union[tuple(annotations)]

    def key_model(self, attribute_names: List[str], model_name: str) -> Type[BaseModel]:
        """Build a strict pydantic model of the given key attributes."""
        fields = {name: (self.attribute_annotation(name), ...) for name in attribute_names}
        return create_model(model_name, __config__=ConfigDict(extra='forbid'), **fields)

    # Items
    def validate_item(self, data: Any) -> BaseModel:
        """Validate a mapping (or model instance) against the item shape.

        Returns:
            Instance of one of the shape's model classes

        Raises:
            ItemValidationError: If the data does not match the item shape
        """
        try:
            return self._adapter.validate_python(data)
        except PydanticValidationError as e:
            raise ItemValidationError(
                f"Item does not match the item shape of table '{self.table_name}': {e}",
                issues=e.errors(),
                original_error=e
            ) from e

    def item_attributes(self, item: BaseModel) -> Dict[str, Any]:
        """Stored representation of an item (absent attributes omitted, no version)."""
        if hasattr(item, 'to_attributes'):
            return item.to_attributes()
        return from_store_value(to_store_value(item.model_dump(exclude_none=True)))

    def item_key(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        return {name: attributes.get(name) for name in self.key_attribute_names}

    def key_pointer(self, attributes: Dict[str, Any], separator: str = DEFAULT_COMPOSITE_KEY_SEPARATOR) -> str:
        """Encode an item's key the way relationship pointer attributes refer to it."""
        if self.sort_key is None:
            return str(attributes.get(self.partition_key))
        return f"{attributes.get(self.partition_key)}{separator}{attributes.get(self.sort_key)}"

    # Relationships
    def add_relationship(
        self,
        type: TableRelationshipType,
        pointer_attribute_name: str,
        peer_table: 'Table',
        peer_pointer_attribute_name: str,
        composite_key_separator: str = DEFAULT_COMPOSITE_KEY_SEPARATOR,
        item_exemption: Optional[Callable[[Dict[str, Any]], bool]] = None,
        peer_item_exemption: Optional[Callable[[Dict[str, Any]], bool]] = None
    ) -> None:
        """
        Add a relationship to the table, enforced by OptimisticDdbClient.commit_items.

        The flipped relationship is registered on the peer table as well.

        Args:
            type: The nature of the relationship, seen from this table
            pointer_attribute_name: Attribute of this table pointing to peer items
            peer_table: The other table of the relationship
            peer_pointer_attribute_name: Attribute of the peer table pointing to items of this table
            composite_key_separator: Joins partition and sort key in key-pointers
            item_exemption: Predicate over an item's stored attributes exempting it
            peer_item_exemption: Predicate over a peer item's stored attributes exempting it

        Raises:
            TableRelationshipAlreadyExistsError: If this exact edge is already registered
            ValueError: If a pointer attribute is a key or is not declared
        """
        type = TableRelationshipType(type)
        self._check_pointer_attribute(pointer_attribute_name)
        peer_table._check_pointer_attribute(peer_pointer_attribute_name)

        for relationship in self._relationships:
            if relationship.peer_table is peer_table and relationship.pointer_attribute_name == pointer_attribute_name:
                raise TableRelationshipAlreadyExistsError(self.table_name, pointer_attribute_name, peer_table.table_name)

        self._relationships.append(TableRelationship(
            type=type,
            pointer_attribute_name=pointer_attribute_name,
            peer_table=peer_table,
            peer_pointer_attribute_name=peer_pointer_attribute_name,
            composite_key_separator=composite_key_separator,
            item_exemption=item_exemption,
            peer_item_exemption=peer_item_exemption
        ))
        logger.debug(
            f"Added {type.value} relationship {self.table_name}.{pointer_attribute_name} -> "
            f"{peer_table.table_name}.{peer_pointer_attribute_name}"
        )

        try:
            peer_table.add_relationship(
                type=type.flipped,
                pointer_attribute_name=peer_pointer_attribute_name,
                peer_table=self,
                peer_pointer_attribute_name=pointer_attribute_name,
                composite_key_separator=composite_key_separator,
                item_exemption=peer_item_exemption,
                peer_item_exemption=item_exemption
            )
        except TableRelationshipAlreadyExistsError:
            pass

    @property
    def relationships(self) -> List[TableRelationship]:
        """Relationships of the table. Each has a flipped counterpart on its peer table."""
        return list(self._relationships)

    def _check_pointer_attribute(self, attribute_name: str) -> None:
        if attribute_name not in self.attribute_names:
            raise ValueError(f"{self.table_name} table has no attribute \"{attribute_name}\".")
        if attribute_name in self.key_attribute_names:
            raise ValueError(f"{self.table_name} table's key attribute \"{attribute_name}\" cannot be a pointer.")


# =============================================================================
# Secondary Index
# =============================================================================

class SecondaryIndex:
    """
    A global secondary index over a Table. Reads through it are eventually consistent.

    Example:
        connections_by_resource = SecondaryIndex(
            table=connections,
            index_name="resource-id",
            partition_key="resourceId",
        )
    """

    def __init__(self, table: Table, index_name: str, partition_key: str, sort_key: Optional[str] = None):
        for key_attribute_name in [partition_key] + ([sort_key] if sort_key is not None else []):
            if key_attribute_name not in table.attribute_names:
                raise ValueError(
                    f"Index {index_name} key attribute \"{key_attribute_name}\" is not declared by "
                    f"{table.table_name} table's item shape."
                )
        self.table = table
        self.index_name = index_name
        self.partition_key = partition_key
        self.sort_key = sort_key
        self.key_attribute_names: List[str] = [partition_key] + ([sort_key] if sort_key is not None else [])

    def __repr__(self) -> str:
        return f"SecondaryIndex({self.table.table_name!r}, {self.index_name!r})"

    @property
    def resume_key_attribute_names(self) -> List[str]:
        """A GSI's LastEvaluatedKey carries its own keys plus the base table's keys."""
        return _dedupe(self.key_attribute_names + self.table.key_attribute_names)
