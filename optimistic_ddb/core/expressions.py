"""
Condition Expression Compiler

Turns the small condition DSL used by queries, scans and commits into
DynamoDB expression strings with ExpressionAttributeNames and
ExpressionAttributeValues.

Conditions are tuples (or lists):

    ("status", "=", "available")                      leaf
    ("updatedAt", "between", 100, "and", 200)         leaf
    ("ttl", "exists")                                 leaf
    (("status", "=", "a"), "or", ("status", "=", "b")) boolean composition
    ((("status", "=", "a"), "or", ("status", "=", "b")),)  grouping

Every attribute name and value gets its own alias, so reserved words never
reach the expression and repeated content never collides.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# DSL operator -> DynamoDB operator
OPERATORS = {
    "=": "=",
    "<": "<",
    ">": ">",
    "<=": "<=",
    ">=": ">=",
    "<>": "<>",
    "!=": "<>",
    "begins with": "begins_with",
    "begins-with": "begins_with",
    "contains": "contains",
    "between": "BETWEEN",
    "in": "IN",
    "and": "AND",
    "or": "OR",
}

EXISTENCE_FUNCTIONS = {
    "exists": "attribute_exists",
    "doesn't exist": "attribute_not_exists",
    "doesn't-exist": "attribute_not_exists",
}

FUNCTION_OPERATORS = ("begins with", "begins-with", "contains")

PARTITION_KEY_OPERATORS = ("=",)
SORT_KEY_OPERATORS = ("=", "<", ">", "<=", ">=", "begins with", "begins-with", "between")

_INVALID_ALIAS_CHARACTERS = re.compile(r"[^A-Za-z0-9_]")
_ALIAS_MAX_LENGTH = 16


class ExpressionBuilder:
    """Allocates name (#) and value (:) aliases for one request."""

    def __init__(self):
        self._attribute_names: Dict[str, str] = {}
        self._attribute_values: Dict[str, Any] = {}

    def add_name(self, name: str) -> str:
        return self._add(name, self._attribute_names, "#")

    def add_value(self, value: Any) -> str:
        return self._add(value, self._attribute_values, ":")

    @property
    def attribute_names(self) -> Dict[str, str]:
        return dict(self._attribute_names)

    @property
    def attribute_values(self) -> Dict[str, Any]:
        return dict(self._attribute_values)

    def _add(self, content: Any, aliases: Dict[str, Any], prefix: str) -> str:
        sanitized = _INVALID_ALIAS_CHARACTERS.sub("_", str(content))[:_ALIAS_MAX_LENGTH]
        if not re.match(r"[A-Za-z]", sanitized):
            sanitized = f"A{sanitized}"
        i = 0
        while f"{prefix}{sanitized}_{i}" in aliases:
            i += 1
        alias = f"{prefix}{sanitized}_{i}"
        aliases[alias] = content
        return alias


def _is_condition(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def compile_condition(condition: Sequence[Any], builder: ExpressionBuilder) -> str:
    """Compile one condition into an expression string, registering its aliases.

    Raises:
        ValueError: If the condition is not a recognised leaf, composition or grouping
    """
    if len(condition) == 1 and _is_condition(condition[0]):
        return f"({compile_condition(condition[0], builder)})"

    if len(condition) == 3 and _is_condition(condition[0]) and condition[1] in ("and", "or"):
        if not _is_condition(condition[2]):
            raise ValueError(f"Unexpected condition {condition!r}.")
        left = compile_condition(condition[0], builder)
        right = compile_condition(condition[2], builder)
        return f"{left} {OPERATORS[condition[1]]} {right}"

    if len(condition) < 2 or not isinstance(condition[0], str):
        raise ValueError(f"Unexpected condition {condition!r}.")

    attribute, operator = condition[0], condition[1]

    if operator in EXISTENCE_FUNCTIONS and len(condition) == 2:
        return f"{EXISTENCE_FUNCTIONS[operator]}({builder.add_name(attribute)})"

    if operator in FUNCTION_OPERATORS and len(condition) == 3:
        return f"{OPERATORS[operator]}({builder.add_name(attribute)}, {builder.add_value(condition[2])})"

    if operator == "in" and len(condition) == 3:
        if not condition[2]:
            raise ValueError(f"'in' condition requires at least one value: {condition!r}")
        values = ", ".join(builder.add_value(value) for value in condition[2])
        return f"{builder.add_name(attribute)} IN ({values})"

    if operator == "between" and len(condition) == 5 and condition[3] == "and":
        return " ".join([
            builder.add_name(attribute),
            OPERATORS["between"],
            builder.add_value(condition[2]),
            OPERATORS["and"],
            builder.add_value(condition[4])
        ])

    if operator in OPERATORS and operator not in ("between", "in", "and", "or") \
            and operator not in FUNCTION_OPERATORS and len(condition) == 3:
        return f"{builder.add_name(attribute)} {OPERATORS[operator]} {builder.add_value(condition[2])}"

    raise ValueError(f"Unexpected condition {condition!r}.")


def validate_key_condition(
    condition: Sequence[Any],
    key_attribute_name: Optional[str],
    allowed_operators: Sequence[str],
    kind: str
) -> None:
    """Check a partition-key or sort-key condition against the index's key.

    Raises:
        ValueError: If the condition targets another attribute or uses a disallowed operator
    """
    if key_attribute_name is None:
        raise ValueError(f"Index has no {kind}; {kind} condition {condition!r} is not allowed")
    if len(condition) < 2 or condition[0] != key_attribute_name:
        raise ValueError(f"{kind} condition must target '{key_attribute_name}': {condition!r}")
    if condition[1] not in allowed_operators:
        raise ValueError(
            f"Unsupported {kind} operator {condition[1]!r}. Supported operators: {', '.join(allowed_operators)}"
        )


def get_dynamodb_expression(
    partition_key_condition: Optional[Sequence[Any]] = None,
    sort_key_condition: Optional[Sequence[Any]] = None,
    filter_conditions: Optional[List[Sequence[Any]]] = None,
    condition_conditions: Optional[List[Sequence[Any]]] = None,
    builder: Optional[ExpressionBuilder] = None
) -> Dict[str, Any]:
    """Build the expression parameters of a Query, Scan or conditional write.

    Key conditions are AND-joined, as are filter conditions and condition-check
    conditions. Members whose input is empty are left out entirely.

    Example:
        >>> get_dynamodb_expression(
        ...     partition_key_condition=("id", "=", "4568"),
        ...     filter_conditions=[("ttl", "exists")]
        ... )
        {'KeyConditionExpression': '#id_0 = :A4568_0',
         'FilterExpression': 'attribute_exists(#ttl_0)',
         'ExpressionAttributeNames': {'#id_0': 'id', '#ttl_0': 'ttl'},
         'ExpressionAttributeValues': {':A4568_0': '4568'}}
    """
    builder = builder or ExpressionBuilder()
    key_conditions = [
        condition for condition in (partition_key_condition, sort_key_condition) if condition is not None
    ]
    filter_conditions = filter_conditions or []
    condition_conditions = condition_conditions or []

    expression: Dict[str, Any] = {}
    if key_conditions:
        expression['KeyConditionExpression'] = " AND ".join(
            compile_condition(condition, builder) for condition in key_conditions
        )
    if filter_conditions:
        expression['FilterExpression'] = " AND ".join(
            compile_condition(condition, builder) for condition in filter_conditions
        )
    if condition_conditions:
        expression['ConditionExpression'] = " AND ".join(
            compile_condition(condition, builder) for condition in condition_conditions
        )
    if builder.attribute_names:
        expression['ExpressionAttributeNames'] = builder.attribute_names
    if builder.attribute_values:
        expression['ExpressionAttributeValues'] = builder.attribute_values
    return expression
