from __future__ import annotations

from enum import Enum


class FilterOperator(str, Enum):
    """Supported filter operators for query options."""

    # Standard comparison
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GE = "gte"
    LT = "lt"
    LE = "lte"

    # Set membership
    IN = "in"
    NOT_IN = "not_in"

    # String operations
    CONTAINS = "contains"


OPERATOR_ALIASES: dict[str, FilterOperator] = {
    "=": FilterOperator.EQ,
    "==": FilterOperator.EQ,
    "!=": FilterOperator.NE,
    "<>": FilterOperator.NE,
    ">": FilterOperator.GT,
    ">=": FilterOperator.GE,
    "ge": FilterOperator.GE,
    "<": FilterOperator.LT,
    "<=": FilterOperator.LE,
    "le": FilterOperator.LE,
    "nin": FilterOperator.NOT_IN,
    "notin": FilterOperator.NOT_IN,
    "icontains": FilterOperator.CONTAINS,
}

SET_OPERATORS = frozenset({FilterOperator.IN, FilterOperator.NOT_IN})
