"""joinery-specifications: filter operators and query options.

Store adapters compile ``QueryOptions`` into their native predicates.
"""

from __future__ import annotations

from .exceptions import (
    FieldNotFoundError,
    OperatorNotFoundError,
    QueryOptionsError,
    SpecificationError,
)
from .operators import OPERATOR_ALIASES, SET_OPERATORS, FilterOperator
from .query_options import (
    FilterCondition,
    QueryOptions,
    SortDirection,
    parse_filters,
    parse_operator,
)

__all__ = [
    "FieldNotFoundError",
    "FilterCondition",
    "FilterOperator",
    "OPERATOR_ALIASES",
    "OperatorNotFoundError",
    "QueryOptions",
    "QueryOptionsError",
    "SET_OPERATORS",
    "SortDirection",
    "SpecificationError",
    "parse_filters",
    "parse_operator",
]
