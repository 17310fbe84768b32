"""Standard comparison operators for MongoDB query compilation."""

from __future__ import annotations

from typing import Any

from joinery_specifications.operators import FilterOperator

_MONGO_OP_MAP: dict[FilterOperator, str] = {
    FilterOperator.EQ: "$eq",
    FilterOperator.NE: "$ne",
    FilterOperator.GT: "$gt",
    FilterOperator.GE: "$gte",
    FilterOperator.LT: "$lt",
    FilterOperator.LE: "$lte",
}


def compile_standard(field: str, op: FilterOperator, val: Any) -> dict[str, Any] | None:
    """Compile standard comparison operators to MongoDB query fragments."""
    mongo_op = _MONGO_OP_MAP.get(op)
    if mongo_op is None:
        return None
    return {field: {mongo_op: val}}
