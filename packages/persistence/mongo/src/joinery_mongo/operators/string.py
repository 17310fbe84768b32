"""String operators -> $regex, $options (case-insensitive)."""

from __future__ import annotations

import re
from typing import Any

from joinery_specifications.operators import FilterOperator

from ..exceptions import MongoQueryError


def compile_string(field: str, op: FilterOperator, val: Any) -> dict[str, Any] | None:
    """Compile string operators to MongoDB $regex. Returns None if not a string op."""
    if op != FilterOperator.CONTAINS:
        return None
    if not isinstance(val, str):
        raise MongoQueryError(f"String operator {op.value} requires string value")
    return {field: {"$regex": re.escape(val), "$options": "i"}}
