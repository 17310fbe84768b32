"""Set operators -> $in, $nin."""

from __future__ import annotations

from typing import Any

from joinery_specifications.operators import FilterOperator


def compile_set(field: str, op: FilterOperator, val: Any) -> dict[str, Any] | None:
    """Compile set operators. Returns None if not a set op."""
    if op == FilterOperator.IN:
        return {field: {"$in": val if isinstance(val, list) else [val]}}
    if op == FilterOperator.NOT_IN:
        return {field: {"$nin": val if isinstance(val, list) else [val]}}
    return None
