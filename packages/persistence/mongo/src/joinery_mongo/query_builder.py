"""Mongo query builder from ``QueryOptions``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .exceptions import MongoQueryError
from .operators import compile_set, compile_standard, compile_string

if TYPE_CHECKING:
    from collections.abc import Callable

    from joinery_specifications.query_options import FilterCondition, QueryOptions

_COMPILERS = [
    compile_standard,
    compile_string,
    compile_set,
]


def _compile_leaf(
    condition: FilterCondition,
    decode: Callable[[str, Any], Any] | None,
) -> dict[str, Any]:
    """Compile a single field condition to a MongoDB query document."""
    value = condition.value
    if decode is not None:
        value = decode(condition.field, value)
    for compiler in _COMPILERS:
        result = compiler(condition.field, condition.operator, value)
        if result is not None:
            return result
    raise MongoQueryError(
        f"Unsupported operator for MongoDB: {condition.operator.value}"
    )


class MongoQueryBuilder:
    """Compiles ``QueryOptions`` to MongoDB match and sort documents."""

    def build_match(
        self,
        options: QueryOptions | None,
        *,
        decode: Callable[[str, Any], Any] | None = None,
    ) -> dict[str, Any]:
        """Build the ``$match`` body from the options' filters.

        Args:
            options: Query options; ``None`` matches everything.
            decode: Optional ``(field, value) -> value`` hook turning API
                values (string ids, ISO dates) into stored values.
        """
        if options is None or not options.filters:
            return {}
        compiled = [_compile_leaf(c, decode) for c in options.conditions]
        if len(compiled) == 1:
            return compiled[0]
        return {"$and": compiled}

    def build_sort(self, options: QueryOptions | None) -> dict[str, int]:
        """Build an ordered sort document with ``_id`` as the tiebreak."""
        if options is None or options.order_by is None:
            return {"_id": 1}
        sign = options.sort_direction.sign
        if options.order_by == "_id":
            return {"_id": sign}
        return {options.order_by: sign, "_id": 1}
