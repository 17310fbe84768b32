"""
Compile ``QueryOptions`` filters and ordering into SQLAlchemy expressions.

Uses the strategy pattern: each operator is an isolated class in
``operators/``, registered in a ``SQLAlchemyOperatorRegistry``.
``build_sqla_filter`` resolves every condition's field against the root
selectable and delegates clause construction to the registry.

Field names arrive in API form and are translated to column names with the
facade's ``KeyCasing``. A field the root table does not have raises
``FieldNotFoundError`` with suggestions, before any statement runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, asc, desc

from joinery_specifications.exceptions import FieldNotFoundError
from joinery_specifications.query_options import SortDirection

from .operators import DEFAULT_SQLA_REGISTRY

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.sql.expression import FromClause

    from joinery_core.normalization.casing import KeyCasing
    from joinery_specifications.query_options import FilterCondition, QueryOptions

    from .strategy import SQLAlchemyOperatorRegistry


def resolve_column(
    selectable: FromClause,
    field: str,
    *,
    casing: KeyCasing | None = None,
    model_name: str | None = None,
) -> Any:
    """
    Return the column of ``selectable`` backing the API field ``field``.

    With ``casing``, ``field`` must be exactly the API name the column is
    read back under: ``customerId`` resolves ``customer_id``, while
    ``customer_id`` and ``customerID`` are unknown fields.
    """
    if casing is None:
        if field in selectable.c:
            return selectable.c[field]
        available = [c.name for c in selectable.c]
    else:
        name = casing.field_to_storage(field)
        if name in selectable.c and casing.field_to_api(name) == field:
            return selectable.c[name]
        available = [casing.field_to_api(c.name) for c in selectable.c]
        if field in available:
            return list(selectable.c)[available.index(field)]
    raise FieldNotFoundError(field, model_name or selectable.name, available)


def build_sqla_filter(
    selectable: FromClause,
    conditions: Sequence[FilterCondition],
    *,
    casing: KeyCasing | None = None,
    decode: Callable[[str, Any], Any] | None = None,
    registry: SQLAlchemyOperatorRegistry | None = None,
    model_name: str | None = None,
) -> ColumnElement[bool] | None:
    """
    Build one boolean expression ANDing every condition.

    Args:
        selectable: The root table (or alias) the fields belong to.
        conditions: Flattened ``QueryOptions.conditions``.
        casing: API -> storage field-name converter.
        decode: Optional ``(field, value) -> value`` hook turning API
            values (string ids, ISO dates) into stored values.
        registry: Optional custom operator registry. Falls back to
            ``DEFAULT_SQLA_REGISTRY``.

    Returns:
        The expression, or ``None`` when there are no conditions.
    """
    reg = registry or DEFAULT_SQLA_REGISTRY
    clauses = []
    for condition in conditions:
        column = resolve_column(
            selectable, condition.field, casing=casing, model_name=model_name
        )
        value = condition.value
        if decode is not None:
            value = decode(condition.field, value)
        clauses.append(reg.apply(condition.operator, column, value))
    if not clauses:
        return None
    return clauses[0] if len(clauses) == 1 else and_(*clauses)


def build_order_by(
    selectable: FromClause,
    options: QueryOptions | None,
    identity: Sequence[Any],
    *,
    casing: KeyCasing | None = None,
    model_name: str | None = None,
) -> list[Any]:
    """
    Ordering clauses: the requested field, then ``identity`` as tiebreak.

    ``identity`` are the primary-key columns of ``selectable``; they keep
    page boundaries stable when the sort field has duplicates.
    """
    clauses: list[Any] = []
    seen: set[str] = set()
    if options is not None and options.order_by is not None:
        column = resolve_column(
            selectable, options.order_by, casing=casing, model_name=model_name
        )
        direction = desc if options.sort_direction is SortDirection.DESC else asc
        clauses.append(direction(column))
        seen.add(column.name)
    clauses.extend(asc(col) for col in identity if col.name not in seen)
    return clauses
