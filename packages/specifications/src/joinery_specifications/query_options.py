"""
Query options: root-entity filters, ordering and 1-based paging.

``QueryOptions`` is built per request and immutable afterwards. Invalid
input raises ``QueryOptionsError`` / ``OperatorNotFoundError`` at
construction time, so a store is never called with malformed options::

    options = QueryOptions(
        filters={"total": {"gte": 100}, "status": {"in": ["open", "paid"]}},
        order_by="createdAt",
        sort_direction="desc",
        page=2,
        page_size=20,
    )

A bare filter value is shorthand for ``eq``: ``{"status": "open"}``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar

from .exceptions import OperatorNotFoundError, QueryOptionsError
from .operators import OPERATOR_ALIASES, SET_OPERATORS, FilterOperator


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any) -> SortDirection:
        if isinstance(value, SortDirection):
            return value
        if value is None:
            return cls.ASC
        text = str(value).strip().lower()
        if text in ("asc", "ascending", "1"):
            return cls.ASC
        if text in ("desc", "descending", "-1"):
            return cls.DESC
        raise QueryOptionsError(
            f"Invalid sort direction {value!r}; expected 'asc' or 'desc'",
            path="sortDirection",
        )

    @property
    def sign(self) -> int:
        return 1 if self is SortDirection.ASC else -1


@dataclass(frozen=True)
class FilterCondition:
    """One ``field <operator> value`` predicate on the root entity."""

    field: str
    operator: FilterOperator
    value: Any


def parse_operator(raw: Any) -> FilterOperator:
    """Resolve an operator name or symbolic alias."""
    if isinstance(raw, FilterOperator):
        return raw
    key = str(raw).strip().lower()
    if key.startswith("$"):
        key = key[1:]
    if key in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[key]
    try:
        return FilterOperator(key)
    except ValueError:
        raise OperatorNotFoundError(
            str(raw), [op.value for op in FilterOperator]
        ) from None


def _normalize_value(field_name: str, op: FilterOperator, value: Any) -> Any:
    if op in SET_OPERATORS:
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise QueryOptionsError(
                f"Operator '{op.value}' on '{field_name}' requires a list of values",
                path=f"filters.{field_name}.{op.value}",
            )
        return list(value)
    if op is FilterOperator.CONTAINS and not isinstance(value, str):
        raise QueryOptionsError(
            f"Operator 'contains' on '{field_name}' requires a string value",
            path=f"filters.{field_name}.contains",
        )
    return value


def parse_filters(
    filters: Mapping[str, Any] | None,
) -> dict[str, dict[FilterOperator, Any]]:
    """Normalize ``{field: {op: value}}`` (or ``{field: value}``) input."""
    if not filters:
        return {}
    if not isinstance(filters, Mapping):
        raise QueryOptionsError("filters must be a mapping", path="filters")
    parsed: dict[str, dict[FilterOperator, Any]] = {}
    for field_name, spec in filters.items():
        if not isinstance(field_name, str) or not field_name:
            raise QueryOptionsError(
                f"Invalid filter field {field_name!r}", path="filters"
            )
        if not isinstance(spec, Mapping):
            spec = {FilterOperator.EQ: spec}
        ops: dict[FilterOperator, Any] = {}
        for raw_op, value in spec.items():
            op = parse_operator(raw_op)
            ops[op] = _normalize_value(field_name, op, value)
        if ops:
            parsed[field_name] = ops
    return parsed


def _validate_positive(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise QueryOptionsError(f"{name} must be an integer, got {value!r}", path=name)
    if value < 1:
        raise QueryOptionsError(f"{name} must be >= 1, got {value}", path=name)
    return value


@dataclass(frozen=True)
class QueryOptions:
    """
    Immutable filter/sort/paging options for one query.

    Attributes:
        filters: Field -> operator -> value, on root-entity fields only.
        order_by: Root field to sort by; ``None`` sorts by identity.
        sort_direction: ``asc`` or ``desc``.
        page: 1-based page number; ``None`` with ``page_size`` ``None``
            means unpaged.
        page_size: Entities per page.
    """

    DEFAULT_PAGE_SIZE: ClassVar[int] = 10

    filters: Mapping[str, Mapping[FilterOperator, Any]] = field(default_factory=dict)
    order_by: str | None = None
    sort_direction: SortDirection = SortDirection.ASC
    page: int | None = None
    page_size: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", parse_filters(self.filters))
        object.__setattr__(
            self, "sort_direction", SortDirection.parse(self.sort_direction)
        )
        if self.order_by is not None and (
            not isinstance(self.order_by, str) or not self.order_by
        ):
            raise QueryOptionsError(
                f"orderBy must be a field name, got {self.order_by!r}",
                path="orderBy",
            )
        page = _validate_positive(self.page, "page")
        page_size = _validate_positive(self.page_size, "pageSize")
        if page is not None and page_size is None:
            page_size = self.DEFAULT_PAGE_SIZE
        elif page_size is not None and page is None:
            page = 1
        object.__setattr__(self, "page", page)
        object.__setattr__(self, "page_size", page_size)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> QueryOptions:
        """Build from the wire shape (camelCase or snake_case keys)."""
        if not data:
            return cls()

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        return cls(
            filters=pick("filters") or {},
            order_by=pick("orderBy", "order_by"),
            sort_direction=pick("sortDirection", "sort_direction"),
            page=pick("page"),
            page_size=pick("pageSize", "page_size"),
        )

    @property
    def is_paged(self) -> bool:
        return self.page is not None and self.page_size is not None

    @property
    def skip(self) -> int | None:
        if not self.is_paged:
            return None
        return (self.page - 1) * self.page_size  # type: ignore[operator]

    @property
    def limit(self) -> int | None:
        return self.page_size if self.is_paged else None

    @property
    def conditions(self) -> tuple[FilterCondition, ...]:
        """Flattened predicates, in declaration order."""
        return tuple(
            FilterCondition(field_name, op, value)
            for field_name, ops in self.filters.items()
            for op, value in ops.items()
        )

    def with_filters(self, filters: Mapping[str, Any]) -> QueryOptions:
        """Return a copy with ``filters`` merged over the existing ones."""
        merged: dict[str, dict[Any, Any]] = {
            name: dict(ops) for name, ops in self.filters.items()
        }
        for name, ops in parse_filters(filters).items():
            merged.setdefault(name, {}).update(ops)
        return replace(self, filters=merged)

    def with_page(self, page: int, page_size: int | None = None) -> QueryOptions:
        """Return a copy pointing at another page."""
        return replace(self, page=page, page_size=page_size or self.page_size)

    def without_paging(self) -> QueryOptions:
        return replace(self, page=None, page_size=None)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the camelCase wire shape."""
        result: dict[str, Any] = {}
        if self.filters:
            result["filters"] = {
                name: {op.value: value for op, value in ops.items()}
                for name, ops in self.filters.items()
            }
        if self.order_by is not None:
            result["orderBy"] = self.order_by
            result["sortDirection"] = self.sort_direction.value
        if self.is_paged:
            result["page"] = self.page
            result["pageSize"] = self.page_size
        return result
