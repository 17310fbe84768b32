"""String operators for SQLAlchemy."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from joinery_specifications.operators import FilterOperator

from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement


class ContainsOperator(SQLAlchemyOperator):
    """Case-insensitive substring match; ``%`` and ``_`` are literal."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.CONTAINS

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.icontains(value, autoescape=True))
