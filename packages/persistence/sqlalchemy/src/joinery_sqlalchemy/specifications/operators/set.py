"""Set operators for SQLAlchemy: in, not_in."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import or_

from joinery_specifications.operators import FilterOperator

from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement


class InOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.IN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.in_(list(value)))


class NotInOperator(SQLAlchemyOperator):
    """``not_in`` keeps NULL rows, like MongoDB's ``$nin``."""

    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NOT_IN

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return or_(column.is_(None), ~column.in_(list(value)))
