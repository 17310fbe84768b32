"""Standard comparison operators for SQLAlchemy.

``ne`` also matches NULL, so it selects the same rows as MongoDB's ``$ne``
(which matches missing and null fields).
"""

from __future__ import annotations

import operator as op_module
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import or_

from joinery_specifications.operators import FilterOperator

from ..strategy import SQLAlchemyOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement


class EqualOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.EQ

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op_module.eq(column, value))


class NotEqualOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.NE

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        if value is None:
            return cast("ColumnElement[bool]", column.is_not(None))
        return or_(column.is_(None), op_module.ne(column, value))


class GreaterThanOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.GT

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op_module.gt(column, value))


class LessThanOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.LT

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op_module.lt(column, value))


class GreaterEqualOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.GE

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op_module.ge(column, value))


class LessEqualOperator(SQLAlchemyOperator):
    @property
    def name(self) -> FilterOperator:
        return FilterOperator.LE

    def apply(self, column: Any, value: Any) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", op_module.le(column, value))
