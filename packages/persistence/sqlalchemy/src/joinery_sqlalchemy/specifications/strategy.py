"""
SQLAlchemy operator compilation strategy.

Provides the ``SQLAlchemyOperator`` interface, a registry, and the
default set of built-in operator implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement

    from joinery_specifications.operators import FilterOperator


class SQLAlchemyOperator(ABC):
    """
    Strategy interface for compiling a filter operator
    into a SQLAlchemy ``ColumnElement[bool]``.
    """

    @property
    @abstractmethod
    def name(self) -> FilterOperator:
        """The operator this strategy handles."""
        ...

    @abstractmethod
    def apply(
        self,
        column: Any,
        value: Any,
    ) -> ColumnElement[bool]:
        """
        Build a SQLAlchemy filter clause.

        Args:
            column: A SQLAlchemy column.
            value: The condition value, already in storage form.

        Returns:
            A SQLAlchemy boolean expression.
        """
        ...


class SQLAlchemyOperatorRegistry:
    """
    Registry of ``SQLAlchemyOperator`` instances keyed by
    :class:`FilterOperator`.
    """

    def __init__(self) -> None:
        self._operators: dict[FilterOperator, SQLAlchemyOperator] = {}

    def register(self, operator: SQLAlchemyOperator) -> None:
        self._operators[operator.name] = operator

    def register_all(self, *operators: SQLAlchemyOperator) -> None:
        for op in operators:
            self.register(op)

    def get(self, name: FilterOperator) -> SQLAlchemyOperator | None:
        return self._operators.get(name)

    @property
    def supported_operators(self) -> set[FilterOperator]:
        return set(self._operators.keys())

    def apply(
        self,
        name: FilterOperator,
        column: Any,
        value: Any,
    ) -> ColumnElement[bool]:
        """
        Look up the operator and apply.

        Raises:
            ValueError: If the operator is not registered.
        """
        op = self.get(name)
        if op is None:
            raise ValueError(f"Unsupported operator for SQLAlchemy: {name}")
        return op.apply(column, value)
