"""Exceptions for the SQLAlchemy persistence layer."""

from __future__ import annotations

from joinery_core.primitives.exceptions import PersistenceError


class SQLAlchemyPersistenceError(PersistenceError):
    """Base exception for all SQLAlchemy-specific persistence errors."""


class SQLAlchemyConnectionError(SQLAlchemyPersistenceError):
    """Raised when the engine is used before ``connect()`` or cannot be created."""


__all__: list[str] = [
    "SQLAlchemyConnectionError",
    "SQLAlchemyPersistenceError",
]
