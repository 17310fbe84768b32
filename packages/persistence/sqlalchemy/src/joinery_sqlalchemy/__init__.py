"""SQLAlchemy (async) adapter for joinery.

Compiles join plans into aliased join trees, reassembles nested entities
from the flat rows and exposes the ``IDatabase`` facade over an
``AsyncEngine``.
"""

from __future__ import annotations

from .assembler import RowTreeAssembler
from .codec import IntegerIdCodec
from .connection import SQLAlchemyConnectionManager
from .database import SQLAlchemyDatabase
from .exceptions import SQLAlchemyConnectionError, SQLAlchemyPersistenceError
from .joins import CompiledJoins, NodeLayout, SQLJoinCompiler
from .specifications import (
    DEFAULT_SQLA_REGISTRY,
    SQLAlchemyOperator,
    SQLAlchemyOperatorRegistry,
    build_sqla_filter,
)
from .tables import TableRegistry

__all__ = [
    "CompiledJoins",
    "IntegerIdCodec",
    "NodeLayout",
    "RowTreeAssembler",
    "SQLAlchemyConnectionManager",
    "SQLAlchemyDatabase",
    "SQLJoinCompiler",
    "TableRegistry",
    # Filters
    "DEFAULT_SQLA_REGISTRY",
    "SQLAlchemyOperator",
    "SQLAlchemyOperatorRegistry",
    "build_sqla_filter",
    # Exceptions
    "SQLAlchemyConnectionError",
    "SQLAlchemyPersistenceError",
]
