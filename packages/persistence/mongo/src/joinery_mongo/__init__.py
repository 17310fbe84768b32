"""MongoDB adapter for joinery.

Compiles join plans into aggregation pipelines and exposes the
``IDatabase`` facade over a Motor client.
"""

from __future__ import annotations

from .codec import ObjectIdCodec
from .connection import MongoConnectionManager
from .database import MongoDatabase
from .exceptions import (
    MongoConnectionError,
    MongoPersistenceError,
    MongoQueryError,
)
from .pipeline import MongoPipelineCompiler
from .query_builder import MongoQueryBuilder

__all__ = [
    "MongoConnectionManager",
    "MongoDatabase",
    "MongoPipelineCompiler",
    "MongoQueryBuilder",
    "ObjectIdCodec",
    # Exceptions
    "MongoConnectionError",
    "MongoPersistenceError",
    "MongoQueryError",
]
