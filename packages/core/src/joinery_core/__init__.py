"""joinery-core: join operations, alias resolution and normalization.

No store dependencies; the MongoDB and SQLAlchemy adapters build on it.
"""

from __future__ import annotations

from .config import MongoConfig, SQLConfig
from .normalization import (
    EntityNormalizer,
    EntitySchema,
    Identifier,
    IdentifierCodec,
    KeyCasing,
    to_camel_case,
    to_snake_case,
)
from .operations import (
    Cardinality,
    JoinKind,
    JoinManyInner,
    JoinManyLeft,
    JoinManyThrough,
    JoinOneInner,
    JoinOneLeft,
    JoinOneThrough,
    Operation,
    ThroughJoin,
    join,
)
from .paging import PagedResult
from .plan import JoinPlan, PlannedJoin
from .ports import IDatabase
from .primitives.exceptions import (
    ConfigurationError,
    DuplicateKeyError,
    EntityNotFoundError,
    InfrastructureError,
    InvalidIdentifierError,
    InvalidOperationError,
    JoineryError,
    NotFoundError,
    OperationOrderError,
    PersistenceError,
)
from .results import CreateManyResult, CreateResult, DeleteResult

__all__ = [
    # Operations
    "Cardinality",
    "JoinKind",
    "JoinManyInner",
    "JoinManyLeft",
    "JoinManyThrough",
    "JoinOneInner",
    "JoinOneLeft",
    "JoinOneThrough",
    "Operation",
    "ThroughJoin",
    "join",
    "JoinPlan",
    "PlannedJoin",
    # Results
    "PagedResult",
    "CreateResult",
    "CreateManyResult",
    "DeleteResult",
    # Normalization
    "EntityNormalizer",
    "EntitySchema",
    "Identifier",
    "IdentifierCodec",
    "KeyCasing",
    "to_camel_case",
    "to_snake_case",
    # Ports / config
    "IDatabase",
    "MongoConfig",
    "SQLConfig",
    # Exceptions
    "ConfigurationError",
    "DuplicateKeyError",
    "EntityNotFoundError",
    "InfrastructureError",
    "InvalidIdentifierError",
    "InvalidOperationError",
    "JoineryError",
    "NotFoundError",
    "OperationOrderError",
    "PersistenceError",
]
