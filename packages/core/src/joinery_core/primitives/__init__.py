from .exceptions import (
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

__all__ = [
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
