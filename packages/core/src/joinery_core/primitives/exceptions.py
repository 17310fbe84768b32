"""Configuration, lookup and infrastructure exceptions for joinery-core."""

from __future__ import annotations


class JoineryError(Exception):
    """Root exception for the entire joinery toolkit."""


class ConfigurationError(JoineryError):
    """Base class for caller mistakes detected before any store is touched.

    Never retried: the same input fails the same way every time.
    """


class InvalidOperationError(ConfigurationError):
    """Raised when a single join operation is malformed."""


class OperationOrderError(ConfigurationError):
    """Raised when an operation references an alias that is not produced earlier.

    Usage: ``JoinPlan.resolve`` raises this for out-of-order or duplicate
    attachments.
    """

    def __init__(self, message: str, *, index: int | None = None) -> None:
        self.index = index
        super().__init__(message)


class InvalidIdentifierError(ConfigurationError):
    """Raised when an entity id is empty or cannot be decoded by the store codec."""

    def __init__(self, entity_id: object, reason: str | None = None) -> None:
        self.entity_id = entity_id
        msg = f"Invalid identifier {entity_id!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotFoundError(JoineryError):
    """Raised when a resource is not found."""


class EntityNotFoundError(NotFoundError):
    """Raised when a specific entity cannot be found by ID."""

    def __init__(self, entity_type: str, entity_id: object) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id={entity_id!r} not found")


class InfrastructureError(JoineryError):
    """Base class for all infrastructure-related errors."""


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


class DuplicateKeyError(PersistenceError):
    """Raised when a write violates a unique index or constraint.

    The store-specific error is chained as ``__cause__``.
    """

    def __init__(self, resource: str, detail: str | None = None) -> None:
        self.resource = resource
        self.detail = detail
        msg = f"Duplicate key in '{resource}'"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
