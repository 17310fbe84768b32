"""
Query-options exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``SpecificationError`` and provide
``to_dict()`` for API-friendly error responses. Every one of them is also a
``ConfigurationError``: it is raised before any store is touched.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any

from joinery_core.primitives.exceptions import ConfigurationError


class SpecificationError(ConfigurationError):
    """Base exception for all query-options errors."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class QueryOptionsError(SpecificationError):
    """Query options failed validation (bad page, page size, direction...)."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "VALIDATION_ERROR",
            "message": self.message,
            "path": self.path,
        }


class OperatorNotFoundError(SpecificationError):
    """
    Unknown operator specified.

    Provides fuzzy-matched suggestions for likely intended operators.
    """

    def __init__(self, operator: str, valid_operators: list[str]) -> None:
        self.operator = operator
        self.valid_operators = valid_operators
        self.suggestions = get_close_matches(operator, valid_operators, n=3, cutoff=0.6)

        message = f"Unknown operator: '{operator}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid operators: {', '.join(sorted(valid_operators))}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "OPERATOR_NOT_FOUND",
            "operator": self.operator,
            "suggestions": self.suggestions,
            "valid_operators": sorted(self.valid_operators),
        }


class FieldNotFoundError(SpecificationError):
    """
    Filter or sort field that the root entity does not have.

    Uses fuzzy matching to suggest similar valid field names.

    Example error message::

        Invalid field 'customerID' on 'orders'.
        Did you mean one of these?
          • customerId

        Available fields: _id, customerId, total
    """

    def __init__(
        self,
        invalid_field: str,
        model_name: str,
        available_fields: list[str],
        cutoff: float = 0.6,
    ) -> None:
        self.invalid_field = invalid_field
        self.model_name = model_name
        self.available_fields = available_fields
        self.suggestions = get_close_matches(
            invalid_field, available_fields, n=5, cutoff=cutoff
        )
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        lines = [f"Invalid field '{self.invalid_field}' on '{self.model_name}'."]
        if self.suggestions:
            lines.append("Did you mean one of these?")
            for s in self.suggestions:
                lines.append(f"  • {s}")

        sorted_fields = sorted(self.available_fields)
        preview = ", ".join(sorted_fields[:15])
        if len(sorted_fields) > 15:
            preview += ", ..."
        lines.append(f"Available fields: {preview}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "FIELD_NOT_FOUND",
            "field": self.invalid_field,
            "model": self.model_name,
            "suggestions": self.suggestions,
            "available_fields": sorted(self.available_fields),
        }
