"""Write results returned by the database facades."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class CreateResult:
    inserted_id: str
    entity: dict[str, Any]


@dataclass(frozen=True)
class CreateManyResult:
    inserted_ids: list[str] = field(default_factory=list)
    entities: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a delete; ``count`` is the number of removed entities."""

    count: int = 0

    @property
    def success(self) -> bool:
        return self.count > 0
