"""PagedResult: one page of entities plus the total they were drawn from."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PagedResult(Generic[T]):
    """
    Immutable page of results.

    ``total`` ignores pagination but honors filters and inner-join drops,
    so it is the same for every page of the same query.
    """

    entities: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 0

    @classmethod
    def unpaged(cls, entities: list[T], total: int | None = None) -> PagedResult[T]:
        """Wrap a full result set as a single page."""
        count = len(entities) if total is None else total
        return cls(entities=entities, total=count, page=1, page_size=count)

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the camelCase wire shape."""
        return {
            "entities": list(self.entities),
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }
