"""IDatabase: the facade protocol every store adapter implements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..operations import Operation
    from ..paging import PagedResult
    from ..results import CreateManyResult, CreateResult, DeleteResult

Entity = dict[str, Any]


@runtime_checkable
class IDatabase(Protocol):
    """
    Store-agnostic entry point consumed by the CRUD layer.

    Every method takes the resource (collection or table) name first.
    Entities going in and coming out are in API form: string ids, ISO
    dates, camelCase field names. ``schema`` is a JSON-schema ``dict`` or a
    pydantic model class and may be omitted.

    Read methods with ``operations`` return joined, nested entities. Write
    methods never join, except for re-reading updated entities.

    ``query_options`` is a ``joinery_specifications.QueryOptions``.
    """

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    def preprocess_entity(self, entity: Entity, schema: Any = None) -> Entity: ...

    def postprocess_entity(self, entity: Entity, schema: Any = None) -> Entity: ...

    async def get_all(
        self,
        resource: str,
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> list[Entity]: ...

    async def get(
        self,
        resource: str,
        operations: Sequence[Operation],
        query_options: Any,
        *,
        schema: Any = None,
    ) -> PagedResult[Entity]: ...

    async def get_by_id(
        self,
        resource: str,
        operations: Sequence[Operation],
        entity_id: str,
        *,
        schema: Any = None,
    ) -> Entity | None: ...

    async def get_count(self, resource: str, query_options: Any = None) -> int: ...

    async def find(
        self, resource: str, query_options: Any, *, schema: Any = None
    ) -> list[Entity]: ...

    async def find_one(
        self, resource: str, query_options: Any, *, schema: Any = None
    ) -> Entity | None: ...

    async def create(
        self, resource: str, entity: Entity, *, schema: Any = None
    ) -> CreateResult: ...

    async def create_many(
        self, resource: str, entities: Sequence[Entity], *, schema: Any = None
    ) -> CreateManyResult: ...

    async def update(
        self,
        resource: str,
        query_options: Any,
        changes: Entity,
        *,
        schema: Any = None,
    ) -> list[Entity]: ...

    async def batch_update(
        self,
        resource: str,
        entities: Sequence[Entity],
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> list[Entity]: ...

    async def full_update_by_id(
        self,
        resource: str,
        entity_id: str,
        entity: Entity,
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> Entity: ...

    async def partial_update_by_id(
        self,
        resource: str,
        entity_id: str,
        changes: Entity,
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> Entity: ...

    async def delete_by_id(self, resource: str, entity_id: str) -> DeleteResult: ...

    async def delete_many(self, resource: str, query_options: Any) -> DeleteResult: ...
