"""
SQLAlchemyDatabase: the ``IDatabase`` facade over one relational database.

Joined reads follow four steps inside a single transaction:

1. qualifying root ids: distinct root primary keys matching the filters
   (joined to the compiled tree only when an inner join hangs off the root);
2. total: ``COUNT`` over step 1 (paged reads only);
3. page: root rows whose key is in step 1, ordered and limited, as the
   ``t0`` subquery;
4. data: the page subquery joined to the tree, handed to
   ``RowTreeAssembler``.

Tables are reflected on first use and cached. Column names are snake_case
in storage and camelCase at the API boundary (``SNAKE_CASE_STORAGE``);
integer keys are strings at the boundary (``IntegerIdCodec``).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import partial
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from joinery_core.normalization import EntityNormalizer
from joinery_core.normalization.casing import SNAKE_CASE_STORAGE
from joinery_core.paging import PagedResult
from joinery_core.plan import JoinPlan
from joinery_core.primitives.exceptions import (
    DuplicateKeyError,
    EntityNotFoundError,
    InvalidIdentifierError,
    NotFoundError,
)
from joinery_core.results import CreateManyResult, CreateResult, DeleteResult
from joinery_specifications import QueryOptions

from .assembler import RowTreeAssembler
from .codec import IntegerIdCodec
from .connection import SQLAlchemyConnectionManager
from .joins import SQLJoinCompiler
from .specifications.compiler import build_order_by, build_sqla_filter
from .tables import TableRegistry, plan_tables, primary_key

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from sqlalchemy import Column, MetaData, Select, Table
    from sqlalchemy.ext.asyncio import AsyncConnection
    from sqlalchemy.sql.expression import FromClause

    from joinery_core.config import SQLConfig
    from joinery_core.normalization.casing import KeyCasing
    from joinery_core.operations import Operation

    from .specifications.strategy import SQLAlchemyOperatorRegistry

logger = logging.getLogger("joinery.sqlalchemy.database")

_UNIQUE_VIOLATION = "23505"


def _is_duplicate_key(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _UNIQUE_VIOLATION:
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate" in message


@contextmanager
def _classify_write_errors(resource: str) -> Iterator[None]:
    """Re-raise unique-constraint failures as ``DuplicateKeyError``."""
    try:
        yield
    except IntegrityError as e:
        if not _is_duplicate_key(e):
            raise
        logger.warning("Duplicate key writing to %s: %s", resource, e.orig)
        raise DuplicateKeyError(resource, str(e.orig)) from e


def _coerce_options(query_options: Any) -> QueryOptions:
    if query_options is None:
        return QueryOptions()
    if isinstance(query_options, QueryOptions):
        return query_options
    return QueryOptions.from_dict(query_options)


class SQLAlchemyDatabase:
    """SQLAlchemy (async) implementation of ``IDatabase``.

    Args:
        connection: Engine owner.
        metadata: Optional ``MetaData`` holding declared tables; tables it
            lacks are reflected.
        casing: Storage/API field-name converter.
        normalizer: Override the default ``IntegerIdCodec`` normalizer.
        registry: Custom filter operator registry.
    """

    def __init__(
        self,
        connection: SQLAlchemyConnectionManager,
        *,
        metadata: MetaData | None = None,
        casing: KeyCasing = SNAKE_CASE_STORAGE,
        normalizer: EntityNormalizer | None = None,
        registry: SQLAlchemyOperatorRegistry | None = None,
    ) -> None:
        self._connection = connection
        self.codec = IntegerIdCodec()
        self.casing = casing
        self.normalizer = normalizer or EntityNormalizer(self.codec, casing)
        self.registry = registry
        self.tables = TableRegistry(metadata)
        self.join_compiler = SQLJoinCompiler(casing)

    @classmethod
    def from_config(cls, config: SQLConfig, **kwargs: Any) -> SQLAlchemyDatabase:
        return cls(SQLAlchemyConnectionManager.from_config(config), **kwargs)

    async def connect(self) -> None:
        await self._connection.connect()

    async def close(self) -> None:
        await self._connection.close()

    # -- normalization --------------------------------------------------

    def preprocess_entity(self, entity: dict[str, Any], schema: Any = None) -> dict[str, Any]:
        return self.normalizer.to_storage(entity, schema)

    def postprocess_entity(self, entity: dict[str, Any], schema: Any = None) -> dict[str, Any]:
        return self.normalizer.to_api(entity, schema)

    def _decode_id(self, entity_id: Any) -> Any:
        if entity_id is None or entity_id == "":
            raise InvalidIdentifierError(entity_id, "an id is required")
        if self.codec.is_native(entity_id):
            return entity_id
        return self.codec.decode(str(entity_id))

    def _where(
        self,
        selectable: FromClause,
        options: QueryOptions,
        schema: Any,
        model_name: str | None = None,
    ) -> Any:
        return build_sqla_filter(
            selectable,
            options.conditions,
            casing=self.casing,
            decode=partial(self.normalizer.filter_value_to_storage, schema=schema),
            registry=self.registry,
            model_name=model_name or selectable.name,
        )

    def _order_by(
        self, selectable: FromClause, options: QueryOptions | None, identity: Sequence[Any]
    ) -> list[Any]:
        return build_order_by(
            selectable, options, identity, casing=self.casing, model_name=selectable.name
        )

    @staticmethod
    def _values(table: Table, row: dict[str, Any]) -> dict[str, Any]:
        values = {k: v for k, v in row.items() if k in table.c}
        if len(values) != len(row):
            logger.debug(
                "Ignoring unknown fields for %s: %s",
                table.name,
                sorted(set(row) - set(values)),
            )
        return values

    async def _table(self, conn: AsyncConnection, resource: str) -> Table:
        return (await self.tables.get(conn, [resource]))[resource]

    # -- joined reads -----------------------------------------------------

    def _qualifying_ids(
        self,
        plan: JoinPlan,
        root_table: Table,
        tables: dict[str, Table],
        options: QueryOptions,
        schema: Any,
        ids: Sequence[Any] | None,
    ) -> Select[Any]:
        root = root_table.alias("r")
        pk = root.c[primary_key(root_table).name]
        from_clause: FromClause = root
        if plan.has_inner_root_join:
            from_clause = self.join_compiler.compile(
                plan, root, root_table, tables, prefix="q"
            ).from_clause
        stmt = select(pk).select_from(from_clause).distinct()
        where = self._where(root, options, schema, root_table.name)
        if where is not None:
            stmt = stmt.where(where)
        if ids is not None:
            stmt = stmt.where(pk.in_(ids))
        return stmt

    async def _read(
        self,
        resource: str,
        plan: JoinPlan,
        options: QueryOptions,
        schema: Any,
        *,
        ids: Sequence[Any] | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        async with self._connection.engine.begin() as conn:
            tables = await self.tables.get(conn, plan_tables(resource, plan))
            root_table = tables[resource]
            pk = primary_key(root_table)
            qualifying = self._qualifying_ids(
                plan, root_table, tables, options, schema, ids
            )

            total: int | None = None
            if options.is_paged:
                count = select(func.count()).select_from(qualifying.subquery())
                total = int((await conn.execute(count)).scalar_one())

            page = (
                select(root_table)
                .where(pk.in_(qualifying))
                .order_by(*self._order_by(root_table, options, [pk]))
            )
            if options.limit is not None:
                page = page.limit(options.limit)
            if options.skip:
                page = page.offset(options.skip)
            page_sq = page.subquery("t0")

            compiled = self.join_compiler.compile(plan, page_sq, root_table, tables)
            stmt = (
                select(*compiled.columns)
                .select_from(compiled.from_clause)
                .order_by(
                    *self._order_by(page_sq, options, [page_sq.c[pk.name]]),
                    *compiled.child_order,
                )
            )
            logger.debug("Joined read on %s: %s", resource, stmt)
            rows = (await conn.execute(stmt)).mappings().all()

        docs = RowTreeAssembler(plan, compiled.root, compiled.layouts).assemble(rows)
        entities = self.normalizer.to_api_many(docs, schema)
        return entities, total if total is not None else len(entities)

    async def get_all(
        self,
        resource: str,
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> list[dict[str, Any]]:
        plan = JoinPlan.resolve(operations)
        entities, _ = await self._read(resource, plan, QueryOptions(), schema)
        return entities

    async def get(
        self,
        resource: str,
        operations: Sequence[Operation],
        query_options: Any,
        *,
        schema: Any = None,
    ) -> PagedResult[dict[str, Any]]:
        plan = JoinPlan.resolve(operations)
        options = _coerce_options(query_options)
        entities, total = await self._read(resource, plan, options, schema)
        if not options.is_paged:
            return PagedResult.unpaged(entities, total)
        return PagedResult(
            entities=entities,
            total=total,
            page=options.page or 1,
            page_size=options.page_size or total,
        )

    async def get_by_id(
        self,
        resource: str,
        operations: Sequence[Operation],
        entity_id: str,
        *,
        schema: Any = None,
    ) -> dict[str, Any] | None:
        plan = JoinPlan.resolve(operations)
        key = self._decode_id(entity_id)
        entities, _ = await self._read(resource, plan, QueryOptions(), schema, ids=[key])
        return entities[0] if entities else None

    # -- plain reads ------------------------------------------------------

    async def get_count(self, resource: str, query_options: Any = None) -> int:
        options = _coerce_options(query_options)
        async with self._connection.engine.connect() as conn:
            table = await self._table(conn, resource)
            stmt = select(func.count()).select_from(table)
            where = self._where(table, options, None)
            if where is not None:
                stmt = stmt.where(where)
            return int((await conn.execute(stmt)).scalar_one())

    async def find(
        self, resource: str, query_options: Any, *, schema: Any = None
    ) -> list[dict[str, Any]]:
        options = _coerce_options(query_options)
        async with self._connection.engine.connect() as conn:
            table = await self._table(conn, resource)
            stmt = select(table).order_by(
                *self._order_by(table, options, list(table.primary_key.columns))
            )
            where = self._where(table, options, schema)
            if where is not None:
                stmt = stmt.where(where)
            if options.limit is not None:
                stmt = stmt.limit(options.limit)
            if options.skip:
                stmt = stmt.offset(options.skip)
            rows = (await conn.execute(stmt)).mappings().all()
        return self.normalizer.to_api_many([dict(r) for r in rows], schema)

    async def find_one(
        self, resource: str, query_options: Any, *, schema: Any = None
    ) -> dict[str, Any] | None:
        options = _coerce_options(query_options)
        rows = await self.find(resource, options.with_page(1, 1), schema=schema)
        return rows[0] if rows else None

    # -- writes -----------------------------------------------------------

    async def _insert(
        self, conn: AsyncConnection, table: Table, pk: Column[Any], row: dict[str, Any]
    ) -> dict[str, Any]:
        values = self._values(table, row)
        if values.get(pk.name) is None:
            values.pop(pk.name, None)
        result = await conn.execute(insert(table).values(values))
        key = result.inserted_primary_key[0]
        stored = (await conn.execute(select(table).where(pk == key))).mappings().one()
        return dict(stored)

    async def create(
        self, resource: str, entity: dict[str, Any], *, schema: Any = None
    ) -> CreateResult:
        row = self.preprocess_entity(entity, schema)
        with _classify_write_errors(resource):
            async with self._connection.engine.begin() as conn:
                table = await self._table(conn, resource)
                pk = primary_key(table)
                stored = await self._insert(conn, table, pk, row)
        logger.debug("Inserted %s into %s", stored[pk.name], resource)
        return CreateResult(
            inserted_id=self.codec.encode(stored[pk.name]),
            entity=self.postprocess_entity(stored, schema),
        )

    async def create_many(
        self, resource: str, entities: Sequence[dict[str, Any]], *, schema: Any = None
    ) -> CreateManyResult:
        if not entities:
            return CreateManyResult()
        rows = self.normalizer.to_storage_many(list(entities), schema)
        with _classify_write_errors(resource):
            async with self._connection.engine.begin() as conn:
                table = await self._table(conn, resource)
                pk = primary_key(table)
                stored = [await self._insert(conn, table, pk, row) for row in rows]
        logger.debug("Inserted %d row(s) into %s", len(stored), resource)
        return CreateManyResult(
            inserted_ids=[self.codec.encode(s[pk.name]) for s in stored],
            entities=self.normalizer.to_api_many(stored, schema),
        )

    async def update(
        self,
        resource: str,
        query_options: Any,
        changes: dict[str, Any],
        *,
        schema: Any = None,
    ) -> list[dict[str, Any]]:
        options = _coerce_options(query_options)
        with _classify_write_errors(resource):
            async with self._connection.engine.begin() as conn:
                table = await self._table(conn, resource)
                pk = primary_key(table)
                match = select(pk).order_by(pk)
                where = self._where(table, options, schema)
                if where is not None:
                    match = match.where(where)
                ids = list((await conn.execute(match)).scalars().all())
                if not ids:
                    raise NotFoundError(
                        f"No {resource} match {options.to_dict().get('filters', {})}"
                    )
                values = self._values(table, self.preprocess_entity(changes, schema))
                values.pop(pk.name, None)
                if values:
                    await conn.execute(update(table).where(pk.in_(ids)).values(values))
                rows = (
                    await conn.execute(select(table).where(pk.in_(ids)).order_by(pk))
                ).mappings().all()
        logger.debug("Updated %d row(s) in %s", len(ids), resource)
        return self.normalizer.to_api_many([dict(r) for r in rows], schema)

    async def batch_update(
        self,
        resource: str,
        entities: Sequence[dict[str, Any]],
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> list[dict[str, Any]]:
        plan = JoinPlan.resolve(operations)
        if not entities:
            return []
        ids: list[Any] = []
        with _classify_write_errors(resource):
            async with self._connection.engine.begin() as conn:
                table = await self._table(conn, resource)
                pk = primary_key(table)
                for entity in entities:
                    values = self._values(table, self.preprocess_entity(entity, schema))
                    key = self._decode_id(values.pop(pk.name, None))
                    ids.append(key)
                    if values:
                        await conn.execute(update(table).where(pk == key).values(values))
        found, _ = await self._read(resource, plan, QueryOptions(), schema, ids=ids)
        api_pk = self.casing.field_to_api(pk.name)
        by_id = {str(entity[api_pk]): entity for entity in found}
        return [by_id[str(i)] for i in ids if str(i) in by_id]

    async def _update_by_id(
        self,
        resource: str,
        entity_id: str,
        operations: Sequence[Operation],
        schema: Any,
        build_values: Callable[[Table, Column[Any]], dict[str, Any]],
    ) -> dict[str, Any]:
        plan = JoinPlan.resolve(operations)
        key = self._decode_id(entity_id)
        with _classify_write_errors(resource):
            async with self._connection.engine.begin() as conn:
                table = await self._table(conn, resource)
                pk = primary_key(table)
                values = build_values(table, pk)
                if values:
                    result = await conn.execute(
                        update(table).where(pk == key).values(values)
                    )
                    matched = result.rowcount
                else:
                    exists = select(func.count()).select_from(table).where(pk == key)
                    matched = (await conn.execute(exists)).scalar_one()
                if not matched:
                    raise EntityNotFoundError(resource, entity_id)
        found, _ = await self._read(resource, plan, QueryOptions(), schema, ids=[key])
        if not found:
            raise EntityNotFoundError(resource, entity_id)
        return found[0]

    async def full_update_by_id(
        self,
        resource: str,
        entity_id: str,
        entity: dict[str, Any],
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> dict[str, Any]:
        row = self.preprocess_entity(entity, schema)

        def replace_all(table: Table, pk: Column[Any]) -> dict[str, Any]:
            return {c.name: row.get(c.name) for c in table.c if c.name != pk.name}

        return await self._update_by_id(resource, entity_id, operations, schema, replace_all)

    async def partial_update_by_id(
        self,
        resource: str,
        entity_id: str,
        changes: dict[str, Any],
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> dict[str, Any]:
        row = self.preprocess_entity(changes, schema)

        def given(table: Table, pk: Column[Any]) -> dict[str, Any]:
            values = self._values(table, row)
            values.pop(pk.name, None)
            return values

        return await self._update_by_id(resource, entity_id, operations, schema, given)

    async def delete_by_id(self, resource: str, entity_id: str) -> DeleteResult:
        key = self._decode_id(entity_id)
        async with self._connection.engine.begin() as conn:
            table = await self._table(conn, resource)
            result = await conn.execute(delete(table).where(primary_key(table) == key))
        return DeleteResult(count=result.rowcount)

    async def delete_many(self, resource: str, query_options: Any) -> DeleteResult:
        options = _coerce_options(query_options)
        async with self._connection.engine.begin() as conn:
            table = await self._table(conn, resource)
            stmt = delete(table)
            where = self._where(table, options, None)
            if where is not None:
                stmt = stmt.where(where)
            result = await conn.execute(stmt)
        logger.debug("Deleted %d row(s) from %s", result.rowcount, resource)
        return DeleteResult(count=result.rowcount)
