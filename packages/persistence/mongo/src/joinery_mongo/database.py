"""
MongoDatabase: the ``IDatabase`` facade over one MongoDB database.

Reads with join operations run as a single aggregation pipeline compiled by
``MongoPipelineCompiler``; paged reads compute page and total in the same
pipeline. Plain reads and all writes go through the collection API.
Entities cross the facade in API form and are normalized with
``ObjectIdCodec`` (storage and API field names coincide).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import partial
from typing import TYPE_CHECKING, Any

from pymongo import UpdateOne
from pymongo.errors import BulkWriteError
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

from joinery_core.normalization import ID_FIELD, EntityNormalizer
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

from .codec import ObjectIdCodec
from .connection import MongoConnectionManager
from .pipeline import ENTITIES_FIELD, TOTAL_FIELD, MongoPipelineCompiler
from .query_builder import MongoQueryBuilder

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from motor.motor_asyncio import AsyncIOMotorCollection

    from joinery_core.config import MongoConfig
    from joinery_core.operations import Operation

logger = logging.getLogger("joinery.mongo.database")

_DUPLICATE_KEY_CODE = 11000


def _is_duplicate_key(exc: Exception) -> bool:
    if isinstance(exc, MongoDuplicateKeyError):
        return True
    if isinstance(exc, BulkWriteError):
        errors = exc.details.get("writeErrors", []) if exc.details else []
        return any(e.get("code") == _DUPLICATE_KEY_CODE for e in errors)
    return False


@contextmanager
def _classify_write_errors(resource: str) -> Iterator[None]:
    """Re-raise duplicate-key failures as ``DuplicateKeyError``; others pass through."""
    try:
        yield
    except (MongoDuplicateKeyError, BulkWriteError) as e:
        if not _is_duplicate_key(e):
            raise
        logger.warning("Duplicate key writing to %s: %s", resource, e)
        raise DuplicateKeyError(resource, str(e)) from e


def _coerce_options(query_options: Any) -> QueryOptions:
    if query_options is None:
        return QueryOptions()
    if isinstance(query_options, QueryOptions):
        return query_options
    return QueryOptions.from_dict(query_options)


class MongoDatabase:
    """MongoDB implementation of ``IDatabase``."""

    def __init__(
        self,
        connection: MongoConnectionManager,
        *,
        compiler: MongoPipelineCompiler | None = None,
        query_builder: MongoQueryBuilder | None = None,
        normalizer: EntityNormalizer | None = None,
    ) -> None:
        self._connection = connection
        self.codec = ObjectIdCodec()
        self.compiler = compiler or MongoPipelineCompiler()
        self.query_builder = query_builder or MongoQueryBuilder()
        self.normalizer = normalizer or EntityNormalizer(self.codec)

    @classmethod
    def from_config(cls, config: MongoConfig, **kwargs: Any) -> MongoDatabase:
        return cls(MongoConnectionManager.from_config(config), **kwargs)

    async def connect(self) -> None:
        await self._connection.connect()

    async def close(self) -> None:
        self._connection.close()

    def _collection(self, resource: str) -> AsyncIOMotorCollection[Any]:
        return self._connection.database[resource]

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

    def _match(self, options: QueryOptions, schema: Any) -> dict[str, Any]:
        return self.query_builder.build_match(
            options,
            decode=partial(self.normalizer.filter_value_to_storage, schema=schema),
        )

    async def _aggregate(
        self, resource: str, pipeline: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        cursor = self._collection(resource).aggregate(pipeline, allowDiskUse=True)
        return await cursor.to_list(length=None)

    async def _read_by_ids(
        self,
        resource: str,
        plan: JoinPlan,
        ids: list[Any],
        schema: Any,
    ) -> list[dict[str, Any]]:
        pipeline = self.compiler.build(plan, match={ID_FIELD: {"$in": ids}})
        docs = await self._aggregate(resource, pipeline)
        by_id = {doc[ID_FIELD]: doc for doc in docs}
        return [
            self.normalizer.to_api(by_id[i], schema) for i in ids if i in by_id
        ]

    # -- joined reads -----------------------------------------------------

    async def get_all(
        self,
        resource: str,
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> list[dict[str, Any]]:
        plan = JoinPlan.resolve(operations)
        docs = await self._aggregate(resource, self.compiler.build(plan))
        return self.normalizer.to_api_many(docs, schema)

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
        pipeline = self.compiler.build(
            plan,
            match=self._match(options, schema),
            sort=self.query_builder.build_sort(options),
            skip=options.skip,
            limit=options.limit,
            paginate=True,
        )
        result = await self._aggregate(resource, pipeline)
        facet = result[0] if result else {ENTITIES_FIELD: [], TOTAL_FIELD: 0}
        entities = self.normalizer.to_api_many(facet[ENTITIES_FIELD], schema)
        total = int(facet[TOTAL_FIELD])
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
        oid = self._decode_id(entity_id)
        pipeline = self.compiler.build(plan, match={ID_FIELD: oid}, limit=1)
        docs = await self._aggregate(resource, pipeline)
        if not docs:
            return None
        return self.normalizer.to_api(docs[0], schema)

    # -- plain reads ------------------------------------------------------

    async def get_count(self, resource: str, query_options: Any = None) -> int:
        options = _coerce_options(query_options)
        return int(
            await self._collection(resource).count_documents(self._match(options, None))
        )

    async def find(
        self, resource: str, query_options: Any, *, schema: Any = None
    ) -> list[dict[str, Any]]:
        options = _coerce_options(query_options)
        cursor = self._collection(resource).find(self._match(options, schema))
        cursor = cursor.sort(list(self.query_builder.build_sort(options).items()))
        if options.skip:
            cursor = cursor.skip(options.skip)
        if options.limit is not None:
            cursor = cursor.limit(options.limit)
        docs = await cursor.to_list(length=None)
        return self.normalizer.to_api_many(docs, schema)

    async def find_one(
        self, resource: str, query_options: Any, *, schema: Any = None
    ) -> dict[str, Any] | None:
        options = _coerce_options(query_options)
        docs = await self.find(resource, options.with_page(1, 1), schema=schema)
        return docs[0] if docs else None

    # -- writes -----------------------------------------------------------

    async def create(
        self, resource: str, entity: dict[str, Any], *, schema: Any = None
    ) -> CreateResult:
        doc = self.preprocess_entity(entity, schema)
        if doc.get(ID_FIELD) is None:
            doc[ID_FIELD] = self.codec.generate()
        with _classify_write_errors(resource):
            result = await self._collection(resource).insert_one(doc)
        logger.debug("Inserted %s into %s", result.inserted_id, resource)
        return CreateResult(
            inserted_id=self.codec.encode(result.inserted_id),
            entity=self.postprocess_entity(doc, schema),
        )

    async def create_many(
        self, resource: str, entities: Sequence[dict[str, Any]], *, schema: Any = None
    ) -> CreateManyResult:
        if not entities:
            return CreateManyResult()
        docs = self.normalizer.to_storage_many(list(entities), schema)
        for doc in docs:
            if doc.get(ID_FIELD) is None:
                doc[ID_FIELD] = self.codec.generate()
        with _classify_write_errors(resource):
            result = await self._collection(resource).insert_many(docs, ordered=True)
        logger.debug("Inserted %d document(s) into %s", len(result.inserted_ids), resource)
        return CreateManyResult(
            inserted_ids=[self.codec.encode(i) for i in result.inserted_ids],
            entities=self.normalizer.to_api_many(docs, schema),
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
        collection = self._collection(resource)
        match = self._match(options, schema)
        ids = [doc[ID_FIELD] async for doc in collection.find(match, {ID_FIELD: 1})]
        if not ids:
            raise NotFoundError(f"No {resource} match {options.to_dict().get('filters', {})}")
        update = self.preprocess_entity(changes, schema)
        update.pop(ID_FIELD, None)
        with _classify_write_errors(resource):
            await collection.update_many({ID_FIELD: {"$in": ids}}, {"$set": update})
        return await self._read_by_ids(resource, JoinPlan.resolve(()), ids, schema)

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
        requests: list[UpdateOne] = []
        for entity in entities:
            doc = self.preprocess_entity(entity, schema)
            oid = self._decode_id(doc.pop(ID_FIELD, None))
            ids.append(oid)
            requests.append(UpdateOne({ID_FIELD: oid}, {"$set": doc}))
        with _classify_write_errors(resource):
            await self._collection(resource).bulk_write(requests, ordered=True)
        return await self._read_by_ids(resource, plan, ids, schema)

    async def full_update_by_id(
        self,
        resource: str,
        entity_id: str,
        entity: dict[str, Any],
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> dict[str, Any]:
        plan = JoinPlan.resolve(operations)
        oid = self._decode_id(entity_id)
        doc = self.preprocess_entity(entity, schema)
        doc.pop(ID_FIELD, None)
        with _classify_write_errors(resource):
            result = await self._collection(resource).replace_one({ID_FIELD: oid}, doc)
        if result.matched_count == 0:
            raise EntityNotFoundError(resource, entity_id)
        return await self._reread(resource, plan, oid, entity_id, schema)

    async def partial_update_by_id(
        self,
        resource: str,
        entity_id: str,
        changes: dict[str, Any],
        operations: Sequence[Operation] = (),
        *,
        schema: Any = None,
    ) -> dict[str, Any]:
        plan = JoinPlan.resolve(operations)
        oid = self._decode_id(entity_id)
        update = self.preprocess_entity(changes, schema)
        update.pop(ID_FIELD, None)
        with _classify_write_errors(resource):
            result = await self._collection(resource).update_one(
                {ID_FIELD: oid}, {"$set": update}
            )
        if result.matched_count == 0:
            raise EntityNotFoundError(resource, entity_id)
        return await self._reread(resource, plan, oid, entity_id, schema)

    async def _reread(
        self, resource: str, plan: JoinPlan, oid: Any, entity_id: str, schema: Any
    ) -> dict[str, Any]:
        found = await self._read_by_ids(resource, plan, [oid], schema)
        if not found:
            raise EntityNotFoundError(resource, entity_id)
        return found[0]

    async def delete_by_id(self, resource: str, entity_id: str) -> DeleteResult:
        oid = self._decode_id(entity_id)
        result = await self._collection(resource).delete_one({ID_FIELD: oid})
        return DeleteResult(count=result.deleted_count)

    async def delete_many(self, resource: str, query_options: Any) -> DeleteResult:
        options = _coerce_options(query_options)
        result = await self._collection(resource).delete_many(self._match(options, None))
        logger.debug("Deleted %d document(s) from %s", result.deleted_count, resource)
        return DeleteResult(count=result.deleted_count)
