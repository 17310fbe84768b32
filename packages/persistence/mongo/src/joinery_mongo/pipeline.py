"""
Compile a resolved ``JoinPlan`` into one MongoDB aggregation pipeline.

Every planned join becomes a self-contained group of stages:

1. ``$unwind`` each many-cardinality ancestor on its attachment path, so the
   lookup runs once per array element (``includeArrayIndex`` records the
   element position, empty arrays are preserved).
2. ``$lookup`` the source (through joins look up the junction first and
   then the final source keyed by the junction's foreign column).
3. Attach the matches at the resolved path: first match for ``one``
   cardinality (absent when none), the array for ``many``.
4. For inner joins, drop the carrier of an unmatched join: the root document
   is filtered out, a carrying one-object is removed from its parent, an
   array element is flagged and removed on regroup. Removing an object whose
   own join is inner cascades one level up.
5. Regroup the unwound ancestors innermost first, restoring element order
   and multiplicity.

The pipeline ends with a sort on ``order_by`` then ``_id`` and, when paging,
a ``$facet`` computing the page and the total in the same execution.

A missing local value never matches, and foreign documents whose key is
null never match, mirroring SQL equality on NULL. ``$lookup`` against a
collection that does not exist yields no matches. Lookups use the
``localField``/``foreignField`` plus ``pipeline`` form (MongoDB 5.0+) to
return matches ordered by ``_id``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from joinery_core.operations import (
    JoinManyInner,
    JoinManyLeft,
    JoinOneInner,
    JoinOneLeft,
    ThroughJoin,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from joinery_core.plan import JoinPlan, PlannedJoin

logger = logging.getLogger("joinery.mongo.pipeline")

TEMP_PREFIX = "__jn_"
ENTITIES_FIELD = "entities"
TOTAL_FIELD = "total"

_ROOT = f"{TEMP_PREFIX}root"
_ITEMS = f"{TEMP_PREFIX}items"


def _temp(kind: str, planned: PlannedJoin) -> str:
    return f"{TEMP_PREFIX}{kind}{planned.index}"


def _ref(path: str) -> str:
    return "$" + path


def _type_is(path: str, bson_type: str) -> dict[str, Any]:
    return {"$eq": [{"$type": _ref(path)}, bson_type]}


def _without_key(obj: Any, key: str) -> dict[str, Any]:
    return {
        "$arrayToObject": {
            "$filter": {
                "input": {"$objectToArray": obj},
                "cond": {"$ne": ["$$this.k", key]},
            }
        }
    }


def _set_at(
    segments: Sequence[str], build: Callable[[str], Any]
) -> tuple[str, dict[str, Any]]:
    """
    Rewrite the object at ``segments`` with ``build``.

    Returns ``(top_level_field, expression)`` for an ``$addFields`` stage.
    Every level is left untouched unless it is an embedded document, so a
    missing or null carrier stays as it was.
    """

    def rewrite(depth: int) -> dict[str, Any]:
        here = ".".join(segments[: depth + 1])
        if depth == len(segments) - 1:
            inner: Any = build(_ref(here))
        else:
            inner = {"$mergeObjects": [_ref(here), {segments[depth + 1]: rewrite(depth + 1)}]}
        return {"$cond": [_type_is(here, "object"), inner, _ref(here)]}

    return segments[0], rewrite(0)


class MongoPipelineCompiler:
    """Turns a ``JoinPlan`` plus match/sort/paging into pipeline stages."""

    def build(
        self,
        plan: JoinPlan,
        *,
        match: dict[str, Any] | None = None,
        sort: dict[str, int] | None = None,
        skip: int | None = None,
        limit: int | None = None,
        paginate: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Build the full pipeline.

        Args:
            plan: Resolved join plan (may be empty).
            match: Root filter; emitted first.
            sort: Final ordering; defaults to ``{"_id": 1}``.
            skip: Documents to skip (page offset).
            limit: Page size.
            paginate: Emit a ``$facet`` producing ``entities`` and ``total``
                instead of a plain document stream.
        """
        stages: list[dict[str, Any]] = []
        if match:
            stages.append({"$match": match})
        stages.extend(self.compile_joins(plan))

        window: list[dict[str, Any]] = [{"$sort": sort or {"_id": 1}}]
        if skip:
            window.append({"$skip": skip})
        if limit is not None:
            window.append({"$limit": limit})

        if paginate:
            stages.append(
                {
                    "$facet": {
                        ENTITIES_FIELD: window,
                        TOTAL_FIELD: [{"$count": "count"}],
                    }
                }
            )
            stages.append(
                {
                    "$project": {
                        ENTITIES_FIELD: 1,
                        TOTAL_FIELD: {
                            "$ifNull": [{"$arrayElemAt": ["$total.count", 0]}, 0]
                        },
                    }
                }
            )
        else:
            stages.extend(window)

        logger.debug("Compiled pipeline with %d stage(s): %s", len(stages), stages)
        return stages

    def compile_joins(self, plan: JoinPlan) -> list[dict[str, Any]]:
        stages: list[dict[str, Any]] = []
        for planned in plan:
            stages.extend(self._join_stages(planned))
        return stages

    # -- per join -----------------------------------------------------------

    def _join_stages(self, planned: PlannedJoin) -> list[dict[str, Any]]:
        unwound = [a for a in planned.ancestors if a.is_many]
        stages: list[dict[str, Any]] = [self._unwind(a) for a in unwound]
        stages.extend(self._lookup(planned))
        stages.append(self._attach(planned))
        stages.append({"$unset": self._lookup_temps(planned)})
        if planned.is_inner:
            stages.extend(self._drop_carrier(planned, self._unmatched(planned)))
        for ancestor in reversed(unwound):
            stages.extend(self._regroup(ancestor, unwound))
        return stages

    def _unwind(self, planned: PlannedJoin) -> dict[str, Any]:
        return {
            "$unwind": {
                "path": _ref(planned.dotted_path),
                "includeArrayIndex": _temp("i", planned),
                "preserveNullAndEmptyArrays": True,
            }
        }

    def _local_path(self, planned: PlannedJoin) -> str:
        if planned.parent is None:
            return planned.local_leaf
        return f"{planned.parent.dotted_path}.{planned.local_leaf}"

    def _lookup_temps(self, planned: PlannedJoin) -> list[str]:
        temps = [_temp("m", planned)]
        if isinstance(planned.operation, ThroughJoin):
            temps.append(_temp("t", planned))
        return temps

    def _lookup(self, planned: PlannedJoin) -> list[dict[str, Any]]:
        op = planned.operation
        ordered = [{"$sort": {"_id": 1}}]
        if isinstance(op, ThroughJoin):
            junction = _temp("t", planned)
            return [
                {
                    "$lookup": {
                        "from": op.through,
                        "localField": self._local_path(planned),
                        "foreignField": op.through_local_field,
                        "as": junction,
                    }
                },
                {
                    "$lookup": {
                        "from": op.source,
                        "localField": f"{junction}.{op.through_foreign_field}",
                        "foreignField": op.foreign_field,
                        "pipeline": ordered,
                        "as": _temp("m", planned),
                    }
                },
            ]
        if isinstance(op, (JoinOneInner, JoinOneLeft, JoinManyInner, JoinManyLeft)):
            return [
                {
                    "$lookup": {
                        "from": op.source,
                        "localField": self._local_path(planned),
                        "foreignField": op.foreign_field,
                        "pipeline": ordered,
                        "as": _temp("m", planned),
                    }
                }
            ]
        raise TypeError(f"Unsupported operation {type(op).__name__}")

    def _matches(self, planned: PlannedJoin) -> dict[str, Any]:
        """Lookup output with SQL NULL-equality semantics applied."""
        foreign = planned.operation.foreign_field
        return {
            "$cond": [
                {"$eq": [{"$ifNull": [_ref(self._local_path(planned)), None]}, None]},
                [],
                {
                    "$filter": {
                        "input": _ref(_temp("m", planned)),
                        "cond": {"$ne": [{"$ifNull": [f"$$this.{foreign}", None]}, None]},
                    }
                },
            ]
        }

    def _attach(self, planned: PlannedJoin) -> dict[str, Any]:
        matches = self._matches(planned)
        value: Any = matches if planned.is_many else {"$arrayElemAt": [matches, 0]}
        if planned.parent is None:
            return {"$addFields": {planned.alias: value}}
        top, expr = _set_at(
            planned.parent.path,
            lambda obj: {"$mergeObjects": [obj, {planned.alias: value}]},
        )
        return {"$addFields": {top: expr}}

    # -- inner-join drops ---------------------------------------------------

    def _unmatched(self, planned: PlannedJoin) -> dict[str, Any]:
        """True on documents whose join at ``planned`` produced nothing."""
        path = planned.dotted_path
        if planned.is_many:
            empty: dict[str, Any] = {
                "$eq": [{"$size": {"$ifNull": [_ref(path), []]}}, 0]
            }
        else:
            empty = _type_is(path, "missing")
        if planned.parent is None:
            return empty
        return {"$and": [_type_is(planned.parent.dotted_path, "object"), empty]}

    def _drop_carrier(
        self, planned: PlannedJoin, cond: dict[str, Any]
    ) -> list[dict[str, Any]]:
        stages: list[dict[str, Any]] = []
        level = planned.parent
        while True:
            if level is None:
                stages.append({"$match": {"$expr": {"$not": [cond]}}})
                return stages
            if level.is_many:
                flag = _temp("x", level)
                stages.append(
                    {"$addFields": {flag: {"$or": [{"$ifNull": [_ref(flag), False]}, cond]}}}
                )
                return stages
            stages.append(self._remove(level, cond))
            if not level.is_inner:
                return stages
            cond = self._unmatched(level)
            level = level.parent

    def _remove(self, level: PlannedJoin, cond: dict[str, Any]) -> dict[str, Any]:
        if level.parent is None:
            return {
                "$addFields": {
                    level.alias: {"$cond": [cond, "$$REMOVE", _ref(level.alias)]}
                }
            }
        top, expr = _set_at(
            level.parent.path,
            lambda obj: {"$cond": [cond, _without_key(obj, level.alias), obj]},
        )
        return {"$addFields": {top: expr}}

    # -- regroup ------------------------------------------------------------

    def _regroup(
        self, planned: PlannedJoin, unwound: list[PlannedJoin]
    ) -> list[dict[str, Any]]:
        outer = unwound[: unwound.index(planned)]
        index = _temp("i", planned)
        flag = _temp("x", planned)

        sort: dict[str, int] = {"_id": 1}
        group_id: dict[str, Any] = {"_id": "$_id"}
        for o in outer:
            sort[_temp("i", o)] = 1
            group_id[_temp("i", o)] = _ref(_temp("i", o))
        sort[index] = 1

        kept = {
            "$map": {
                "input": {
                    "$filter": {
                        "input": _ref(_ITEMS),
                        "cond": {
                            "$and": [
                                {"$ne": ["$$this.i", None]},
                                {"$not": ["$$this.x"]},
                                {"$eq": [{"$type": "$$this.v"}, "object"]},
                            ]
                        },
                    }
                },
                "in": "$$this.v",
            }
        }
        if planned.parent is None:
            restore: dict[str, Any] = {"$addFields": {planned.alias: kept}}
        else:
            top, expr = _set_at(
                planned.parent.path,
                lambda obj: {"$mergeObjects": [obj, {planned.alias: kept}]},
            )
            restore = {"$addFields": {top: expr}}

        stages: list[dict[str, Any]] = [
            {"$sort": sort},
            {
                "$group": {
                    "_id": group_id,
                    _ROOT: {"$first": "$$ROOT"},
                    _ITEMS: {
                        "$push": {
                            "i": _ref(index),
                            "x": {"$ifNull": [_ref(flag), False]},
                            "v": _ref(planned.dotted_path),
                        }
                    },
                }
            },
            {"$replaceRoot": {"newRoot": {"$mergeObjects": [_ref(_ROOT), {_ITEMS: _ref(_ITEMS)}]}}},
            restore,
            {"$unset": [_ITEMS, index, flag]},
        ]
        if planned.is_inner:
            stages.extend(self._drop_carrier(planned, self._unmatched(planned)))
        return stages
