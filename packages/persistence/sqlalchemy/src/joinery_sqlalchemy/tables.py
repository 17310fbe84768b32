"""Lazily reflected table metadata shared by every query of one facade."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy import MetaData

from joinery_core.operations import ThroughJoin
from joinery_core.primitives.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import Column, Table
    from sqlalchemy.ext.asyncio import AsyncConnection

    from joinery_core.plan import JoinPlan

logger = logging.getLogger("joinery.sqlalchemy.tables")


def plan_tables(resource: str, plan: JoinPlan) -> list[str]:
    """Every table name a query over ``resource`` with ``plan`` touches."""
    names = [resource]
    for planned in plan:
        op = planned.operation
        names.append(op.source)
        if isinstance(op, ThroughJoin):
            names.append(op.through)
    return list(dict.fromkeys(names))


class TableRegistry:
    """
    Cache of ``Table`` objects keyed by name.

    Tables already present in the given ``MetaData`` (declared by the
    application) are used as-is; missing ones are reflected on first use.
    """

    def __init__(self, metadata: MetaData | None = None) -> None:
        self.metadata = metadata if metadata is not None else MetaData()
        self._lock = asyncio.Lock()

    async def get(self, conn: AsyncConnection, names: Iterable[str]) -> dict[str, Table]:
        wanted = list(dict.fromkeys(names))
        missing = [n for n in wanted if n not in self.metadata.tables]
        if missing:
            async with self._lock:
                missing = [n for n in missing if n not in self.metadata.tables]
                if missing:
                    logger.debug("Reflecting tables: %s", missing)
                    await conn.run_sync(
                        lambda sync_conn: self.metadata.reflect(
                            bind=sync_conn, only=missing, extend_existing=False
                        )
                    )
        return {n: self.metadata.tables[n] for n in wanted}

    def invalidate(self, name: str | None = None) -> None:
        """Forget one reflected table (or all) after a schema change."""
        if name is None:
            self.metadata.clear()
        elif name in self.metadata.tables:
            self.metadata.remove(self.metadata.tables[name])


def primary_key(table: Table) -> Column:
    """The single primary-key column of ``table``."""
    columns = list(table.primary_key.columns)
    if len(columns) != 1:
        raise ConfigurationError(
            f"Table '{table.name}' must have exactly one primary-key column, "
            f"found {len(columns)}"
        )
    return columns[0]
