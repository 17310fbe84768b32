"""Shared fixtures for the SQLAlchemy adapter tests."""

from __future__ import annotations

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, UniqueConstraint

from joinery_sqlalchemy import SQLAlchemyConnectionManager, SQLAlchemyDatabase

pytest_plugins = ["pytest_asyncio"]


def build_metadata() -> MetaData:
    """Tables used across the suite; the facade reflects them on its own."""
    metadata = MetaData()
    Table(
        "customers",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("name", String(50)),
        Column("tier", Integer),
    )
    Table(
        "orders",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("customer_id", Integer),
        Column("total", Integer),
    )
    Table(
        "clients",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("name", String(50)),
        UniqueConstraint("name"),
    )
    Table(
        "policies",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("client_id", Integer),
        Column("policy_no", String(20)),
    )
    Table(
        "agents",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("name", String(50)),
    )
    Table(
        "agents_policies",
        metadata,
        Column("policy_id", Integer),
        Column("agent_id", Integer),
    )
    Table(
        "tags",
        metadata,
        Column("client_id", Integer),
        Column("label", String(20)),
    )
    return metadata


@pytest.fixture
def metadata() -> MetaData:
    return build_metadata()


@pytest.fixture
async def connection(metadata):
    """In-memory SQLite through aiosqlite with every test table created."""
    manager = SQLAlchemyConnectionManager("sqlite+aiosqlite:///:memory:")
    engine = await manager.connect()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield manager
    await manager.close()


@pytest.fixture
def database(connection) -> SQLAlchemyDatabase:
    """Facade with an empty table cache, so every table is reflected."""
    return SQLAlchemyDatabase(connection)


async def _seed(connection: SQLAlchemyConnectionManager, table: str, rows: list[dict]) -> None:
    metadata = build_metadata()
    async with connection.engine.begin() as conn:
        await conn.execute(metadata.tables[table].insert(), rows)


@pytest.fixture
def seed(connection):
    """Insert raw storage rows: ``await seed("orders", [...])``."""

    async def insert(table: str, rows: list[dict]) -> None:
        await _seed(connection, table, rows)

    return insert


@pytest.fixture
async def orders(connection):
    await _seed(
        connection,
        "customers",
        [{"_id": 1, "name": "Ann", "tier": 1}, {"_id": 2, "name": "Bob", "tier": 2}],
    )
    await _seed(
        connection,
        "orders",
        [
            {"_id": 1, "customer_id": 1, "total": 10},
            {"_id": 2, "customer_id": 1, "total": 20},
            {"_id": 3, "customer_id": 99, "total": 30},
        ],
    )


@pytest.fixture
async def clients(connection):
    await _seed(connection, "clients", [{"_id": 1, "name": "Acme"}, {"_id": 2, "name": "Solo"}])
    await _seed(
        connection,
        "policies",
        [
            {"_id": 10, "client_id": 1, "policy_no": "P1"},
            {"_id": 11, "client_id": 1, "policy_no": "P2"},
        ],
    )
    await _seed(
        connection,
        "agents",
        [{"_id": 100, "name": "Ann"}, {"_id": 101, "name": "Ben"}, {"_id": 102, "name": "Cat"}],
    )
    await _seed(
        connection,
        "agents_policies",
        [
            {"policy_id": 10, "agent_id": 100},
            {"policy_id": 10, "agent_id": 101},
            {"policy_id": 10, "agent_id": 102},
            {"policy_id": 11, "agent_id": 101},
        ],
    )
