"""
Fixtures loading the same logical data set into MongoDB and SQLite.

MongoDB runs in a testcontainers container; the parity suite is skipped
when Docker is unavailable. SQLite runs in memory through aiosqlite.
"""

from __future__ import annotations

import pytest
from bson import ObjectId
from sqlalchemy import Column, Integer, MetaData, String, Table

from joinery_mongo import MongoConnectionManager, MongoDatabase
from joinery_sqlalchemy import SQLAlchemyConnectionManager, SQLAlchemyDatabase

CLIENTS = ["Acme", "Solo", "Zeta"]
# (client index, policy number)
POLICIES = [(0, "P1"), (0, "P2"), (0, "P3"), (2, "Z1")]
AGENTS = ["Ann", "Ben", "Cat"]
# (policy index, agent index); P3 has no agent
ASSIGNMENTS = [(0, 0), (0, 1), (0, 2), (1, 1), (3, 2)]
# (client index or None, total)
ORDERS = [(0, 10), (0, 20), (None, 30), (1, 40), (2, 50)]


def _sql_metadata() -> MetaData:
    metadata = MetaData()
    Table(
        "clients",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("name", String(50)),
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
        "orders",
        metadata,
        Column("_id", Integer, primary_key=True),
        Column("client_id", Integer),
        Column("total", Integer),
    )
    return metadata


@pytest.fixture(scope="module")
def mongo_container():
    pytest.importorskip("testcontainers")

    from testcontainers.mongodb import MongoDbContainer

    try:
        container = MongoDbContainer("mongo:7.0")
        container.start()
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"MongoDB container unavailable: {e}")
    yield container
    container.stop()


@pytest.fixture
async def mongo_database(mongo_container):
    connection = MongoConnectionManager(
        mongo_container.get_connection_url(), database="parity"
    )
    await connection.connect()
    db = connection.database
    for name in ("clients", "policies", "agents", "agents_policies", "orders"):
        await db[name].drop()

    clients = [ObjectId() for _ in CLIENTS]
    policies = [ObjectId() for _ in POLICIES]
    agents = [ObjectId() for _ in AGENTS]
    await db["clients"].insert_many(
        [{"_id": oid, "name": name} for oid, name in zip(clients, CLIENTS)]
    )
    await db["policies"].insert_many(
        [
            {"_id": oid, "clientId": clients[c], "policyNo": no}
            for oid, (c, no) in zip(policies, POLICIES)
        ]
    )
    await db["agents"].insert_many(
        [{"_id": oid, "name": name} for oid, name in zip(agents, AGENTS)]
    )
    await db["agents_policies"].insert_many(
        [{"policyId": policies[p], "agentId": agents[a]} for p, a in ASSIGNMENTS]
    )
    await db["orders"].insert_many(
        [
            {
                "_id": ObjectId(),
                "clientId": clients[c] if c is not None else ObjectId(),
                "total": total,
            }
            for c, total in ORDERS
        ]
    )

    yield MongoDatabase(connection)

    connection.close()


@pytest.fixture
async def sql_database():
    metadata = _sql_metadata()
    connection = SQLAlchemyConnectionManager("sqlite+aiosqlite:///:memory:")
    engine = await connection.connect()
    tables = metadata.tables
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        await conn.execute(
            tables["clients"].insert(),
            [{"_id": i + 1, "name": name} for i, name in enumerate(CLIENTS)],
        )
        await conn.execute(
            tables["policies"].insert(),
            [
                {"_id": i + 1, "client_id": c + 1, "policy_no": no}
                for i, (c, no) in enumerate(POLICIES)
            ],
        )
        await conn.execute(
            tables["agents"].insert(),
            [{"_id": i + 1, "name": name} for i, name in enumerate(AGENTS)],
        )
        await conn.execute(
            tables["agents_policies"].insert(),
            [{"policy_id": p + 1, "agent_id": a + 1} for p, a in ASSIGNMENTS],
        )
        await conn.execute(
            tables["orders"].insert(),
            [
                {"_id": i + 1, "client_id": c + 1 if c is not None else 999, "total": total}
                for i, (c, total) in enumerate(ORDERS)
            ],
        )

    yield SQLAlchemyDatabase(connection)

    await connection.close()


@pytest.fixture
def databases(mongo_database, sql_database):
    return {"mongo": mongo_database, "sql": sql_database}
