"""
Joined reads against a real MongoDB (testcontainers).

Skipped when Docker or testcontainers are unavailable.
"""

from __future__ import annotations

import pytest
from bson import ObjectId

from joinery_core.operations import (
    JoinManyInner,
    JoinManyLeft,
    JoinManyThrough,
    JoinOneInner,
    JoinOneLeft,
    JoinOneThrough,
)
from joinery_specifications import QueryOptions

pytestmark = pytest.mark.integration

ORDER_CUSTOMER = [JoinOneLeft("customers", "customerId", "_id", "customer")]

CLIENT_POLICIES_AGENTS = [
    JoinManyLeft("policies", "_id", "client_id", "clientPolicies"),
    JoinManyThrough(
        "agents",
        "clientPolicies._id",
        "_id",
        "agents",
        through="agents_policies",
        through_local_field="policy_id",
        through_foreign_field="agent_id",
        join_kind="inner",  # type: ignore[arg-type]
    ),
]


async def _insert(db, resource, docs):
    await db._collection(resource).insert_many(docs)


@pytest.fixture
async def orders(real_database):
    ann, bob = ObjectId(), ObjectId()
    await _insert(
        real_database,
        "customers",
        [{"_id": ann, "name": "Ann"}, {"_id": bob, "name": "Bob"}],
    )
    o1, o2, o3 = ObjectId(), ObjectId(), ObjectId()
    await _insert(
        real_database,
        "orders",
        [
            {"_id": o1, "customerId": ann, "total": 10},
            {"_id": o2, "customerId": ann, "total": 20},
            {"_id": o3, "customerId": ObjectId(), "total": 30},
        ],
    )
    return real_database, {"ann": ann, "orders": [o1, o2, o3]}


@pytest.fixture
async def clients(real_database):
    c1, c2 = ObjectId(), ObjectId()
    p1, p2 = ObjectId(), ObjectId()
    agents = [ObjectId() for _ in range(3)]
    await _insert(real_database, "clients", [{"_id": c1, "name": "Acme"}, {"_id": c2, "name": "Solo"}])
    await _insert(
        real_database,
        "policies",
        [{"_id": p1, "client_id": c1, "no": "P1"}, {"_id": p2, "client_id": c1, "no": "P2"}],
    )
    await _insert(real_database, "agents", [{"_id": a, "name": f"agent{i}"} for i, a in enumerate(agents)])
    await _insert(
        real_database,
        "agents_policies",
        [{"policy_id": p1, "agent_id": a} for a in agents]
        + [{"policy_id": p2, "agent_id": agents[0]}],
    )
    return real_database, {"clients": [c1, c2], "policies": [p1, p2]}


class TestOneJoins:
    async def test_left_one(self, orders) -> None:
        db, ids = orders
        rows = await db.get_all("orders", ORDER_CUSTOMER)
        assert len(rows) == 3
        assert rows[0]["customer"] == {"_id": str(ids["ann"]), "name": "Ann"}
        assert rows[1]["customer"] == rows[0]["customer"]
        assert "customer" not in rows[2]

    async def test_inner_one_drops_unmatched_and_counts(self, orders) -> None:
        db, _ = orders
        page = await db.get(
            "orders",
            [JoinOneInner("customers", "customerId", "_id", "customer")],
            QueryOptions(page=1, page_size=10),
        )
        assert page.total == 2
        assert [r["total"] for r in page.entities] == [10, 20]

    async def test_missing_collection_matches_nothing(self, orders) -> None:
        db, _ = orders
        rows = await db.get_all("orders", [JoinOneLeft("nowhere", "customerId", "_id", "x")])
        assert all("x" not in r for r in rows)

    async def test_get_by_id_with_join(self, orders) -> None:
        db, ids = orders
        row = await db.get_by_id("orders", ORDER_CUSTOMER, str(ids["orders"][0]))
        assert row["customer"]["name"] == "Ann"


class TestManyJoins:
    async def test_clients_policies_agents(self, clients) -> None:
        db, ids = clients
        rows = await db.get_all("clients", CLIENT_POLICIES_AGENTS)
        assert [r["name"] for r in rows] == ["Acme", "Solo"]
        acme, solo = rows
        assert [p["no"] for p in acme["clientPolicies"]] == ["P1", "P2"]
        assert [len(p["agents"]) for p in acme["clientPolicies"]] == [3, 1]
        assert solo["clientPolicies"] == []
        assert all("policy_id" not in a for p in acme["clientPolicies"] for a in p["agents"])

    async def test_inner_through_drops_policy_without_agents(self, clients) -> None:
        db, ids = clients
        await db._collection("policies").insert_one(
            {"_id": ObjectId(), "client_id": ids["clients"][0], "no": "P3"}
        )
        rows = await db.get_all("clients", CLIENT_POLICIES_AGENTS)
        assert [p["no"] for p in rows[0]["clientPolicies"]] == ["P1", "P2"]

    async def test_inner_many_drops_root(self, clients) -> None:
        db, _ = clients
        page = await db.get(
            "clients",
            [JoinManyInner("policies", "_id", "client_id", "clientPolicies")],
            {"page": 1, "pageSize": 5},
        )
        assert page.total == 1
        assert [r["name"] for r in page.entities] == ["Acme"]

    async def test_filters_apply_to_root(self, clients) -> None:
        db, _ = clients
        page = await db.get("clients", CLIENT_POLICIES_AGENTS, {"filters": {"name": "Solo"}})
        assert page.total == 1
        assert page.entities[0]["clientPolicies"] == []

    async def test_one_through_keeps_first_agent(self, clients) -> None:
        db, _ = clients
        lead = JoinOneThrough(
            "agents",
            "_id",
            "_id",
            "leadAgent",
            through="agents_policies",
            through_local_field="policy_id",
            through_foreign_field="agent_id",
        )
        rows = await db.get_all("policies", [lead])
        assert [r["leadAgent"]["name"] for r in rows] == ["agent0", "agent0"]


class TestPagination:
    async def test_total_is_stable_across_pages(self, real_database) -> None:
        await _insert(
            real_database, "customers", [{"_id": ObjectId(), "rank": i} for i in range(5)]
        )
        seen = []
        for page_no in (1, 2, 3):
            page = await real_database.get(
                "customers", [], QueryOptions(order_by="rank", page=page_no, page_size=2)
            )
            assert page.total == 5
            assert page.total_pages == 3
            seen.extend(r["rank"] for r in page.entities)
        assert seen == [0, 1, 2, 3, 4]
