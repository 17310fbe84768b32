"""Tests for SQLJoinCompiler: aliases, join nesting and row layouts."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from joinery_core.normalization.casing import SNAKE_CASE_STORAGE
from joinery_core.operations import (
    JoinManyLeft,
    JoinManyThrough,
    JoinOneInner,
    JoinOneLeft,
    JoinOneThrough,
)
from joinery_core.plan import JoinPlan
from joinery_specifications.exceptions import FieldNotFoundError
from joinery_sqlalchemy.joins import SQLJoinCompiler

AGENTS_THROUGH = JoinManyThrough(
    "agents",
    "clientPolicies._id",
    "_id",
    "agents",
    through="agents_policies",
    through_local_field="policyId",
    through_foreign_field="agentId",
)


@pytest.fixture
def tables(metadata):
    return metadata.tables


@pytest.fixture
def compiler() -> SQLJoinCompiler:
    return SQLJoinCompiler(SNAKE_CASE_STORAGE)


def _compile(compiler, tables, resource, operations, **kwargs):
    plan = JoinPlan.resolve(operations)
    root_table = tables[resource]
    compiled = compiler.compile(plan, root_table.alias("t0"), root_table, tables, **kwargs)
    stmt = select(*compiled.columns).select_from(compiled.from_clause)
    return compiled, str(stmt.compile(dialect=sqlite.dialect()))


# -- One joins ---------------------------------------------------------------


def test_left_one_renders_outer_join(compiler, tables) -> None:
    compiled, sql = _compile(
        compiler, tables, "orders", [JoinOneLeft("customers", "customerId", "_id", "customer")]
    )
    assert "orders AS t0 LEFT OUTER JOIN customers AS j0 ON t0.customer_id = j0._id" in sql
    assert [str(c.compile(dialect=sqlite.dialect())) for c in compiled.child_order] == [
        "j0._id ASC"
    ]


def test_inner_one_renders_plain_join(compiler, tables) -> None:
    _, sql = _compile(
        compiler, tables, "orders", [JoinOneInner("customers", "customerId", "_id", "customer")]
    )
    assert "LEFT OUTER" not in sql
    assert "JOIN customers AS j0" in sql


def test_labels_and_identity(compiler, tables) -> None:
    compiled, _ = _compile(
        compiler, tables, "orders", [JoinOneLeft("customers", "customerId", "_id", "customer")]
    )
    assert compiled.root.labels == (
        ("t0___id", "_id"),
        ("t0__customer_id", "customer_id"),
        ("t0__total", "total"),
    )
    assert compiled.root.identity == ("t0___id",)
    assert compiled.layouts[0].identity == ("j0___id",)
    assert [c.name for c in compiled.columns] == [
        "t0___id",
        "t0__customer_id",
        "t0__total",
        "j0___id",
        "j0__name",
        "j0__tier",
    ]


def test_table_without_primary_key_uses_every_column(compiler, tables) -> None:
    compiled, _ = _compile(
        compiler, tables, "clients", [JoinManyLeft("tags", "_id", "clientId", "tags")]
    )
    assert compiled.layouts[0].identity == ("j0__client_id", "j0__label")
    assert len(compiled.child_order) == 2


def test_unknown_join_field_raises(compiler, tables) -> None:
    with pytest.raises(FieldNotFoundError) as exc_info:
        _compile(
            compiler, tables, "orders", [JoinOneLeft("customers", "clientId", "_id", "customer")]
        )
    assert exc_info.value.model_name == "orders"


# -- Many and through joins --------------------------------------------------


def test_through_join_nests_junction_with_target(compiler, tables) -> None:
    compiled, sql = _compile(
        compiler,
        tables,
        "clients",
        [JoinManyLeft("policies", "_id", "clientId", "clientPolicies"), AGENTS_THROUGH],
    )
    assert "agents_policies AS j1_through JOIN agents AS j1 ON j1_through.agent_id = j1._id" in sql
    assert "ON j0._id = j1_through.policy_id" in sql
    assert "LEFT OUTER JOIN (policies AS j0" in sql
    assert not any(c.name.startswith("j1_through") for c in compiled.columns)
    assert len(compiled.child_order) == 2


def test_prefix_renames_every_alias(compiler, tables) -> None:
    compiled, sql = _compile(
        compiler,
        tables,
        "clients",
        [JoinManyLeft("policies", "_id", "clientId", "clientPolicies"), AGENTS_THROUGH],
        prefix="q",
    )
    assert "policies AS qj0" in sql
    assert "agents_policies AS qj1_through" in sql
    assert compiled.root.identity == ("qt0___id",)


def test_siblings_attach_to_the_same_parent(compiler, tables) -> None:
    _, sql = _compile(
        compiler,
        tables,
        "clients",
        [
            JoinManyLeft("policies", "_id", "clientId", "clientPolicies"),
            JoinManyLeft("tags", "_id", "clientId", "tags"),
        ],
    )
    assert "ON t0._id = j0.client_id" in sql
    assert "ON t0._id = j1.client_id" in sql


def test_one_through_joins_junction_and_target(compiler, tables) -> None:
    compiled, sql = _compile(
        compiler,
        tables,
        "policies",
        [
            JoinOneThrough(
                "agents",
                "_id",
                "_id",
                "leadAgent",
                through="agents_policies",
                through_local_field="policyId",
                through_foreign_field="agentId",
            )
        ],
    )
    assert "LEFT OUTER JOIN (agents_policies AS j0_through JOIN agents AS j0" in sql
    assert "ON t0._id = j0_through.policy_id" in sql
    assert compiled.layouts[0].identity == ("j0___id",)
    assert not any(c.name.startswith("j0_through") for c in compiled.columns)
