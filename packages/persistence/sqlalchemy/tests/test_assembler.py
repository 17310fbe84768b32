"""Unit tests for RowTreeAssembler on hand-built rows."""

from __future__ import annotations

import copy

import pytest

from joinery_core.operations import JoinManyLeft, JoinOneLeft
from joinery_core.plan import JoinPlan
from joinery_sqlalchemy.assembler import RowTreeAssembler
from joinery_sqlalchemy.joins import NodeLayout

ROOT = NodeLayout(labels=(("r_id", "_id"), ("r_name", "name")), identity=("r_id",))
POLICY = NodeLayout(labels=(("p_id", "_id"), ("p_agent", "agent_id")), identity=("p_id",))
AGENT = NodeLayout(labels=(("a_id", "_id"), ("a_name", "name")), identity=("a_id",))
TAG = NodeLayout(labels=(("t_label", "label"),), identity=("t_label",))


def _row(r_id, r_name, p_id=None, p_agent=None, a_id=None, a_name=None, t_label=None):
    return {
        "r_id": r_id,
        "r_name": r_name,
        "p_id": p_id,
        "p_agent": p_agent,
        "a_id": a_id,
        "a_name": a_name,
        "t_label": t_label,
    }


@pytest.fixture
def assembler() -> RowTreeAssembler:
    plan = JoinPlan.resolve(
        [
            JoinManyLeft("policies", "_id", "clientId", "policies"),
            JoinOneLeft("agents", "policies.agentId", "_id", "agent"),
            JoinManyLeft("tags", "_id", "clientId", "tags"),
        ]
    )
    return RowTreeAssembler(plan, ROOT, {0: POLICY, 1: AGENT, 2: TAG})


def test_sibling_fan_out_is_collapsed(assembler) -> None:
    rows = [
        _row(1, "Acme", 10, 100, 100, "Ann", "x"),
        _row(1, "Acme", 10, 100, 100, "Ann", "y"),
        _row(1, "Acme", 11, None, None, None, "x"),
        _row(1, "Acme", 11, None, None, None, "y"),
    ]
    [acme] = assembler.assemble(rows)
    assert acme == {
        "_id": 1,
        "name": "Acme",
        "policies": [
            {"_id": 10, "agent_id": 100, "agent": {"_id": 100, "name": "Ann"}},
            {"_id": 11, "agent_id": None},
        ],
        "tags": [{"label": "x"}, {"label": "y"}],
    }


def test_unmatched_many_becomes_empty_list(assembler) -> None:
    [solo] = assembler.assemble([_row(2, "Solo")])
    assert solo == {"_id": 2, "name": "Solo", "policies": [], "tags": []}


def test_roots_keep_first_seen_order(assembler) -> None:
    rows = [_row(2, "Solo"), _row(1, "Acme", t_label="x"), _row(2, "Solo")]
    assert [r["_id"] for r in assembler.assemble(rows)] == [2, 1]


def test_children_of_unmatched_parent_are_skipped(assembler) -> None:
    # A stray agent value without a policy has nowhere to attach.
    [acme] = assembler.assemble([_row(1, "Acme", a_id=100, a_name="Ann")])
    assert acme["policies"] == []


def test_rows_are_not_modified(assembler) -> None:
    rows = [_row(1, "Acme", 10, 100, 100, "Ann", "x")]
    snapshot = copy.deepcopy(rows)
    assembler.assemble(rows)
    assert rows == snapshot


def test_empty_plan_returns_root_values() -> None:
    assembler = RowTreeAssembler(JoinPlan.resolve(()), ROOT, {})
    assert assembler.assemble([{"r_id": 1, "r_name": "Acme"}]) == [{"_id": 1, "name": "Acme"}]
    assert assembler.assemble([]) == []


def test_one_join_keeps_only_the_first_match_subtree() -> None:
    plan = JoinPlan.resolve(
        [
            JoinOneLeft("policies", "_id", "clientId", "policy"),
            JoinManyLeft("agents", "policy._id", "policyId", "agents"),
        ]
    )
    assembler = RowTreeAssembler(plan, ROOT, {0: POLICY, 1: AGENT})
    rows = [
        _row(1, "Acme", 10, None, 100, "Ann"),
        _row(1, "Acme", 10, None, 101, "Ben"),
        _row(1, "Acme", 11, None, 103, "Dan"),
    ]
    [acme] = assembler.assemble(rows)
    assert acme["policy"] == {
        "_id": 10,
        "agent_id": None,
        "agents": [{"_id": 100, "name": "Ann"}, {"_id": 101, "name": "Ben"}],
    }
