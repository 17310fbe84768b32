"""
Compile a ``JoinPlan`` into one SQLAlchemy FROM clause with aliased tables.

Every planned join gets a generated alias (``j0``, ``j1``... and
``j<n>_through`` for junctions). Children are joined onto their own parent
before the parent is attached, which yields right-nested joins::

    t0 LEFT OUTER JOIN (j0 JOIN j1 ON j0.x = j1.y) ON t0.a = j0.b

so an unmatched inner join only removes its own carrier, never the whole
row of an unrelated branch. Through joins render as
``(junction JOIN final ON junction.fk = final.key)`` attached with the
operation's join kind; junction columns are never selected.

Selected columns are labelled ``<alias>__<column>``. ``NodeLayout`` records
which labels belong to which tree node so ``RowTreeAssembler`` can rebuild
the nesting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import asc, join

from joinery_core.operations import (
    JoinKind,
    JoinManyInner,
    JoinManyLeft,
    JoinOneInner,
    JoinOneLeft,
    ThroughJoin,
)

from .specifications.compiler import resolve_column

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy import Table
    from sqlalchemy.sql.expression import FromClause

    from joinery_core.normalization.casing import KeyCasing
    from joinery_core.plan import JoinPlan, PlannedJoin

logger = logging.getLogger("joinery.sqlalchemy.joins")

LABEL_SEPARATOR = "__"


@dataclass(frozen=True)
class NodeLayout:
    """
    Columns of one result-tree node in the flat row.

    Attributes:
        labels: ``(label, column name)`` pairs in table order.
        identity: Labels whose values identify one entity of this node:
            the primary key, or every column when the table has none.
    """

    labels: tuple[tuple[str, str], ...]
    identity: tuple[str, ...]


@dataclass(frozen=True)
class CompiledJoins:
    """
    FROM clause, labelled columns and per-node layouts for one plan.

    ``child_order`` sorts rows by every joined node's identity in plan order,
    so arrays follow child primary keys and a ``one`` node sees its lowest key
    first.
    """

    from_clause: FromClause
    columns: tuple[Any, ...]
    root: NodeLayout
    layouts: Mapping[int, NodeLayout]
    child_order: tuple[Any, ...]


def _identity_names(selectable: FromClause, table: Table) -> list[str]:
    pk = [c.name for c in table.primary_key.columns]
    return pk if pk else [c.name for c in selectable.c]


class SQLJoinCompiler:
    """Builds aliased join trees for a ``JoinPlan``.

    Args:
        casing: Converts API field names in operations to column names.
    """

    def __init__(self, casing: KeyCasing | None = None) -> None:
        self.casing = casing

    def compile(
        self,
        plan: JoinPlan,
        root: FromClause,
        root_table: Table,
        tables: Mapping[str, Table],
        *,
        prefix: str = "",
    ) -> CompiledJoins:
        """
        Join every planned operation onto ``root``.

        Args:
            plan: Resolved join plan.
            root: The root selectable (table alias or page subquery) whose
                columns match ``root_table``.
            root_table: The root ``Table``, for primary-key lookup.
            tables: Every table named by the plan.
            prefix: Prepended to generated aliases, to keep nested
                subqueries readable.
        """
        targets: dict[int, FromClause] = {}
        junctions: dict[int, FromClause] = {}
        for planned in plan:
            op = planned.operation
            targets[planned.index] = tables[op.source].alias(f"{prefix}j{planned.index}")
            if isinstance(op, ThroughJoin):
                junctions[planned.index] = tables[op.through].alias(
                    f"{prefix}j{planned.index}_through"
                )

        def carrier(planned: PlannedJoin) -> FromClause:
            return root if planned.parent is None else targets[planned.parent.index]

        def subtree(planned: PlannedJoin) -> FromClause:
            target = targets[planned.index]
            node: FromClause = target
            for child in plan.children(planned.index):
                node = attach(node, child)
            op = planned.operation
            if isinstance(op, ThroughJoin):
                junction = junctions[planned.index]
                node = join(
                    junction,
                    node,
                    self._column(junction, op.through_foreign_field, op.through)
                    == self._column(target, op.foreign_field, op.source),
                )
            return node

        def attach(left: FromClause, planned: PlannedJoin) -> FromClause:
            op = planned.operation
            local = self._column(
                carrier(planned),
                planned.local_leaf,
                planned.parent.operation.source if planned.parent else root_table.name,
            )
            if isinstance(op, ThroughJoin):
                remote = self._column(
                    junctions[planned.index], op.through_local_field, op.through
                )
            elif isinstance(op, (JoinOneInner, JoinOneLeft, JoinManyInner, JoinManyLeft)):
                remote = self._column(targets[planned.index], op.foreign_field, op.source)
            else:
                raise TypeError(f"Unsupported operation {type(op).__name__}")
            return join(
                left,
                subtree(planned),
                local == remote,
                isouter=op.kind is JoinKind.LEFT,
            )

        from_clause: FromClause = root
        for planned in plan.roots:
            from_clause = attach(from_clause, planned)

        root_layout = self._layout(root, root_table, f"{prefix}t0")
        columns = [root.c[name].label(label) for label, name in root_layout.labels]
        layouts: dict[int, NodeLayout] = {}
        child_order: list[Any] = []
        for planned in plan:
            target = targets[planned.index]
            table = tables[planned.operation.source]
            layout = self._layout(target, table, target.name)
            layouts[planned.index] = layout
            columns.extend(target.c[name].label(label) for label, name in layout.labels)
            child_order.extend(
                asc(target.c[name]) for name in _identity_names(target, table)
            )

        logger.debug(
            "Compiled %d join(s) onto %s: %s", len(plan), root_table.name, from_clause
        )
        return CompiledJoins(
            from_clause=from_clause,
            columns=tuple(columns),
            root=root_layout,
            layouts=layouts,
            child_order=tuple(child_order),
        )

    def _column(self, selectable: FromClause, field: str, model_name: str) -> Any:
        return resolve_column(
            selectable, field, casing=self.casing, model_name=model_name
        )

    @staticmethod
    def _layout(selectable: FromClause, table: Table, alias: str) -> NodeLayout:
        labels = tuple(
            (f"{alias}{LABEL_SEPARATOR}{c.name}", c.name) for c in selectable.c
        )
        by_name = {name: label for label, name in labels}
        identity = tuple(by_name[n] for n in _identity_names(selectable, table))
        return NodeLayout(labels=labels, identity=identity)
