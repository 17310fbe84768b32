"""
Alias resolution for an ordered operation list.

``JoinPlan.resolve`` validates once that the list is topologically ordered
and resolves every operation's attachment point. Both backend compilers
consume the resulting ``PlannedJoin`` nodes instead of re-parsing dotted
``local_field`` strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .operations import Cardinality, JoinKind, ensure_operation
from .primitives.exceptions import OperationOrderError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .operations import Operation

logger = logging.getLogger("joinery.plan")


@dataclass(frozen=True)
class PlannedJoin:
    """
    One operation with its resolved position in the result tree.

    Attributes:
        index: Position in the operation list.
        operation: The operation itself.
        parent: The join this one attaches under, or ``None`` for the root.
        segments: Operation indices from the root down to this join.
        path: Alias names from the root down to this join.
        local_leaf: The ``local_field`` key read on the carrier.
    """

    index: int
    operation: Operation
    parent: PlannedJoin | None
    segments: tuple[int, ...]
    path: tuple[str, ...]
    local_leaf: str

    @property
    def alias(self) -> str:
        return self.operation.alias

    @property
    def cardinality(self) -> Cardinality:
        return self.operation.cardinality

    @property
    def kind(self) -> JoinKind:
        return self.operation.kind

    @property
    def is_many(self) -> bool:
        return self.operation.cardinality is Cardinality.MANY

    @property
    def is_inner(self) -> bool:
        return self.operation.kind is JoinKind.INNER

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)

    @property
    def ancestors(self) -> tuple[PlannedJoin, ...]:
        """Joins from the root down to (not including) this one."""
        chain: list[PlannedJoin] = []
        node = self.parent
        while node is not None:
            chain.append(node)
            node = node.parent
        return tuple(reversed(chain))


class JoinPlan:
    """Validated, resolved operation list shared by both compilers."""

    __slots__ = ("_joins", "_children")

    def __init__(self, joins: tuple[PlannedJoin, ...]) -> None:
        self._joins = joins
        children: dict[int | None, list[PlannedJoin]] = {None: []}
        for planned in joins:
            children.setdefault(planned.index, [])
            parent_index = planned.parent.index if planned.parent else None
            children[parent_index].append(planned)
        self._children = {k: tuple(v) for k, v in children.items()}

    @classmethod
    def resolve(cls, operations: Iterable[Operation] | None) -> JoinPlan:
        """
        Validate ordering and resolve attachment paths.

        Raises:
            OperationOrderError: When a ``local_field`` prefix names an alias
                not produced by an earlier operation, or when two operations
                attach the same alias at the same point.
            InvalidOperationError: When an item is not a join operation.
        """
        resolved: list[PlannedJoin] = []
        by_path: dict[tuple[str, ...], PlannedJoin] = {}

        for index, raw in enumerate(operations or ()):
            op = ensure_operation(raw)
            *prefix, leaf = op.local_field.split(".")
            parent_path = tuple(prefix)
            parent: PlannedJoin | None = None
            if parent_path:
                parent = by_path.get(parent_path)
                if parent is None:
                    raise OperationOrderError(
                        f"Operation #{index} ({op.alias!r}) attaches under "
                        f"'{'.'.join(parent_path)}', which no earlier operation "
                        "produces",
                        index=index,
                    )
            path = (*parent_path, op.alias)
            if path in by_path:
                raise OperationOrderError(
                    f"Operation #{index} re-attaches alias '{'.'.join(path)}'",
                    index=index,
                )
            planned = PlannedJoin(
                index=index,
                operation=op,
                parent=parent,
                segments=(*(parent.segments if parent else ()), index),
                path=path,
                local_leaf=leaf,
            )
            by_path[path] = planned
            resolved.append(planned)

        plan = cls(tuple(resolved))
        if resolved:
            logger.debug(
                "Resolved join plan: %s",
                [p.dotted_path for p in resolved],
            )
        return plan

    def __iter__(self) -> Iterator[PlannedJoin]:
        return iter(self._joins)

    def __len__(self) -> int:
        return len(self._joins)

    def __bool__(self) -> bool:
        return bool(self._joins)

    def __getitem__(self, index: int) -> PlannedJoin:
        return self._joins[index]

    @property
    def roots(self) -> tuple[PlannedJoin, ...]:
        """Joins attached directly to the root entity."""
        return self._children[None]

    def children(self, index: int | None) -> tuple[PlannedJoin, ...]:
        """Joins attached under the join at ``index`` (``None`` for the root)."""
        return self._children.get(index, ())

    @property
    def has_inner_root_join(self) -> bool:
        """Whether some root entity can be dropped by an unmatched inner join."""
        return any(p.is_inner for p in self.roots)
