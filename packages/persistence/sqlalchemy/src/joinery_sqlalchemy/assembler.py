"""
Rebuild nested entities from the flat row set of a joined SELECT.

``RowTreeAssembler`` makes one linear pass over the rows. Each row is split
into per-node column groups (see ``NodeLayout``); every node is looked up in
an ordered map keyed by its identity under its parent node, so:

* root entities keep first-seen order and appear once each;
* a ``one`` node collapses to the first match seen under its parent, absent
  when its identity is all NULL (left-join non-match); rows carrying another
  match for that node contribute nothing below it;
* a ``many`` node collapses to the distinct children seen under that parent,
  so fan-out from a sibling array never duplicates entries;
* a ``many`` node with no children becomes an empty list.

Rows are read, never modified. Output keys are column names; casing and
identifier conversion happen afterwards in the normalizer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from joinery_core.plan import JoinPlan

    from .joins import NodeLayout


class _Node:
    __slots__ = ("key", "values", "ones", "manys")

    def __init__(self, key: tuple[Any, ...], values: dict[str, Any]) -> None:
        self.key = key
        self.values = values
        self.ones: dict[int, _Node] = {}
        self.manys: dict[int, dict[tuple[Any, ...], _Node]] = {}


def _values(row: Mapping[str, Any], layout: NodeLayout) -> dict[str, Any]:
    return {name: row[label] for label, name in layout.labels}


def _identity(row: Mapping[str, Any], layout: NodeLayout) -> tuple[Any, ...] | None:
    key = tuple(row[label] for label in layout.identity)
    if all(v is None for v in key):
        return None
    return key


class RowTreeAssembler:
    """Turns joined rows into nested dictionaries for one ``JoinPlan``."""

    def __init__(
        self,
        plan: JoinPlan,
        root: NodeLayout,
        layouts: Mapping[int, NodeLayout],
    ) -> None:
        self.plan = plan
        self.root = root
        self.layouts = layouts

    def assemble(self, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        roots: dict[tuple[Any, ...], _Node] = {}
        for row in rows:
            key = _identity(row, self.root)
            if key is None:
                continue
            node = roots.get(key)
            if node is None:
                node = roots[key] = _Node(key, _values(row, self.root))
            self._place(row, node)
        return [self._build(node, None) for node in roots.values()]

    def _place(self, row: Mapping[str, Any], root: _Node) -> None:
        # Plan order is topological, so a parent is placed before its children.
        placed: dict[int | None, _Node | None] = {None: root}
        for planned in self.plan:
            parent = placed[planned.parent.index if planned.parent else None]
            layout = self.layouts[planned.index]
            key = _identity(row, layout) if parent is not None else None
            if parent is None or key is None:
                placed[planned.index] = None
                continue
            if planned.is_many:
                bucket = parent.manys.setdefault(planned.index, {})
                child = bucket.get(key)
                if child is None:
                    child = bucket[key] = _Node(key, _values(row, layout))
            else:
                child = parent.ones.get(planned.index)
                if child is None:
                    child = _Node(key, _values(row, layout))
                    parent.ones[planned.index] = child
                elif child.key != key:
                    # Later matches of a one join are dropped with their subtree.
                    placed[planned.index] = None
                    continue
            placed[planned.index] = child

    def _build(self, node: _Node, index: int | None) -> dict[str, Any]:
        out = dict(node.values)
        for child in self.plan.children(index):
            if child.is_many:
                bucket = node.manys.get(child.index, {})
                out[child.alias] = [self._build(n, child.index) for n in bucket.values()]
            else:
                one = node.ones.get(child.index)
                if one is not None:
                    out[child.alias] = self._build(one, child.index)
        return out
