"""
JSON-schema view used to drive identifier and date conversion.

``EntitySchema`` accepts a JSON schema ``dict`` or a pydantic model class and
answers the questions the normalizer asks while walking an entity: which
properties exist, which are required, and which hold identifiers or dates.
Composition keywords are resolved transparently:

* ``$ref`` into ``$defs`` / ``definitions`` of the root schema,
* ``allOf`` (a property exists if any member declares it, and is required
  if any member requires it),
* ``anyOf`` / ``oneOf`` with a ``null`` branch (nullable fields).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import Field

OBJECT_ID_FORMAT = "objectid"
IDENTIFIER_FORMAT = "identifier"
IDENTIFIER_FORMATS = frozenset({OBJECT_ID_FORMAT, IDENTIFIER_FORMAT})
DATETIME_FORMAT = "date-time"
DATE_FORMAT = "date"

Identifier = Annotated[str, Field(json_schema_extra={"format": IDENTIFIER_FORMAT})]
"""String identifier at the API boundary, native id in storage."""


class EntitySchema:
    """Read-only navigator over one node of a JSON schema."""

    __slots__ = ("_node", "_root")

    def __init__(
        self, node: Mapping[str, Any], *, root: Mapping[str, Any] | None = None
    ) -> None:
        self._node = node
        self._root = root if root is not None else node

    @classmethod
    def coerce(cls, schema: Any) -> EntitySchema | None:
        """Build from ``None``, a schema dict, a pydantic model or an ``EntitySchema``."""
        if schema is None or isinstance(schema, EntitySchema):
            return schema
        if isinstance(schema, Mapping):
            return cls(schema)
        model_json_schema = getattr(schema, "model_json_schema", None)
        if callable(model_json_schema):
            return cls(model_json_schema(by_alias=True))
        raise TypeError(
            f"Unsupported schema type {type(schema).__name__}; expected a dict "
            "or a pydantic model class"
        )

    # -- resolution -----------------------------------------------------------

    def _deref(self, node: Mapping[str, Any]) -> Mapping[str, Any]:
        seen: set[str] = set()
        while "$ref" in node:
            ref = node["$ref"]
            if ref in seen or not isinstance(ref, str) or not ref.startswith("#/"):
                break
            seen.add(ref)
            target: Any = self._root
            for part in ref[2:].split("/"):
                target = target.get(part) if isinstance(target, Mapping) else None
            if not isinstance(target, Mapping):
                break
            node = target
        return node

    def _branches(self) -> list[Mapping[str, Any]]:
        """Flatten the node into the concrete schemas it is made of."""
        out: list[Mapping[str, Any]] = []
        stack = [self._node]
        while stack:
            node = self._deref(stack.pop())
            out.append(node)
            for keyword in ("allOf", "anyOf", "oneOf"):
                members = node.get(keyword)
                if isinstance(members, list):
                    stack.extend(
                        m for m in reversed(members)
                        if isinstance(m, Mapping) and m.get("type") != "null"
                    )
        return out

    def _wrap(self, node: Any) -> EntitySchema | None:
        if not isinstance(node, Mapping):
            return None
        return EntitySchema(node, root=self._root)

    # -- queries --------------------------------------------------------------

    @property
    def format(self) -> str | None:
        for branch in self._branches():
            fmt = branch.get("format")
            if isinstance(fmt, str):
                return fmt
        return None

    @property
    def is_identifier(self) -> bool:
        return self.format in IDENTIFIER_FORMATS

    @property
    def is_datetime(self) -> bool:
        return self.format == DATETIME_FORMAT

    @property
    def is_date(self) -> bool:
        return self.format == DATE_FORMAT

    @property
    def property_names(self) -> set[str]:
        names: set[str] = set()
        for branch in self._branches():
            props = branch.get("properties")
            if isinstance(props, Mapping):
                names.update(props)
        return names

    def has_property(self, name: str) -> bool:
        return name in self.property_names

    def property_schema(self, name: str) -> EntitySchema | None:
        for branch in self._branches():
            props = branch.get("properties")
            if isinstance(props, Mapping) and name in props:
                return self._wrap(props[name])
        return None

    def is_required(self, name: str) -> bool:
        return any(
            name in (branch.get("required") or ()) for branch in self._branches()
        )

    @property
    def items(self) -> EntitySchema | None:
        for branch in self._branches():
            if "items" in branch:
                return self._wrap(branch["items"])
        return None

    def identifier_fields(self) -> set[str]:
        """Top-level property names declared as identifiers."""
        return {
            name
            for name in self.property_names
            if (prop := self.property_schema(name)) is not None and prop.is_identifier
        }

    def __repr__(self) -> str:
        title = self._node.get("title")
        return f"EntitySchema({title!r})" if title else "EntitySchema(...)"
