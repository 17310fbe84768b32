"""
Join operations: immutable descriptors of one join step.

An operation list is a backend-agnostic description of how to nest related
records under a root entity. The six variants below form a closed set;
compilers dispatch on them with ``isinstance`` checks and never call
behavior on the operations themselves::

    operations = [
        JoinOneLeft(
            source="customers",
            local_field="customerId",
            foreign_field="_id",
            alias="customer",
        ),
    ]

A ``local_field`` with a dotted prefix (``"clientPolicies._id"``) attaches
the joined data under a previously produced alias instead of the root.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Union

from .primitives.exceptions import InvalidOperationError


class Cardinality(str, Enum):
    """Whether a join yields at most one related record or any number."""

    ONE = "one"
    MANY = "many"


class JoinKind(str, Enum):
    """Inner drops the carrying entity on no match; left keeps it."""

    INNER = "inner"
    LEFT = "left"


def _require_name(value: Any, attr: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidOperationError(f"'{attr}' must be a non-empty string, got {value!r}")


@dataclass(frozen=True)
class _JoinBase:
    source: str
    local_field: str
    foreign_field: str
    alias: str

    def __post_init__(self) -> None:
        for attr in ("source", "local_field", "foreign_field", "alias"):
            _require_name(getattr(self, attr), attr)
        if "." in self.alias or self.alias.startswith("$"):
            raise InvalidOperationError(
                f"Alias '{self.alias}' must be a plain field name "
                "(no '.' and no leading '$')"
            )
        if self.local_field.endswith(".") or self.local_field.startswith("."):
            raise InvalidOperationError(
                f"Malformed local_field '{self.local_field}'"
            )

    @property
    def cardinality(self) -> Cardinality:
        raise NotImplementedError

    @property
    def kind(self) -> JoinKind:
        raise NotImplementedError

    @property
    def is_through(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging and error messages."""
        data = asdict(self)
        data["type"] = type(self).__name__
        data["cardinality"] = self.cardinality.value
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class JoinOneInner(_JoinBase):
    """Attach a single related record; drop the carrier when none matches."""

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.ONE

    @property
    def kind(self) -> JoinKind:
        return JoinKind.INNER


@dataclass(frozen=True)
class JoinOneLeft(_JoinBase):
    """Attach a single related record; leave the alias absent when none matches."""

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.ONE

    @property
    def kind(self) -> JoinKind:
        return JoinKind.LEFT


@dataclass(frozen=True)
class JoinManyInner(_JoinBase):
    """Attach an array of related records; drop the carrier when it is empty."""

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.MANY

    @property
    def kind(self) -> JoinKind:
        return JoinKind.INNER


@dataclass(frozen=True)
class JoinManyLeft(_JoinBase):
    """Attach an array of related records, empty when none matches."""

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.MANY

    @property
    def kind(self) -> JoinKind:
        return JoinKind.LEFT


@dataclass(frozen=True)
class ThroughJoin(_JoinBase):
    """
    Join through a junction source; base of the two through variants.

    ``local_field`` is matched against ``through_local_field`` on the
    junction; ``through_foreign_field`` on the junction is matched against
    ``foreign_field`` on ``source``. Only ``source`` records are exposed
    under ``alias``; junction records never appear in results.

    Attributes:
        through: Name of the junction collection/table.
        through_local_field: Junction key referencing the carrier.
        through_foreign_field: Junction key referencing ``source``.
        join_kind: ``LEFT`` keeps carriers without a match,
            ``INNER`` drops them.
    """

    through: str = ""
    through_local_field: str = ""
    through_foreign_field: str = ""
    join_kind: JoinKind = JoinKind.LEFT

    def __post_init__(self) -> None:
        super().__post_init__()
        for attr in ("through", "through_local_field", "through_foreign_field"):
            _require_name(getattr(self, attr), attr)
        if self.through == self.source:
            raise InvalidOperationError(
                f"Junction '{self.through}' must differ from source '{self.source}'"
            )
        if not isinstance(self.join_kind, JoinKind):
            object.__setattr__(self, "join_kind", JoinKind(self.join_kind))

    @property
    def kind(self) -> JoinKind:
        return self.join_kind

    @property
    def is_through(self) -> bool:
        return True


@dataclass(frozen=True)
class JoinOneThrough(ThroughJoin):
    """One related record reached through a junction; the lowest identity wins."""

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.ONE


@dataclass(frozen=True)
class JoinManyThrough(ThroughJoin):
    """Many-to-many join: every related record reached through the junction."""

    @property
    def cardinality(self) -> Cardinality:
        return Cardinality.MANY


Operation = Union[
    JoinOneInner,
    JoinOneLeft,
    JoinManyInner,
    JoinManyLeft,
    JoinOneThrough,
    JoinManyThrough,
]

OPERATION_TYPES: tuple[type[_JoinBase], ...] = (
    JoinOneInner,
    JoinOneLeft,
    JoinManyInner,
    JoinManyLeft,
    JoinOneThrough,
    JoinManyThrough,
)

_VARIANTS: dict[tuple[Cardinality, JoinKind], type[_JoinBase]] = {
    (Cardinality.ONE, JoinKind.INNER): JoinOneInner,
    (Cardinality.ONE, JoinKind.LEFT): JoinOneLeft,
    (Cardinality.MANY, JoinKind.INNER): JoinManyInner,
    (Cardinality.MANY, JoinKind.LEFT): JoinManyLeft,
}


def join(
    source: str,
    local_field: str,
    foreign_field: str,
    alias: str,
    *,
    cardinality: Cardinality | str = Cardinality.ONE,
    kind: JoinKind | str = JoinKind.LEFT,
) -> Operation:
    """Build the variant matching ``cardinality`` and ``kind``."""
    try:
        key = (Cardinality(cardinality), JoinKind(kind))
    except ValueError as e:
        raise InvalidOperationError(str(e)) from e
    variant = _VARIANTS[key]
    return variant(  # type: ignore[return-value]
        source=source,
        local_field=local_field,
        foreign_field=foreign_field,
        alias=alias,
    )


def ensure_operation(value: Any) -> Operation:
    """Reject anything outside the closed set of variants."""
    if not isinstance(value, OPERATION_TYPES):
        raise InvalidOperationError(
            f"Expected a join operation, got {type(value).__name__}"
        )
    return value  # type: ignore[return-value]
