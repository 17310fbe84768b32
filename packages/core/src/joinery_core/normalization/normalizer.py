"""
Identifier, date and casing normalization between storage and API forms.

Storage form holds native identifiers (``ObjectId``, ``int``), native dates
and the store's field naming. API form holds string identifiers, ISO-8601
date strings and camelCase names. ``EntityNormalizer`` walks an entity
recursively, including joined sub-trees, guided by an optional schema:

* ``_id`` is an identifier at every nesting level, schema or not;
* other identifiers and dates are found through the schema's ``format``;
* in API form, ``None`` is removed for properties the schema marks optional.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .schema import EntitySchema

if TYPE_CHECKING:
    from collections.abc import Callable

    from .casing import KeyCasing

ID_FIELD = "_id"


@runtime_checkable
class IdentifierCodec(Protocol):
    """Converts a store's native identifier to and from its string form."""

    def is_native(self, value: Any) -> bool:
        """True for values in the store's native identifier type."""
        ...

    def is_valid(self, value: str) -> bool:
        """True when ``value`` decodes to a native identifier."""
        ...

    def encode(self, value: Any) -> str: ...

    def decode(self, value: str) -> Any:
        """Raise ``InvalidIdentifierError`` when ``value`` is not valid."""
        ...


def _encode_date(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _decode_datetime(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return value


def _decode_date(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        return value


class EntityNormalizer:
    """Converts entities between storage form and API form.

    Args:
        codec: The store's identifier codec.
        casing: Field-name converter pair, or ``None`` when storage and API
            names coincide (MongoDB).
    """

    def __init__(self, codec: IdentifierCodec, casing: KeyCasing | None = None) -> None:
        self.codec = codec
        self.casing = casing

    # -- identifiers ------------------------------------------------------

    def encode_id(self, value: Any) -> Any:
        if self.codec.is_native(value):
            return self.codec.encode(value)
        return value

    def decode_id(self, value: Any) -> Any:
        """Decode valid string ids; anything else is returned unchanged."""
        if isinstance(value, str) and self.codec.is_valid(value):
            return self.codec.decode(value)
        return value

    # -- entities ---------------------------------------------------------

    def to_api(self, document: Any, schema: Any = None) -> Any:
        """Storage form -> API form. Never mutates ``document``."""
        if document is None:
            return None
        if self.casing is not None:
            document = self.casing.keys_to_api(document)
        return self._walk(
            document,
            EntitySchema.coerce(schema),
            on_id=self.encode_id,
            on_datetime=_encode_date,
            on_date=_encode_date,
            drop_optional_nulls=True,
        )

    def to_storage(self, entity: Any, schema: Any = None) -> Any:
        """API form -> storage form. Never mutates ``entity``."""
        if entity is None:
            return None
        converted = self._walk(
            entity,
            EntitySchema.coerce(schema),
            on_id=self.decode_id,
            on_datetime=_decode_datetime,
            on_date=_decode_date,
            drop_optional_nulls=False,
        )
        if self.casing is not None:
            converted = self.casing.keys_to_storage(converted)
        return converted

    def to_api_many(self, documents: list[Any], schema: Any = None) -> list[Any]:
        resolved = EntitySchema.coerce(schema)
        return [self.to_api(doc, resolved) for doc in documents]

    def to_storage_many(self, entities: list[Any], schema: Any = None) -> list[Any]:
        resolved = EntitySchema.coerce(schema)
        return [self.to_storage(entity, resolved) for entity in entities]

    def filter_value_to_storage(self, field: str, value: Any, schema: Any = None) -> Any:
        """Decode a filter operand for ``field`` (API name), lists included."""
        resolved = EntitySchema.coerce(schema)
        prop = resolved.property_schema(field) if resolved is not None else None
        if field == ID_FIELD or field.endswith("." + ID_FIELD) or (
            prop is not None and prop.is_identifier
        ):
            if isinstance(value, (list, tuple, set, frozenset)):
                return [self.decode_id(v) for v in value]
            return self.decode_id(value)
        if prop is not None and prop.is_datetime:
            return _decode_datetime(value)
        if prop is not None and prop.is_date:
            return _decode_date(value)
        return value

    # -- walking ----------------------------------------------------------

    def _walk(
        self,
        value: Any,
        schema: EntitySchema | None,
        *,
        on_id: Callable[[Any], Any],
        on_datetime: Callable[[Any], Any],
        on_date: Callable[[Any], Any],
        drop_optional_nulls: bool,
        is_id: bool = False,
    ) -> Any:
        if value is None:
            return None
        if is_id or (schema is not None and schema.is_identifier):
            if isinstance(value, list):
                return [on_id(v) for v in value]
            return on_id(value)
        if schema is not None and schema.is_datetime:
            return on_datetime(value)
        if schema is not None and schema.is_date:
            return on_date(value)

        kwargs = {
            "on_id": on_id,
            "on_datetime": on_datetime,
            "on_date": on_date,
            "drop_optional_nulls": drop_optional_nulls,
        }
        if isinstance(value, Mapping):
            out: dict[str, Any] = {}
            for key, item in value.items():
                if (
                    item is None
                    and drop_optional_nulls
                    and schema is not None
                    and schema.has_property(key)
                    and not schema.is_required(key)
                ):
                    continue
                sub = schema.property_schema(key) if schema is not None else None
                out[key] = self._walk(item, sub, is_id=key == ID_FIELD, **kwargs)
            return out
        if isinstance(value, list):
            items = schema.items if schema is not None else None
            return [self._walk(item, items, **kwargs) for item in value]
        return value
