"""Identifier, date and field-name normalization shared by every store."""

from .casing import (
    SNAKE_CASE_STORAGE,
    KeyCasing,
    convert_keys,
    to_camel_case,
    to_snake_case,
)
from .normalizer import ID_FIELD, EntityNormalizer, IdentifierCodec
from .schema import (
    DATE_FORMAT,
    DATETIME_FORMAT,
    IDENTIFIER_FORMAT,
    OBJECT_ID_FORMAT,
    EntitySchema,
    Identifier,
)

__all__ = [
    "DATE_FORMAT",
    "DATETIME_FORMAT",
    "ID_FIELD",
    "IDENTIFIER_FORMAT",
    "OBJECT_ID_FORMAT",
    "SNAKE_CASE_STORAGE",
    "EntityNormalizer",
    "EntitySchema",
    "Identifier",
    "IdentifierCodec",
    "KeyCasing",
    "convert_keys",
    "to_camel_case",
    "to_snake_case",
]
