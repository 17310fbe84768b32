"""Field-name casing conversion between storage and API conventions."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[\s-]")
_REPEATED_UNDERSCORES = re.compile(r"_+")
_WORD_SPLIT = re.compile(r"[-_]+")


def to_snake_case(name: str) -> str:
    """``customerId`` -> ``customer_id``; leading/trailing underscores dropped."""
    result = _CAMEL_BOUNDARY.sub(r"\1_\2", name).lower()
    result = _SEPARATORS.sub("_", result)
    return _REPEATED_UNDERSCORES.sub("_", result).strip("_")


def to_camel_case(name: str) -> str:
    """``customer_id`` -> ``customerId``; names without separators are unchanged."""
    words = [w for w in _WORD_SPLIT.split(name) if w]
    if len(words) <= 1:
        return words[0] if words else name
    head, *tail = words
    return head.lower() + "".join(w[:1].upper() + w[1:].lower() for w in tail)


def convert_key(key: str, converter: Callable[[str], str]) -> str:
    """Apply ``converter`` unless the key is private (``_id``, ``__v``...)."""
    if not isinstance(key, str) or key.startswith("_"):
        return key
    return converter(key)


def convert_keys(value: Any, converter: Callable[[str], str]) -> Any:
    """
    Recursively rename mapping keys with ``converter``.

    Lists are walked item by item; scalars (including dates and ids) are
    returned as-is. Always builds new containers.
    """
    if isinstance(value, Mapping):
        return {
            convert_key(k, converter): convert_keys(v, converter)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [convert_keys(item, converter) for item in value]
    return value


class KeyCasing:
    """Pair of converters between storage and API field names."""

    __slots__ = ("to_storage_name", "to_api_name")

    def __init__(
        self,
        to_storage_name: Callable[[str], str],
        to_api_name: Callable[[str], str],
    ) -> None:
        self.to_storage_name = to_storage_name
        self.to_api_name = to_api_name

    def field_to_storage(self, name: str) -> str:
        return convert_key(name, self.to_storage_name)

    def field_to_api(self, name: str) -> str:
        return convert_key(name, self.to_api_name)

    def keys_to_storage(self, value: Any) -> Any:
        return convert_keys(value, self.to_storage_name)

    def keys_to_api(self, value: Any) -> Any:
        return convert_keys(value, self.to_api_name)


SNAKE_CASE_STORAGE = KeyCasing(to_snake_case, to_camel_case)
