"""Integer primary key <-> string identifier codec."""

from __future__ import annotations

import re
from typing import Any

from joinery_core.primitives.exceptions import InvalidIdentifierError

_INTEGER = re.compile(r"-?\d+")


class IntegerIdCodec:
    """``IdentifierCodec`` for integer (serial / autoincrement) keys."""

    def is_native(self, value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    def is_valid(self, value: str) -> bool:
        return isinstance(value, str) and _INTEGER.fullmatch(value) is not None

    def encode(self, value: Any) -> str:
        return str(value)

    def decode(self, value: str) -> int:
        if not self.is_valid(value):
            raise InvalidIdentifierError(value, "not an integer key")
        return int(value)
