"""ObjectId <-> string identifier codec."""

from __future__ import annotations

from typing import Any

from bson import ObjectId

from joinery_core.primitives.exceptions import InvalidIdentifierError


class ObjectIdCodec:
    """``IdentifierCodec`` for MongoDB's native ``ObjectId``."""

    def is_native(self, value: Any) -> bool:
        return isinstance(value, ObjectId)

    def is_valid(self, value: str) -> bool:
        return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)

    def encode(self, value: Any) -> str:
        return str(value)

    def decode(self, value: str) -> ObjectId:
        if not self.is_valid(value):
            raise InvalidIdentifierError(value, "not a valid ObjectId")
        return ObjectId(value)

    def generate(self) -> ObjectId:
        return ObjectId()
