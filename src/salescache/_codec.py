"""Serialization contract for persisted values.

Every slot and record store payload goes through a codec.  The default
:class:`JsonCodec` produces compact JSON and accepts anything pydantic can
turn into plain JSON data (dicts, lists, primitives, models, datetimes).
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from pydantic_core import PydanticSerializationError, to_jsonable_python

from salescache.exceptions import SerializationError


class Codec(Protocol):
    """Per-key encode/decode pair."""

    def encode(self, value: Any, *, key: str = "") -> str:
        ...

    def decode(self, text: str, *, key: str = "") -> Any:
        ...


def to_jsonable(value: Any, *, key: str = "") -> Any:
    """Convert *value* to plain JSON data or raise :class:`SerializationError`."""
    try:
        return to_jsonable_python(value)
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise SerializationError(f"Cannot serialize value for {key or 'value'}: {exc}", key=key) from exc


class JsonCodec:
    """Compact JSON codec, the default for every key."""

    def encode(self, value: Any, *, key: str = "") -> str:
        data = to_jsonable(value, key=key)
        try:
            return json.dumps(data, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Cannot serialize value for {key or 'value'}: {exc}", key=key) from exc

    def decode(self, text: str, *, key: str = "") -> Any:
        try:
            return json.loads(text)
        except (json.JSONDecodeError, TypeError) as exc:
            raise SerializationError(f"Corrupt payload for {key or 'value'}: {exc}", key=key) from exc


DEFAULT_CODEC = JsonCodec()
