"""Compact JSON encoding of values into bytes."""

from __future__ import annotations

import base64
import dataclasses
import json
from typing import Any

_ESCAPES = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


def _default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"cannot encode value of type {type(value).__name__}")


def encode(value: Any) -> bytes:
    """Encode value as compact JSON followed by a newline.

    Byte strings become base64 text and HTML-sensitive characters are
    escaped. Raises ValueError for NaN or infinities, TypeError for values
    that have no JSON form.
    """
    text = json.dumps(
        value,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
        default=_default,
    )
    return (text.translate(_ESCAPES) + "\n").encode("utf-8")


def decode(data: bytes | str) -> Any:
    """Decode the first JSON value in data; raises ValueError when there is none."""
    text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
    stripped = text.lstrip(" \t\r\n")
    if not stripped:
        raise ValueError("no JSON value to decode")
    value, _ = json.JSONDecoder().raw_decode(stripped)
    return value