"""Decoding of arbitrary JSON documents into plain Python values."""

from __future__ import annotations

import json
from typing import Any

_JSON_WHITESPACE = " \t\n\r"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON literal {name}")


_DECODER = json.JSONDecoder(parse_constant=_reject_constant)


def new_json(reader: Any) -> Any:
    """Decode the first JSON value from *reader*.

    *reader* may be a text or binary file object, or the document itself as
    ``str`` or ``bytes``.  Anything after the first complete value is ignored.
    The result is built from ``dict``, ``list``, ``str``, ``int``, ``float``,
    ``bool`` and ``None``.
    """
    data = reader.read() if hasattr(reader, "read") else reader
    try:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        value, _ = _DECODER.raw_decode(data.lstrip(_JSON_WHITESPACE))
    except ValueError as exc:
        raise ValueError(f"could not create Json from reader: {exc}") from exc
    return value