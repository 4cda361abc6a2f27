"""Hypermedia links and content-negotiated JSON/YAML responses."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import yaml
from werkzeug.wrappers import Request, Response

log = logging.getLogger(__name__)

HEADER_ACCEPT = "Accept"
HEADER_CONTENT_TYPE = "Content-Type"

MEDIA_TYPE_JSON = "application/json"
MEDIA_TYPE_YAML = "application/x-yaml"

CONTENT_TYPE_YAML = MEDIA_TYPE_YAML + "; charset=utf-8"
CONTENT_TYPE_JSON = MEDIA_TYPE_JSON + "; charset=utf-8"

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass(frozen=True)
class Link:
    """A hypermedia link; ``rel`` is left out when empty."""

    href: str
    rel: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"href": self.href}
        if self.rel:
            data["rel"] = self.rel
        return data


def _to_serialisable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode_json(value: Any) -> str:
    text = json.dumps(
        value,
        default=_to_serialisable,
        allow_nan=False,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    for char, escape in _HTML_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def _json_response(value: Any) -> Response:
    try:
        data = _encode_json(value)
    except (TypeError, ValueError):
        log.exception("cannot convert to JSON")
        return Response(status=500)
    return Response(data.encode("utf-8"), status=200, content_type=CONTENT_TYPE_JSON)


def _yaml_response(value: Any) -> Response:
    try:
        plain = json.loads(_encode_json(value))
        data = yaml.safe_dump(plain, default_flow_style=False, allow_unicode=True)
    except (TypeError, ValueError, yaml.YAMLError):
        log.exception("cannot convert to yaml")
        return Response(status=500)
    return Response(data.encode("utf-8"), status=200, content_type=CONTENT_TYPE_YAML)


def write_response(request: Request, value: Any) -> Response:
    """Render *value* as YAML if the request asks for it, otherwise as JSON."""
    if request.headers.get(HEADER_ACCEPT, "") == MEDIA_TYPE_YAML:
        return _yaml_response(value)
    return _json_response(value)