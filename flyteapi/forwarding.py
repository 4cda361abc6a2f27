"""Honouring forwarded protocol and host headers on incoming requests."""

from __future__ import annotations

from typing import Any, Callable, Iterable

from werkzeug.wrappers import Request


def forwarded_protocol(request: Request) -> str:
    """Return the protocol the client originally used."""
    protocol = request.headers.get("X-Forwarded-Proto", "")
    if not protocol and request.is_secure:
        protocol = "https"
    return protocol or "http"


def forwarded_host(request: Request) -> str:
    """Return the host the client originally asked for."""
    return (
        request.headers.get("X-Flyte-Host", "")
        or request.headers.get("X-Forwarded-Host", "")
        or request.host
    )


def set_protocol_and_host(environ: dict) -> None:
    """Rewrite the WSGI environ so the request carries the original scheme and host."""
    request = Request(environ, shallow=True)
    protocol = forwarded_protocol(request)
    host = forwarded_host(request)
    environ["wsgi.url_scheme"] = protocol
    environ["HTTP_HOST"] = host


class RequestInterceptor:
    """WSGI middleware applying :func:`set_protocol_and_host` to every request."""

    def __init__(self, app: Callable[..., Iterable[bytes]]) -> None:
        self.app = app

    def __call__(self, environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        set_protocol_and_host(environ)
        return self.app(environ, start_response)