"""Building absolute URIs relative to the host a request was made to."""

from __future__ import annotations

from typing import Any


def _clean(path: str) -> str:
    """Normalise a slash-separated path lexically."""
    rooted = path.startswith("/")
    segments: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments and segments[-1] != "..":
                segments.pop()
            elif not rooted:
                segments.append("..")
            continue
        segments.append(segment)
    cleaned = "/".join(segments)
    if rooted:
        return "/" + cleaned
    return cleaned or "."


def _join(parts: tuple[str, ...]) -> str:
    non_empty = [part for part in parts if part]
    if not non_empty:
        return ""
    return _clean("/".join(non_empty))


def _dirname(path: str) -> str:
    return _clean(path[: path.rfind("/") + 1])


class UriBuilder:
    """Chainable builder of URIs based on a request's scheme and host."""

    def __init__(self, request: Any) -> None:
        self._base_uri = f"{request.scheme}://{request.host}/"
        self._path = ""

    def path(self, *args: str) -> "UriBuilder":
        """Set the path to the given segments joined together."""
        self._path = _join(args)
        return self

    def parent(self) -> "UriBuilder":
        """Move the path up to its parent directory."""
        parent = _dirname(self._path)
        self._path = "/" if parent == "." else parent
        return self

    def replace(self, path_param: str, param_value: str) -> "UriBuilder":
        """Substitute the first *path_param* and drop one trailing slash."""
        replaced = self._path.replace(path_param, param_value, 1)
        self._path = replaced.removesuffix("/")
        return self

    def build(self) -> str:
        return self._base_uri + self._path.removeprefix("/")