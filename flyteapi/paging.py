"""Pagination of collection responses driven by ``page``/``per_page`` query values."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .responses import Link

DEFAULT_MAX_LIMIT = 300
DEFAULT_MIN_LIMIT = 30
DEFAULT_PAGE_NUMBER = 1

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _atoi(text: str | None) -> int:
    if text and _INTEGER.fullmatch(text):
        return int(text)
    return 0


@dataclass
class Page:
    """One page of a collection.

    ``page_number`` is at least 1 even for an empty collection, ``per_page``
    lies between 1 and ``DEFAULT_MAX_LIMIT``, ``total_pages`` is 0 for an empty
    collection and ``start_index`` is ``(page_number - 1) * per_page``.
    """

    page_number: int = DEFAULT_PAGE_NUMBER
    per_page: int = DEFAULT_MIN_LIMIT
    total_pages: int = 0
    start_index: int = 0

    @classmethod
    def from_request(cls, request: Any, total_items: int) -> "Page":
        """Build a page from the request's query and the collection size."""
        page_number = _atoi(request.args.get("page"))
        per_page = _atoi(request.args.get("per_page"))

        page_number = max(page_number, DEFAULT_PAGE_NUMBER)
        if per_page < 1:
            per_page = DEFAULT_MIN_LIMIT
        per_page = min(per_page, DEFAULT_MAX_LIMIT)

        if total_items < 1:
            return cls(page_number=1, per_page=per_page, total_pages=0, start_index=0)

        total_pages = -(-total_items // per_page)
        page_number = min(page_number, total_pages)
        return cls(
            page_number=page_number,
            per_page=per_page,
            total_pages=total_pages,
            start_index=(page_number - 1) * per_page,
        )

    def page_links_for(self, uri: str, default_links: list[Link]) -> list[Link]:
        """Return the default links followed by first/prev/next/last where they apply."""

        def href(number: int) -> str:
            return f"{uri}?page={number}&per_page={self.per_page}"

        links = list(default_links)
        if self.page_number != 1 and self.total_pages > 1:
            links.append(Link(href=href(1), rel="first"))
            links.append(Link(href=href(self.page_number - 1), rel="prev"))
        if self.page_number != self.total_pages and self.total_pages > 1:
            links.append(Link(href=href(self.page_number + 1), rel="next"))
            links.append(Link(href=href(self.total_pages), rel="last"))
        return links