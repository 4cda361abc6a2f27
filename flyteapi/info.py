"""Index, version and API documentation handlers."""

from __future__ import annotations

import logging
import os

from werkzeug.wrappers import Request, Response

from .paths import (
    AUDIT_FLOW_PATH,
    AUDIT_FLOWS_DOC,
    DATASTORE_PATH,
    FLOWS_PATH,
    HEALTH_DOC,
    HEALTH_PATH,
    INFO_DOC,
    INFO_VERSION_DOC,
    LIST_DATA_ITEMS_DOC,
    LIST_FLOW_DOC,
    LIST_PACKS_DOC,
    PACKS_PATH,
    SWAGGER_ROOT_DOC,
    VERSION_DOC_PATH,
    VERSION_INFO_DOC,
    VERSION_PATH,
    uri_doc_path_for,
)
from .responses import HEADER_CONTENT_TYPE, Link, write_response
from .uribuilder import UriBuilder

log = logging.getLogger(__name__)

SWAGGER_FILE = "swagger/v1.yml"
SWAGGER_CONTENT_TYPE = "application/vnd.yaml; charset=utf-8"


def _link(request: Request, path: str, doc: str) -> Link:
    """Link to *path* whose relation is the documentation URI for *doc*."""
    return Link(
        href=UriBuilder(request).path(path).build(),
        rel=UriBuilder(request).path(uri_doc_path_for(doc)).build(),
    )


def index(request: Request) -> Response:
    """Describe the API root."""
    links = [
        Link(href=UriBuilder(request).path("").build(), rel="self"),
        Link(href=UriBuilder(request).path(uri_doc_path_for(INFO_DOC)).build(), rel="help"),
        _link(request, VERSION_PATH, VERSION_INFO_DOC),
    ]
    return write_response(request, {"links": links})


def v1(request: Request) -> Response:
    """Describe the resources of version 1 of the API."""
    links = [
        Link(href=UriBuilder(request).path(VERSION_PATH).build(), rel="self"),
        Link(href=UriBuilder(request).path(VERSION_PATH).parent().build(), rel="up"),
        Link(href=UriBuilder(request).path(uri_doc_path_for(INFO_VERSION_DOC)).build(), rel="help"),
        _link(request, HEALTH_PATH, HEALTH_DOC),
        _link(request, PACKS_PATH, LIST_PACKS_DOC),
        _link(request, FLOWS_PATH, LIST_FLOW_DOC),
        _link(request, DATASTORE_PATH, LIST_DATA_ITEMS_DOC),
        _link(request, AUDIT_FLOW_PATH, AUDIT_FLOWS_DOC),
        _link(request, VERSION_DOC_PATH, SWAGGER_ROOT_DOC),
    ]
    return write_response(request, {"links": links})


def v1_swagger(request: Request, swagger_file: str | os.PathLike = SWAGGER_FILE) -> Response:
    """Serve the API description file."""
    try:
        with open(swagger_file, "rb") as handle:
            content = handle.read()
    except OSError:
        log.exception("cannot read %s", swagger_file)
        return Response(status=500)
    response = Response(content, status=200)
    response.headers[HEADER_CONTENT_TYPE] = SWAGGER_CONTENT_TYPE
    return response