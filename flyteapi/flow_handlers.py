"""HTTP handlers for creating, listing, reading and deleting flows."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import jsonschema
from werkzeug.wrappers import Request, Response

from .flows import Flow, FlowNotFoundError, FlowRepository
from .paths import FLOW_DOC, FLOW_PATH, FLOWS_PATH, uri_doc_path_for
from .responses import Link, write_response
from .uribuilder import UriBuilder

log = logging.getLogger(__name__)

SCHEMA_FILE = "flow-schema.json"


def _describe(error: jsonschema.ValidationError) -> str:
    location = ".".join(str(part) for part in error.absolute_path) or "(root)"
    return f"{location}: {error.message}"


def validate_against_schema(data: str | bytes, schema_path: str | os.PathLike = SCHEMA_FILE) -> None:
    """Check the JSON document *data* against the schema at *schema_path*.

    Raises ``FileNotFoundError`` when the schema is missing and ``ValueError``
    when the document is not JSON or does not satisfy the schema.
    """
    path = os.path.abspath(schema_path)
    try:
        with open(path, encoding="utf-8") as schema_file:
            schema = json.load(schema_file)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"file not found {path}") from exc

    try:
        document = json.loads(data)
    except ValueError as exc:
        raise ValueError(f"invalid JSON document: {exc}") from exc

    validator_cls = jsonschema.validators.validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except jsonschema.exceptions.SchemaError as exc:
        raise ValueError(f"invalid schema {path}: {exc.message}") from exc

    errors = sorted(
        validator_cls(schema).iter_errors(document),
        key=lambda error: [str(part) for part in error.absolute_path],
    )
    if errors:
        raise ValueError(_describe(errors[0]))


def _help_link(request: Request) -> Link:
    return Link(href=UriBuilder(request).path(uri_doc_path_for(FLOW_DOC)).build(), rel="help")


def to_flow_response(request: Request, flow: Flow) -> dict[str, Any]:
    """Return the representation of a single flow with its navigation links."""
    links = [
        Link(href=UriBuilder(request).path(FLOW_PATH).replace(":flowName", flow.name).build(), rel="self"),
        Link(href=UriBuilder(request).path(FLOW_PATH).parent().build(), rel="up"),
        _help_link(request),
    ]
    return {**flow.to_dict(), "links": links}


def to_flows_response(request: Request, flows: list[Flow]) -> dict[str, Any]:
    """Return the representation of a list of flows with navigation links."""
    items = [
        {
            **flow.to_dict(),
            "links": [Link(href=UriBuilder(request).path(FLOWS_PATH, flow.name).build(), rel="self")],
        }
        for flow in flows
    ]
    links = [
        Link(href=UriBuilder(request).path(FLOWS_PATH).build(), rel="self"),
        Link(href=UriBuilder(request).path(FLOWS_PATH).parent().build(), rel="up"),
        _help_link(request),
    ]
    return {"flows": items, "links": links}


class FlowHandlers:
    """Request handlers backed by a flow repository."""

    def __init__(self, repository: FlowRepository, schema_path: str | os.PathLike = SCHEMA_FILE) -> None:
        self.repository = repository
        self.schema_path = schema_path

    def post_flow(self, request: Request) -> Response:
        body = request.get_data(as_text=True)
        try:
            validate_against_schema(body, self.schema_path)
        except (OSError, ValueError):
            log.exception("Cannot convert request to flow")
            return Response(status=500)

        try:
            flow = Flow.from_dict(json.loads(body))
        except ValueError:
            log.exception("Cannot convert request to flow")
            return Response(status=400)

        try:
            self.repository.add(flow)
        except Exception:
            log.exception("Cannot add flow to repo flowName=%s", flow.name)
            return Response(status=500)

        location = UriBuilder(request).path(FLOWS_PATH, flow.name).build()
        return Response(status=201, headers={"Location": location})

    def get_flows(self, request: Request) -> Response:
        try:
            flows = self.repository.find_all()
        except Exception:
            log.exception("Cannot find flows")
            return Response(status=500)
        return write_response(request, to_flows_response(request, flows))

    def get_flow(self, request: Request, flow_name: str) -> Response:
        try:
            flow = self.repository.get(flow_name)
        except FlowNotFoundError:
            log.info("Flow flowName=%s not found", flow_name)
            return Response(status=404)
        except Exception:
            log.exception("Cannot get flowName=%s", flow_name)
            return Response(status=500)
        return write_response(request, to_flow_response(request, flow))

    def delete_flow(self, request: Request, flow_name: str) -> Response:
        try:
            self.repository.remove(flow_name)
        except FlowNotFoundError:
            log.info("Flow flowName=%s not found", flow_name)
            return Response(status=404)
        except Exception:
            log.exception("Cannot delete flowName=%s", flow_name)
            return Response(status=500)
        log.info("Flow flowName=%s deleted", flow_name)
        return Response(status=204)