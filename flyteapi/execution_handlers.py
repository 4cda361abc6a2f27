"""HTTP handlers through which packs post events, take actions and report results."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any

from werkzeug.wrappers import Request, Response

from .actions import Action, ActionNotFoundError, Event, Pack
from .jsonvalue import new_json
from .packs import PackNotFoundError
from .packs import complete_action as _complete_action
from .packs import take_action as _take_action
from .packs import update_last_seen as _update_last_seen
from .paths import TAKE_ACTION_RESULT_DOC, TAKE_ACTION_RESULT_PATH, uri_doc_path_for
from .responses import Link, write_response
from .uribuilder import UriBuilder

log = logging.getLogger(__name__)

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _parse_time(value: Any, field: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field {field!r} must be a string")
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"field {field!r} has no time zone offset")
    return parsed


def to_event(pack: Pack, body: Any) -> Event:
    """Decode an event posted by *pack*; raise ``ValueError`` if the body is invalid."""
    data = new_json(body)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("event must be a JSON object")

    name = data.get("event")
    if name is None:
        name = ""
    if not isinstance(name, str):
        raise ValueError("field 'event' must be a string")

    created_at = _parse_time(data.get("createdAt"), "createdAt")
    _parse_time(data.get("receivedAt"), "receivedAt")

    received_at = datetime.now(timezone.utc)
    if created_at is None or created_at == _ZERO_TIME:
        created_at = received_at
    return Event(
        name=name,
        pack=copy.deepcopy(pack),
        payload=data.get("payload"),
        created_at=created_at,
        received_at=received_at,
    )


def to_action_response(request: Request, pack_id: str, action: Action) -> dict[str, Any]:
    """Return what a pack receives when it takes *action*."""
    link = Link(
        href=UriBuilder(request)
        .path(TAKE_ACTION_RESULT_PATH)
        .replace(":packId", pack_id)
        .replace(":actionId", action.id)
        .build(),
        rel=UriBuilder(request).path(uri_doc_path_for(TAKE_ACTION_RESULT_DOC)).build(),
    )
    return {"command": action.name, "input": action.input, "links": [link]}


class _Abort(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(status)
        self.status = status


class ExecutionHandlers:
    """Request handlers for the pack-facing part of the API."""

    def __init__(self, pack_repo: Any, flow_service: Any, action_repo: Any, audit_repo: Any) -> None:
        self.pack_repo = pack_repo
        self.flow_service = flow_service
        self.action_repo = action_repo
        self.audit_repo = audit_repo

    def post_event(self, request: Request, pack_id: str) -> Response:
        try:
            pack = self._load_pack(pack_id)
            event = self._read_event(pack, request)
        except _Abort as abort:
            return Response(status=abort.status)

        log.info("Received Event: EventName=%s Pack=%r", event.name, pack)
        log.debug("Event Contents: Event=%r", event)
        self.flow_service.handle_event(event)
        return Response(status=202)

    def complete_action(self, request: Request, pack_id: str, action_id: str) -> Response:
        try:
            pack = self._load_pack(pack_id)
            result = self._read_event(pack, request)
        except _Abort as abort:
            return Response(status=abort.status)

        log.info("Received Event: EventName=%s Pack=%r", result.name, pack)
        log.debug("Event Contents: Event=%r", result)

        try:
            action = _complete_action(pack, action_id, result, self.action_repo, self.audit_repo)
        except ActionNotFoundError:
            log.info("Action actionId=%s packId=%s not found", action_id, pack.id)
            return Response(status=404)
        except Exception:
            log.exception("Error completing actionId=%s with result=%r", action_id, result)
            return Response(status=500)
        if action is None:
            log.info("Action actionId=%s cannot be completed by packId=%s", action_id, pack.id)
            return Response(status=404)

        log.info(
            "Action completed ActionId=%s CorrelationId=%s FlowName=%s PackName=%s ActionName=%s "
            "StepId=%s State=%s ResultEventPackId=%s ResultEvent=%s ResultEventIsFatal=%s",
            action.id, action.correlation_id, action.flow_name, action.pack_name, action.name,
            action.step_id, action.state.value, action.result.pack.id, action.result.name,
            action.result.is_fatal(),
        )

        self.flow_service.handle_event(result)
        self.flow_service.handle_action(action)
        return Response(status=202)

    def take_action(self, request: Request, pack_id: str) -> Response:
        try:
            pack = self._load_pack(pack_id)
        except _Abort as abort:
            return Response(status=abort.status)

        action_name = request.values.get("actionName", "")
        try:
            action = _take_action(pack, action_name, self.action_repo, self.audit_repo)
        except Exception:
            log.exception("Could not take action for packId=%s and actionName=%s", pack.id, action_name)
            return Response(status=500)

        if action is None:
            return Response(status=204)

        log.info("Action actionId=%s taken", action.id)
        return write_response(request, to_action_response(request, pack_id, action))

    def _load_pack(self, pack_id: str) -> Pack:
        try:
            pack = self.pack_repo.get(pack_id)
        except PackNotFoundError:
            log.info("Pack packId=%s not found", pack_id)
            raise _Abort(404) from None
        except Exception:
            log.exception("Error retrieving packId=%s", pack_id)
            raise _Abort(500) from None
        _update_last_seen(pack, self.pack_repo)
        return pack

    @staticmethod
    def _read_event(pack: Pack, request: Request) -> Event:
        try:
            return to_event(pack, request.get_data())
        except ValueError:
            log.exception("Invalid event body")
            raise _Abort(400) from None