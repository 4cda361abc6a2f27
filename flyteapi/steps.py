"""Flow steps: matching an event, checking criteria and creating an action."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import jinja2

from .actions import STATE_NEW, Action, Event, State, labels_match

_ENVIRONMENT = jinja2.Environment(autoescape=False, keep_trailing_newline=True)

_TEMPLATE_ERRORS = (
    jinja2.TemplateError,
    TypeError,
    ValueError,
    LookupError,
    AttributeError,
    ArithmeticError,
)

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class StepError(Exception):
    """Raised when a step cannot be evaluated against an event."""


def resolve_template(value: Any, context: dict[str, Any]) -> Any:
    """Render every string inside *value* as a template with *context*.

    Dictionaries and lists are resolved recursively; other values are returned as they are.
    """
    if isinstance(value, str):
        try:
            return _ENVIRONMENT.from_string(value).render(context)
        except _TEMPLATE_ERRORS as exc:
            raise StepError(str(exc)) from exc
    if isinstance(value, dict):
        return {key: resolve_template(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_template(item, context) for item in value]
    return value


def _event_context(event: Event) -> dict[str, Any]:
    return {
        "Name": event.name,
        "Pack": {"Id": event.pack.id, "Name": event.pack.name, "Labels": dict(event.pack.labels)},
        "Payload": event.payload,
        "CreatedAt": event.created_at,
        "ReceivedAt": event.received_at,
    }


def _template_context(event: Event, context: dict[str, str]) -> dict[str, Any]:
    return {"Event": _event_context(event), "Context": dict(context)}


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise StepError(f"invalid boolean {text!r}")


def _resolve_labels(labels: dict[str, str], event: Event, context: dict[str, str]) -> dict[str, str]:
    try:
        return resolve_template(dict(labels or {}), _template_context(event, context))
    except StepError as exc:
        raise StepError(f"error resolving pack labels with event={event!r} and ctx={context!r}: {exc}") from exc


def _new_object_id() -> str:
    return secrets.token_hex(12)


@dataclass
class EventDef:
    """The event a step waits for."""

    name: str = ""
    pack_name: str = ""
    pack_labels: dict[str, str] = field(default_factory=dict)


@dataclass
class Command:
    """The command a step sends once it fires."""

    name: str = ""
    pack_name: str = ""
    pack_labels: dict[str, str] = field(default_factory=dict)
    input: Any = None

    def create_action(self, event: Event, context: dict[str, str]) -> Action:
        """Create a new action for this command, triggered by *event*."""
        pack_labels = _resolve_labels(self.pack_labels, event, context)
        try:
            resolved_input = resolve_template(self.input, _template_context(event, context))
        except StepError as exc:
            raise StepError(
                f"error resolving command input with event={event!r} and ctx={context!r}: {exc}"
            ) from exc

        state = State(value=STATE_NEW, time=datetime.now(timezone.utc))
        return Action(
            id=_new_object_id(),
            name=self.name,
            pack_name=self.pack_name,
            pack_labels=pack_labels,
            input=resolved_input,
            state=state,
            states=[state],
            trigger=event,
            context=context,
        )


@dataclass
class Step:
    """One step of a running flow."""

    id: str = ""
    depends_on: list[str] = field(default_factory=list)
    event: EventDef = field(default_factory=EventDef)
    context: dict[str, str] = field(default_factory=dict)
    criteria: str = ""
    command: Command = field(default_factory=Command)

    def execute(self, event: Event, parent_context: dict[str, str] | None) -> Action | None:
        """Return the action this step creates for *event*, or None if it does not fire."""
        context = self._resolve_context(event, parent_context or {})
        if not self._matches_event(event, context):
            return None
        if not self._is_criteria_met(event, context):
            return None
        action = self.command.create_action(event, context)
        action.step_id = self.id
        return action

    def _resolve_context(self, event: Event, parent_context: dict[str, str]) -> dict[str, str]:
        try:
            resolved = resolve_template(dict(self.context), _template_context(event, parent_context))
        except StepError as exc:
            raise StepError(
                f"error resolving context with event={event!r} and ctx={parent_context!r}: {exc}"
            ) from exc
        return {**parent_context, **resolved}

    def _matches_event(self, event: Event, context: dict[str, str]) -> bool:
        if self.event.name != event.name or self.event.pack_name != event.pack.name:
            return False
        required = _resolve_labels(self.event.pack_labels, event, context)
        return labels_match(event.pack.labels, required)

    def _is_criteria_met(self, event: Event, context: dict[str, str]) -> bool:
        if not self.criteria:
            return True
        try:
            criteria = resolve_template(self.criteria, _template_context(event, context))
        except StepError as exc:
            raise StepError(
                f"error resolving criteria with event={event!r} and ctx={context!r}: {exc}"
            ) from exc
        return _parse_bool(criteria)