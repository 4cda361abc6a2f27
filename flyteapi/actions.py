"""Actions: commands issued to packs, and the states they move through."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

log = logging.getLogger(__name__)

STATE_NEW = "NEW"
STATE_PENDING = "PENDING"
STATE_SUCCESS = "SUCCESS"
STATE_FATAL = "FATAL"

FATAL_EVENT_NAME = "FATAL"


class ActionNotFoundError(LookupError):
    """Raised when no action exists with the requested id."""

    def __init__(self, message: str = "action not found") -> None:
        super().__init__(message)


class ActionStateError(ValueError):
    """Raised when an action cannot move from its current state to the one asked for."""


@dataclass
class Pack:
    """A pack as seen by the execution engine."""

    id: str = ""
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@dataclass
class Event:
    """An event raised by a pack."""

    name: str = ""
    pack: Pack = field(default_factory=Pack)
    payload: Any = None
    created_at: datetime | None = None
    received_at: datetime | None = None

    def is_fatal(self) -> bool:
        return self.name == FATAL_EVENT_NAME


@dataclass
class State:
    """A state value and the moment it was entered."""

    value: str = ""
    time: datetime | None = None


class _ActionStore(Protocol):
    def update(self, action: "Action") -> Any: ...


def labels_match(labels: dict[str, str] | None, required: dict[str, str] | None) -> bool:
    """Return True if every entry of *required* is present in *labels*."""
    labels = labels or {}
    return all(key in labels and labels[key] == value for key, value in (required or {}).items())


@dataclass
class Action:
    """A command for a pack, created by a flow step."""

    id: str = ""
    name: str = ""
    pack_name: str = ""
    pack_labels: dict[str, str] = field(default_factory=dict)
    input: Any = None
    state: State = field(default_factory=State)
    states: list[State] = field(default_factory=list)
    prev_state: State = field(default_factory=State)

    correlation_id: str = ""
    flow_name: str = ""
    flow_uuid: str = ""
    step_id: str = ""

    context: dict[str, str] = field(default_factory=dict)
    trigger: Event = field(default_factory=Event)
    result: Event = field(default_factory=Event)

    def take(self, action_repo: _ActionStore, audit_repo: _ActionStore) -> None:
        """Move a new action to pending and store it."""
        if self.state.value != STATE_NEW:
            raise ActionStateError(
                f"action is not in {STATE_NEW} state, cannot set to {STATE_PENDING}"
            )
        self.set_state(STATE_PENDING)
        self._save(action_repo, audit_repo)

    def finish(self, event: Event, action_repo: _ActionStore, audit_repo: _ActionStore) -> None:
        """Complete a pending action with its result event and store it."""
        if self.state.value != STATE_PENDING:
            raise ActionStateError(f"action is not in {STATE_PENDING} state")
        self.set_state(STATE_FATAL if event.is_fatal() else STATE_SUCCESS)
        self.result = event
        self._save(action_repo, audit_repo)

    def has_finished(self) -> bool:
        return self.state.value in (STATE_SUCCESS, STATE_FATAL)

    def set_state(self, value: str) -> None:
        """Enter state *value* now, remembering the state left behind."""
        self.prev_state = self.state
        self.state = State(value=value, time=datetime.now(timezone.utc))
        self.states.append(self.state)

    def _save(self, action_repo: _ActionStore, audit_repo: _ActionStore) -> None:
        action_repo.update(self)
        try:
            audit_repo.update(self)
        except Exception:
            log.exception("Error updating audit for action=%r", self)