"""In-memory stores for actions, their audit trail, running flows and packs."""

from __future__ import annotations

import copy
import secrets
import threading
from datetime import datetime, timezone

from .actions import STATE_NEW, Action, ActionNotFoundError, Event, Pack, State, labels_match
from .execution_flow import ExecutionFlow
from .flows import FlowNotFoundError
from .packs import PackNotFoundError

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ConflictError(Exception):
    """Raised when a record with the same id is already stored."""


def _new_object_id() -> str:
    return secrets.token_hex(12)


def _stored(action: Action) -> Action:
    """Copy *action* the way it is kept: without the state it has just left."""
    stored = copy.deepcopy(action)
    stored.prev_state = State()
    return stored


def _state_time(action: Action) -> datetime:
    moment = action.state.time
    if moment is None:
        return _EPOCH
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class _ActionStore:
    """Actions keyed by id, updated only from the state they were read in."""

    def __init__(self) -> None:
        self._actions: dict[str, Action] = {}
        self._lock = threading.Lock()

    def _add(self, action: Action) -> None:
        with self._lock:
            if action.id in self._actions:
                raise ConflictError(f"duplicate action id {action.id}")
            self._actions[action.id] = _stored(action)

    def _update(self, action: Action) -> None:
        with self._lock:
            current = self._actions.get(action.id)
            if current is None or current.state.value != action.prev_state.value:
                raise ActionNotFoundError()
            self._actions[action.id] = _stored(action)

    def _get(self, action_id: str) -> Action:
        with self._lock:
            try:
                return copy.deepcopy(self._actions[action_id])
            except KeyError:
                raise ActionNotFoundError() from None


class InMemoryAuditRepository(_ActionStore):
    """Audit trail of every action created."""

    def add(self, action: Action) -> None:
        """Store a new action; raise ``ConflictError`` if its id is taken."""
        self._add(action)

    def update(self, action: Action) -> None:
        """Replace the stored action if it is still in ``action.prev_state``."""
        self._update(action)

    def get(self, action_id: str) -> Action:
        """Return a copy of the action with *action_id*."""
        return self._get(action_id)


class InMemoryActionRepository(_ActionStore):
    """Actions waiting for, or handled by, packs."""

    def add(self, action: Action) -> None:
        """Store a new action; raise ``ConflictError`` if its id is taken."""
        self._add(action)

    def get(self, action_id: str) -> Action:
        """Return a copy of the action with *action_id*."""
        return self._get(action_id)

    def update(self, action: Action) -> None:
        """Replace the stored action if it is still in ``action.prev_state``."""
        self._update(action)

    def find_new(self, pack: Pack, name: str = "") -> Action | None:
        """Return the oldest new action *pack* can handle, optionally of the given *name*."""
        with self._lock:
            candidates = [
                action
                for action in self._actions.values()
                if action.pack_name == pack.name
                and action.state.value == STATE_NEW
                and (not name or action.name == name)
            ]
            candidates.sort(key=_state_time)
            for action in candidates:
                if labels_match(pack.labels, action.pack_labels):
                    return copy.deepcopy(action)
        return None

    def find_correlated(self, correlation_id: str) -> list[Action]:
        """Return id, step id and state of every action with *correlation_id*."""
        with self._lock:
            return [
                Action(id=action.id, step_id=action.step_id, state=copy.deepcopy(action.state))
                for action in self._actions.values()
                if action.correlation_id == correlation_id
            ]


class InMemoryExecutionFlowRepository:
    """Flows to run: the latest version of each flow and every version ever added."""

    def __init__(self, action_repo: InMemoryActionRepository) -> None:
        self.action_repo = action_repo
        self._latest: dict[str, ExecutionFlow] = {}
        self._history: dict[str, ExecutionFlow] = {}
        self._lock = threading.Lock()

    def add(self, flow: ExecutionFlow) -> ExecutionFlow:
        """Store *flow* as latest and in history, giving it a uuid if it has none."""
        stored = copy.deepcopy(flow)
        if not stored.uuid:
            stored.uuid = _new_object_id()
        with self._lock:
            self._history[stored.uuid] = stored
            self._latest[stored.name or stored.uuid] = copy.deepcopy(stored)
        return copy.deepcopy(stored)

    def get_by_action(self, action: Action) -> ExecutionFlow:
        """Return the flow run that *action* belongs to, with its correlated actions."""
        with self._lock:
            stored = self._history.get(action.flow_uuid)
            flow = copy.deepcopy(stored) if stored is not None else None
        if flow is None:
            raise FlowNotFoundError(f"flow with uuid={action.flow_uuid} not found")

        correlated = self.action_repo.find_correlated(action.correlation_id)
        flow.correlation_id = action.correlation_id
        flow.context = dict(action.context)
        flow.actions = {item.step_id: item for item in correlated}
        return flow

    def find_by_event(self, event: Event) -> list[ExecutionFlow]:
        """Return new runs of every latest flow that *event* can start."""
        with self._lock:
            matching = [
                copy.deepcopy(flow)
                for flow in self._latest.values()
                if any(
                    step.event.pack_name == event.pack.name
                    and step.event.name == event.name
                    and not step.depends_on
                    for step in flow.steps
                )
            ]
        for flow in matching:
            flow.correlation_id = _new_object_id()
            flow.context = {}
            flow.actions = {}
        return matching


class InMemoryPackRepository:
    """Registered packs and when each was last seen."""

    def __init__(self) -> None:
        self._packs: dict[str, Pack] = {}
        self._last_seen: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add(self, pack: Pack) -> None:
        with self._lock:
            self._packs[pack.id] = copy.deepcopy(pack)

    def get(self, pack_id: str) -> Pack:
        with self._lock:
            try:
                return copy.deepcopy(self._packs[pack_id])
            except KeyError:
                raise PackNotFoundError() from None

    def update_last_seen(self, pack_id: str) -> None:
        """Record the current time as the moment the pack was last seen."""
        with self._lock:
            if pack_id not in self._packs:
                raise PackNotFoundError()
            self._last_seen[pack_id] = datetime.now(timezone.utc)

    def last_seen(self, pack_id: str) -> datetime | None:
        """Return when the pack was last seen, or None if never."""
        with self._lock:
            if pack_id not in self._packs:
                raise PackNotFoundError()
            return self._last_seen.get(pack_id)