"""Flow definitions and the store that keeps the latest and historic versions."""

from __future__ import annotations

import copy
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class FlowNotFoundError(LookupError):
    """Raised when no flow exists under the requested name or uuid."""

    def __init__(self, message: str = "flow not found") -> None:
        super().__init__(message)


def _string(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _object(data: Any, what: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object")
    return data


def _labels(data: dict, key: str) -> dict[str, str]:
    value = _object(data.get(key), f"field {key!r}")
    for label, label_value in value.items():
        if not isinstance(label_value, str):
            raise ValueError(f"value of {key!r} entry {label!r} must be a string")
    return dict(value)


def _string_list(data: dict, key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return list(value)


@dataclass
class FlowEvent:
    """The event a step reacts to."""

    name: str = ""
    pack_name: str = ""
    pack_labels: dict[str, str] = field(default_factory=dict)


@dataclass
class FlowCommand:
    """The command a step issues to a pack."""

    name: str = ""
    pack_name: str = ""
    pack_labels: dict[str, str] = field(default_factory=dict)
    input: Any = None


@dataclass
class FlowStep:
    """One step of a flow: an event, optional criteria and the command to run."""

    id: str = ""
    depends_on: list[str] = field(default_factory=list)
    event: FlowEvent = field(default_factory=FlowEvent)
    context: dict[str, str] = field(default_factory=dict)
    criteria: str = ""
    command: FlowCommand = field(default_factory=FlowCommand)


def _event_from_dict(data: Any) -> FlowEvent:
    data = _object(data, "event")
    return FlowEvent(
        name=_string(data, "name"),
        pack_name=_string(data, "packName"),
        pack_labels=_labels(data, "packLabels"),
    )


def _event_to_dict(event: FlowEvent) -> dict[str, Any]:
    result: dict[str, Any] = {"name": event.name, "packName": event.pack_name}
    if event.pack_labels:
        result["packLabels"] = dict(event.pack_labels)
    return result


def _command_from_dict(data: Any) -> FlowCommand:
    data = _object(data, "command")
    return FlowCommand(
        name=_string(data, "name"),
        pack_name=_string(data, "packName"),
        pack_labels=_labels(data, "packLabels"),
        input=copy.deepcopy(data.get("input")),
    )


def _command_to_dict(command: FlowCommand) -> dict[str, Any]:
    result: dict[str, Any] = {"name": command.name, "packName": command.pack_name}
    if command.pack_labels:
        result["packLabels"] = dict(command.pack_labels)
    result["input"] = copy.deepcopy(command.input)
    return result


def _step_from_dict(data: Any) -> FlowStep:
    data = _object(data, "step")
    return FlowStep(
        id=_string(data, "id"),
        depends_on=_string_list(data, "dependsOn"),
        event=_event_from_dict(data.get("event")),
        context=_labels(data, "context"),
        criteria=_string(data, "criteria"),
        command=_command_from_dict(data.get("command")),
    )


def _step_to_dict(step: FlowStep) -> dict[str, Any]:
    result: dict[str, Any] = {}
    if step.id:
        result["id"] = step.id
    if step.depends_on:
        result["dependsOn"] = list(step.depends_on)
    result["event"] = _event_to_dict(step.event)
    if step.context:
        result["context"] = dict(step.context)
    if step.criteria:
        result["criteria"] = step.criteria
    result["command"] = _command_to_dict(step.command)
    return result


@dataclass
class Flow:
    """A named sequence of steps.

    ``uuid`` identifies one version of a flow; it is shared between the latest
    store and the history store and never appears in the JSON form.
    """

    uuid: str = ""
    name: str = ""
    description: str = ""
    steps: list[FlowStep] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "Flow":
        """Build a flow from its decoded JSON form; unknown keys are ignored."""
        if not isinstance(data, dict):
            raise ValueError("flow must be an object")
        steps = data.get("steps")
        if steps is None:
            steps = []
        if not isinstance(steps, list):
            raise ValueError("field 'steps' must be a list")
        return cls(
            name=_string(data, "name"),
            description=_string(data, "description"),
            steps=[_step_from_dict(step) for step in steps],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, leaving out empty optional fields."""
        result: dict[str, Any] = {"name": self.name}
        if self.description:
            result["description"] = self.description
        if self.steps:
            result["steps"] = [_step_to_dict(step) for step in self.steps]
        return result


class FlowRepository(ABC):
    """Storage for flows."""

    @abstractmethod
    def add(self, flow: Flow) -> Any:
        """Store *flow* as the latest version under its name."""

    @abstractmethod
    def remove(self, name: str) -> None:
        """Remove the latest flow called *name*."""

    @abstractmethod
    def get(self, name: str) -> Flow:
        """Return the latest flow called *name*."""

    @abstractmethod
    def find_all(self) -> list[Flow]:
        """Return the names and descriptions of all latest flows."""


def _new_object_id() -> str:
    return secrets.token_hex(12)


class InMemoryFlowRepository(FlowRepository):
    """Keeps one latest flow per name and every flow ever added in history."""

    def __init__(self) -> None:
        self._latest: dict[str, Flow] = {}
        self._history: list[Flow] = []
        self._lock = threading.Lock()

    def add(self, flow: Flow) -> Flow:
        """Store a copy of *flow*, giving it a uuid if it has none; return the stored copy."""
        stored = copy.deepcopy(flow)
        if not stored.uuid:
            stored.uuid = _new_object_id()
        with self._lock:
            self._history.append(stored)
            self._latest[stored.name] = copy.deepcopy(stored)
        return copy.deepcopy(stored)

    def remove(self, name: str) -> None:
        with self._lock:
            if name not in self._latest:
                raise FlowNotFoundError()
            del self._latest[name]

    def get(self, name: str) -> Flow:
        with self._lock:
            try:
                return copy.deepcopy(self._latest[name])
            except KeyError:
                raise FlowNotFoundError() from None

    def find_all(self) -> list[Flow]:
        with self._lock:
            flows = sorted(self._latest.values(), key=lambda flow: flow.name)
            return [Flow(name=flow.name, description=flow.description) for flow in flows]

    def history(self, uuid: str) -> Flow:
        """Return the historic flow with *uuid*."""
        with self._lock:
            for flow in self._history:
                if flow.uuid == uuid:
                    return copy.deepcopy(flow)
        raise FlowNotFoundError(f"flow with uuid={uuid} not found")