"""A flow being executed: its steps, context and the actions created so far."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .actions import Action, Event
from .steps import Step, StepError

log = logging.getLogger(__name__)


@dataclass
class ExecutionFlow:
    """One run of a flow, identified by its correlation id."""

    uuid: str = ""
    name: str = ""
    steps: list[Step] = field(default_factory=list)
    correlation_id: str = ""
    context: dict[str, str] = field(default_factory=dict)
    actions: dict[str, Action] = field(default_factory=dict)

    def handle_event(self, event: Event, action_repo: Any, audit_repo: Any) -> None:
        """Run every candidate step for *event* and store the actions they create."""
        for step in self.candidate_steps(event):
            try:
                action = step.execute(event, self.context)
            except StepError:
                log.exception("Error handling flow=%s step=%s", self.uuid, step.id)
                continue
            if action is None:
                continue
            try:
                self._add_action(step.id, action, action_repo, audit_repo)
            except Exception:
                log.exception("Error saving action=%r", action)
            else:
                log.info("Action has been created actionId=%s", action.id)
                log.debug("action=%r", action)

    def candidate_steps(self, event: Event) -> list[Step]:
        """Return the steps that should be evaluated for *event*."""
        return [step for step in self.steps if self._is_candidate(step, event)]

    def _add_action(self, step_id: str, action: Action, action_repo: Any, audit_repo: Any) -> None:
        action.correlation_id = self.correlation_id
        action.flow_uuid = self.uuid
        action.flow_name = self.name
        action.step_id = step_id

        action_repo.add(action)
        try:
            audit_repo.add(action)
        except Exception:
            log.exception("Error saving audit for action=%r", action)
        self.actions[step_id] = action

    def _is_candidate(self, step: Step, event: Event) -> bool:
        return (
            step.event.name == event.name
            and step.event.pack_name == event.pack.name
            and step.id not in self.actions
            and self._is_depends_on_satisfied(step)
        )

    def _is_depends_on_satisfied(self, step: Step) -> bool:
        # Any one finished dependency is enough.
        if not step.depends_on:
            return True
        return any(self._has_finished_action(step_id) for step_id in step.depends_on)

    def _has_finished_action(self, step_id: str) -> bool:
        action = self.actions.get(step_id)
        return action is not None and action.has_finished()