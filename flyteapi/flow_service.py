"""Dispatching events and completed actions to the flows they concern."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from typing import Any

from .actions import Action, Event
from .execution_flow import ExecutionFlow

log = logging.getLogger(__name__)


class FlowService:
    """Starts flow runs for events and continues runs for completed actions.

    When an *executor* is given, each flow started by an event runs on it;
    otherwise flows run in the calling thread.
    """

    def __init__(
        self, flow_repo: Any, action_repo: Any, audit_repo: Any, executor: Executor | None = None
    ) -> None:
        self.flow_repo = flow_repo
        self.action_repo = action_repo
        self.audit_repo = audit_repo
        self.executor = executor

    def handle_event(self, event: Event) -> None:
        """Let every flow that *event* can start handle it."""
        try:
            flows = self.flow_repo.find_by_event(event)
        except Exception:
            log.exception("Error handling event=%r", event)
            return

        for flow in flows:
            if self.executor is None:
                self._run(flow, event)
            else:
                self.executor.submit(self._run, flow, event)

    def handle_action(self, action: Action) -> None:
        """Pass the result of a completed *action* on to the flow run it belongs to."""
        try:
            flow = self.flow_repo.get_by_action(action)
        except Exception:
            log.exception("Error handling action=%r", action)
            return
        if flow is None:
            log.error("Error handling action=%r: flow not found", action)
            return
        self._run(flow, action.result)

    def _run(self, flow: ExecutionFlow, event: Event) -> None:
        try:
            flow.handle_event(event, self.action_repo, self.audit_repo)
        except Exception:
            log.exception("Error running flow=%s for event=%r", flow.uuid, event)