"""Operations a pack performs on the actions addressed to it."""

from __future__ import annotations

import logging
from typing import Any

from .actions import Action, Event, Pack, labels_match

log = logging.getLogger(__name__)


class PackNotFoundError(LookupError):
    """Raised when no pack exists with the requested id."""

    def __init__(self, message: str = "pack not found") -> None:
        super().__init__(message)


def complete_action(
    pack: Pack, action_id: str, result: Event, action_repo: Any, audit_repo: Any
) -> Action | None:
    """Finish the action *action_id* with *result*.

    Returns ``None`` when the action belongs to a pack this one cannot stand for.
    """
    action = action_repo.get(action_id)
    if action is None:
        return None
    if action.pack_name != pack.name or not labels_match(pack.labels, action.pack_labels):
        log.error("pack=%r trying to complete actionId=%s which it cannot handle", pack, action.id)
        return None
    action.finish(result, action_repo, audit_repo)
    return action


def take_action(pack: Pack, action_name: str, action_repo: Any, audit_repo: Any) -> Action | None:
    """Take the oldest new action for *pack*, optionally restricted to *action_name*."""
    action = action_repo.find_new(pack, action_name)
    if action is None:
        return None
    action.take(action_repo, audit_repo)
    return action


def update_last_seen(pack: Pack, pack_repo: Any) -> None:
    """Record that *pack* has just been seen; failures are logged only."""
    try:
        pack_repo.update_last_seen(pack.id)
    except Exception:
        log.exception("error recording last seen record for a pack id %s", pack.id)