"""What the local agent polls: enabled rules and the current snooze state."""

from __future__ import annotations

import json

from .repository import RuleRepository
from .snooze import SnoozeController


def agent_view(owner: str, repository: RuleRepository, snooze: SnoozeController) -> dict:
    window = snooze.window(owner)
    return {
        "owner": owner,
        "snoozed": window.active_until is not None,
        "snooze_until": window.active_until.isoformat() if window.active_until else None,
        "rules": [r.to_dict() for r in repository.enabled_rules(owner)],
    }


def agent_view_json(owner: str, repository: RuleRepository, snooze: SnoozeController) -> str:
    return json.dumps(agent_view(owner, repository, snooze), indent=2)
