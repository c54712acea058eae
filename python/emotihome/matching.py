"""Rule matching — which rules fire for a newly classified emotion."""

from __future__ import annotations

from typing import Iterable

from .emotions import Emotion
from .models import Rule
from .repository import RuleRepository
from .snooze import SnoozeController


def match_rules(rules: Iterable[Rule], emotion: object, snoozed: bool = False) -> list[Rule]:
    """Pure matching step.

    Returns the enabled rules whose trigger equals `emotion`, oldest first
    (ties by id). Returns [] for unknown or non-canonical labels and while
    snoozed. Never raises on a bad emotion label.
    """
    target = Emotion.canonical(emotion)
    if not target.is_trigger or snoozed:
        return []
    matched = [r for r in rules if r.enabled and r.trigger_emotion is target]
    return sorted(matched, key=lambda r: r.sort_key)


class RuleMatcher:
    """Evaluates an owner's stored rules against one emotion.

    Snooze is a global override for the owner: when it is active nothing
    fires, whatever the rules say. This class only decides; executing the
    actions is the local agent's job.
    """

    def __init__(self, repository: RuleRepository, snooze: SnoozeController) -> None:
        self._repository = repository
        self._snooze = snooze

    def evaluate(self, owner: str, emotion: object) -> list[Rule]:
        target = Emotion.canonical(emotion)
        if not target.is_trigger:
            return []
        if self._snooze.is_snoozed(owner):
            print(f"[MATCH] {target.value}: snoozed, no rules fire")
            return []
        fired = match_rules(self._repository.list(owner), target)
        if fired:
            print(f"[MATCH] {target.value}: {len(fired)} rule(s) fire -> {', '.join(str(r.id) for r in fired)}")
        return fired
