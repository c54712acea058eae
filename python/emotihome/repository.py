"""Rule repository — owner-scoped create/list/update/delete over the store."""

from __future__ import annotations

from typing import Any

from .defaults import DEFAULT_RULES
from .emotions import ActionKind, Emotion
from .errors import NotFound, RuleValidationError
from .models import Rule


def validate_emotion(value: object) -> Emotion:
    emotion = Emotion.parse(value)
    if not emotion.is_trigger:
        raise RuleValidationError(f"Please select an emotion (got {value!r})")
    return emotion


def validate_action(value: object) -> ActionKind:
    try:
        return ActionKind.parse(value)
    except ValueError as e:
        raise RuleValidationError(f"Please select an action (got {value!r})") from e


def validate_payload(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise RuleValidationError("Please provide a value for the action")
    return value.strip()


class RuleRepository:
    """CRUD over one user's automation rules.

    Every call takes the owner explicitly and passes it down to the store,
    which only ever touches that owner's rows. A rule that is missing or
    belongs to another user raises NotFound either way. Store failures
    propagate as PersistenceError.
    """

    def __init__(self, store: Any) -> None:
        self._store = store

    def create(
        self,
        owner: str,
        emotion: object,
        action: object,
        payload: object,
        enabled: bool = True,
    ) -> Rule:
        record = {
            "user_id": owner,
            "emotion": validate_emotion(emotion).value,
            "action": validate_action(action).value,
            "payload": validate_payload(payload),
            "is_enabled": bool(enabled),
        }
        rule = Rule.from_record(self._store.insert_rule(record))
        print(f"[RULES] Rule added: {rule}")
        return rule

    def list(self, owner: str) -> list[Rule]:
        """All rules of `owner`, oldest first."""
        rules = [Rule.from_record(r) for r in self._store.select_rules(owner)]
        return sorted(rules, key=lambda r: r.sort_key)

    def enabled_rules(self, owner: str) -> list[Rule]:
        return [r for r in self.list(owner) if r.enabled]

    def get(self, owner: str, rule_id: int) -> Rule:
        rows = self._store.select_rules(owner, rule_id=rule_id)
        if not rows:
            raise NotFound(f"Rule {rule_id} not found")
        return Rule.from_record(rows[0])

    def update(
        self,
        owner: str,
        rule_id: int,
        *,
        emotion: object = None,
        action: object = None,
        payload: object = None,
        enabled: bool | None = None,
    ) -> Rule:
        """Change any subset of a rule's editable fields."""
        changes: dict[str, Any] = {}
        if emotion is not None:
            changes["emotion"] = validate_emotion(emotion).value
        if action is not None:
            changes["action"] = validate_action(action).value
        if payload is not None:
            changes["payload"] = validate_payload(payload)
        if enabled is not None:
            changes["is_enabled"] = bool(enabled)
        if not changes:
            return self.get(owner, rule_id)

        row = self._store.update_rule(owner, rule_id, changes)
        if row is None:
            raise NotFound(f"Rule {rule_id} not found")
        rule = Rule.from_record(row)
        print(f"[RULES] Rule updated: {rule}")
        return rule

    def set_enabled(self, owner: str, rule_id: int, enabled: bool) -> Rule:
        return self.update(owner, rule_id, enabled=enabled)

    def toggle(self, owner: str, rule_id: int) -> Rule:
        rule = self.get(owner, rule_id)
        return self.set_enabled(owner, rule_id, not rule.enabled)

    def delete(self, owner: str, rule_id: int) -> None:
        if self._store.delete_rule(owner, rule_id) is None:
            raise NotFound(f"Rule {rule_id} not found")
        print(f"[RULES] Rule {rule_id} deleted")

    def copy_defaults(self, owner: str) -> list[Rule]:
        """Insert the recommended rule set into the owner's account."""
        records = [
            {
                "user_id": owner,
                "emotion": r["emotion"].value,
                "action": r["action"].value,
                "payload": r["payload"],
                "is_enabled": r["enabled"],
            }
            for r in DEFAULT_RULES
        ]
        rules = [Rule.from_record(row) for row in self._store.insert_rules(records)]
        print(f"[RULES] Copied {len(rules)} default rules")
        return sorted(rules, key=lambda r: r.sort_key)
