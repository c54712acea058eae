"""Rule, emotion log and snooze records, plus store row conversion."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone

from .emotions import ActionKind, Emotion


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse a store timestamp (ISO 8601 string or datetime) as aware UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        # Postgres may emit a trailing "Z" which older fromisoformat rejects
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Rule:
    """An emotion -> action mapping owned by one user."""

    id: int
    owner: str
    trigger_emotion: Emotion
    action_kind: ActionKind
    payload: str
    enabled: bool
    created_at: datetime

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """Firing order: oldest first, ties broken by id."""
        return (self.created_at, self.id)

    @classmethod
    def from_record(cls, record: dict) -> Rule:
        """Build a Rule from a `user_rules` row."""
        return cls(
            id=record["id"],
            owner=record["user_id"],
            trigger_emotion=Emotion.parse(record["emotion"]),
            action_kind=ActionKind.parse(record["action"]),
            payload=record["payload"],
            enabled=bool(record.get("is_enabled", True)),
            created_at=parse_timestamp(record["created_at"]),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "emotion": self.trigger_emotion.value,
            "action": self.action_kind.value,
            "payload": self.payload,
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
        }

    def __str__(self) -> str:
        state = "" if self.enabled else " [DISABLED]"
        return f"#{self.id} {self.trigger_emotion.value} -> {self.action_kind.value}: {self.payload}{state}"


@dataclass(frozen=True)
class EmotionLogEntry:
    """One classified sample. Append-only."""

    owner: str
    emotion: Emotion
    observed_at: datetime

    @classmethod
    def from_record(cls, record: dict) -> EmotionLogEntry:
        """Build an entry from an `emotion_logs` row."""
        return cls(
            owner=record["user_id"],
            emotion=Emotion.parse(record["emotion"]),
            observed_at=parse_timestamp(record["created_at"]),
        )

    def to_row(self) -> dict[str, str]:
        """Flat export row (the columns of the downloadable report)."""
        return {
            "created_at": self.observed_at.isoformat(),
            "emotion": self.emotion.value,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_row())


@dataclass(frozen=True)
class SnoozeWindow:
    """Per-user suspension of rule firing. None means no window."""

    owner: str
    active_until: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        return self.active_until is not None and self.active_until > now

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "active_until": self.active_until.isoformat() if self.active_until else None,
        }
