"""Session event dataclasses and the callback-based event emitter."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Callable

from .models import Rule


@dataclass
class StateChangeEvent:
    """The session moved from one status to another."""

    timestamp: float
    owner: str
    previous: str
    current: str

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class EmotionEvent:
    """A sample was classified and applied to the session."""

    timestamp: float
    owner: str
    emotion: str
    source: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class RulesFiredEvent:
    """Rules matched by a classified emotion, in firing order."""

    timestamp: float
    owner: str
    emotion: str
    rules: list[Rule] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "owner": self.owner,
            "emotion": self.emotion,
            "rules": [r.to_dict() for r in self.rules],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class ErrorEvent:
    """A non-fatal failure inside the session loop."""

    timestamp: float
    owner: str
    kind: str          # exception class name, e.g. "ClassificationError"
    message: str
    auth_failed: bool = False  # caller should prompt a new login

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class EventEmitter:
    """Callback registry the session publishes to.

    A callback that raises is reported and skipped; it never stops the
    session or the other callbacks.
    """

    def __init__(self) -> None:
        self._state_callbacks: list[Callable[[StateChangeEvent], None]] = []
        self._emotion_callbacks: list[Callable[[EmotionEvent], None]] = []
        self._rules_callbacks: list[Callable[[RulesFiredEvent], None]] = []
        self._error_callbacks: list[Callable[[ErrorEvent], None]] = []

    def on_state_change(self, callback: Callable[[StateChangeEvent], None]) -> None:
        """Register a callback for session status changes."""
        self._state_callbacks.append(callback)

    def on_emotion(self, callback: Callable[[EmotionEvent], None]) -> None:
        """Register a callback for classified emotions."""
        self._emotion_callbacks.append(callback)

    def on_rules_fired(self, callback: Callable[[RulesFiredEvent], None]) -> None:
        """Register a callback for matched rules."""
        self._rules_callbacks.append(callback)

    def on_error(self, callback: Callable[[ErrorEvent], None]) -> None:
        """Register a callback for sample errors."""
        self._error_callbacks.append(callback)

    def emit_state_change(self, event: StateChangeEvent) -> None:
        self._dispatch(self._state_callbacks, event)

    def emit_emotion(self, event: EmotionEvent) -> None:
        self._dispatch(self._emotion_callbacks, event)

    def emit_rules_fired(self, event: RulesFiredEvent) -> None:
        self._dispatch(self._rules_callbacks, event)

    def emit_error(self, event: ErrorEvent) -> None:
        self._dispatch(self._error_callbacks, event)

    @staticmethod
    def _dispatch(callbacks: list[Callable], event: object) -> None:
        for cb in callbacks:
            try:
                cb(event)
            except Exception as e:
                print(f"[EVENTS] Callback error: {type(e).__name__}: {e}")
