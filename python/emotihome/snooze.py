"""Snooze controller — a per-user window during which no rule fires."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

from .models import SnoozeWindow, utc_now


class SnoozeController:
    """Reads and writes the snooze window kept on the user's profile.

    Expiry is lazy: is_snoozed() compares the stored end time with the clock
    on every call, so an expired window needs no cleanup. Setting a window
    replaces the previous one (last write wins).
    """

    def __init__(self, store: Any, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def set_snooze(self, owner: str, minutes: float) -> SnoozeWindow:
        """Snooze for `minutes`; 0 cancels any current window."""
        if minutes < 0:
            raise ValueError(f"Snooze duration must be >= 0, got {minutes}")
        until = self._clock() + timedelta(minutes=minutes) if minutes > 0 else None
        self._store.set_snooze_until(owner, until)
        if until is None:
            print("[SNOOZE] Snooze canceled")
        else:
            print(f"[SNOOZE] Actions snoozed for {minutes:g} minutes (until {until.isoformat()})")
        return SnoozeWindow(owner=owner, active_until=until)

    def clear(self, owner: str) -> SnoozeWindow:
        return self.set_snooze(owner, 0)

    def window(self, owner: str) -> SnoozeWindow:
        """The current window; an expired one is reported as no window."""
        until = self._store.get_snooze_until(owner)
        if until is not None and until <= self._clock():
            until = None
        return SnoozeWindow(owner=owner, active_until=until)

    def is_snoozed(self, owner: str) -> bool:
        until = self._store.get_snooze_until(owner)
        return until is not None and until > self._clock()
