"""Emotion log — appends classified samples and reads bounded history back."""

from __future__ import annotations

import csv
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import IO, Any, Callable, Iterable

from . import config
from .emotions import Emotion
from .models import EmotionLogEntry, utc_now

EXPORT_FIELDS = ("created_at", "emotion")

_INSIGHTS = {
    Emotion.HAPPY: "You're maintaining a positive outlook!",
    Emotion.SURPRISE: "You're maintaining a positive outlook!",
    Emotion.SAD: "Remember to be kind to yourself.",
    Emotion.ANGRY: "Remember to be kind to yourself.",
    Emotion.FEAR: "Remember to be kind to yourself.",
    Emotion.NEUTRAL: "You've kept a great sense of balance.",
}
_NO_INSIGHT = "Start using the app to discover trends in your emotional well-being."


@dataclass(frozen=True)
class EmotionSummary:
    """Dominant emotion over a time range."""

    dominant_emotion: Emotion | None
    total_logs: int
    message: str

    def to_dict(self) -> dict:
        return {
            "dominant_emotion": self.dominant_emotion.value if self.dominant_emotion else None,
            "total_logs": self.total_logs,
            "message": self.message,
        }


def range_start(time_range: str, now: datetime) -> datetime:
    """Start instant for a named range ("day" or "week")."""
    try:
        hours = config.HISTORY_RANGES[time_range]
    except KeyError:
        raise ValueError(f"Unknown time range: {time_range!r}") from None
    return now - timedelta(hours=hours)


def default_report_name(today: date | None = None) -> str:
    today = today or date.today()
    return f"wellness_report_{today.isoformat()}.csv"


class EmotionLog:
    """Append-only emotion history for each owner.

    Entries are stamped with this adapter's clock at append time, so they
    are never backdated and come out in sample order.
    """

    def __init__(self, store: Any, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    def append(self, owner: str, emotion: object) -> EmotionLogEntry:
        entry = EmotionLogEntry(owner=owner, emotion=Emotion.parse(emotion), observed_at=self._clock())
        self._store.insert_emotion_log({
            "user_id": entry.owner,
            "emotion": entry.emotion.value,
            "created_at": entry.observed_at,
        })
        return entry

    def history(
        self,
        owner: str,
        since: datetime | None = None,
        time_range: str = "day",
        limit: int = config.HISTORY_LIMIT,
    ) -> list[EmotionLogEntry]:
        """Entries since `since` (or the start of `time_range`), most recent first."""
        if since is None:
            since = range_start(time_range, self._clock())
        rows = self._store.select_emotion_logs(owner, since=since, limit=limit)
        return [EmotionLogEntry.from_record(r) for r in rows]

    def summary(self, owner: str, time_range: str = config.SUMMARY_RANGE) -> EmotionSummary:
        """Dominant emotion over the range, with a short insight message."""
        since = range_start(time_range, self._clock())
        rows = self._store.select_emotion_logs(owner, since=since, limit=None)
        counts = Counter(
            e for e in (Emotion.parse(r["emotion"]) for r in rows) if e.is_trigger
        )
        total = len(rows)
        if not counts or total < config.SUMMARY_MIN_LOGS:
            return EmotionSummary(dominant_emotion=None, total_logs=total, message=_NO_INSIGHT)

        dominant = counts.most_common(1)[0][0]
        message = f"Your dominant emotion this {time_range} has been {dominant.value}. {_INSIGHTS[dominant]}"
        return EmotionSummary(dominant_emotion=dominant, total_logs=total, message=message)


def export_rows(entries: Iterable[EmotionLogEntry]) -> list[dict[str, str]]:
    """Flat records, oldest first, as in the downloadable report."""
    ordered = sorted(entries, key=lambda e: e.observed_at)
    return [e.to_row() for e in ordered]


def write_csv(entries: Iterable[EmotionLogEntry], target: str | Path | IO[str]) -> int:
    """Write entries as CSV to a path or open text file. Returns the row count."""
    rows = export_rows(entries)
    if isinstance(target, (str, Path)):
        with open(target, "w", newline="", encoding="utf-8") as f:
            _write_rows(rows, f)
    else:
        _write_rows(rows, target)
    return len(rows)


def _write_rows(rows: list[dict[str, str]], f: IO[str]) -> None:
    writer = csv.DictWriter(f, fieldnames=EXPORT_FIELDS)
    writer.writeheader()
    writer.writerows(rows)
