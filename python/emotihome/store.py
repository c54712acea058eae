"""Persistent store adapters: Supabase tables and an in-memory stand-in.

Both stores expose the same methods and speak in plain row dicts using the
database column names (`user_id`, `is_enabled`, `created_at`, ...). Every
rule query is filtered by owner, so a row that belongs to someone else looks
exactly like a missing row.
"""

from __future__ import annotations

import copy
import os
import threading
from datetime import datetime
from typing import Any, Callable

from . import config
from .errors import PersistenceError
from .models import parse_timestamp, utc_now

RULES_TABLE = "user_rules"
LOGS_TABLE = "emotion_logs"
PROFILES_TABLE = "profiles"


class MemoryStore:
    """Thread-safe in-process store with the same contract as SupabaseStore.

    Used by the tests and by the CLI's `--memory` option.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._rules: dict[int, dict] = {}
        self._logs: list[dict] = []
        self._profiles: dict[str, dict] = {}
        self._next_rule_id = 1
        self._next_log_id = 1

    # --- rules ---

    def insert_rules(self, records: list[dict]) -> list[dict]:
        inserted = []
        with self._lock:
            now = self._clock()
            for record in records:
                row = dict(record, id=self._next_rule_id, created_at=now)
                row.setdefault("is_enabled", True)
                self._rules[row["id"]] = row
                self._next_rule_id += 1
                inserted.append(copy.deepcopy(row))
        return inserted

    def insert_rule(self, record: dict) -> dict:
        return self.insert_rules([record])[0]

    def select_rules(self, owner: str, rule_id: int | None = None) -> list[dict]:
        with self._lock:
            rows = [
                copy.deepcopy(r) for r in self._rules.values()
                if r["user_id"] == owner and (rule_id is None or r["id"] == rule_id)
            ]
        return sorted(rows, key=lambda r: (r["created_at"], r["id"]))

    def update_rule(self, owner: str, rule_id: int, changes: dict) -> dict | None:
        with self._lock:
            row = self._rules.get(rule_id)
            if row is None or row["user_id"] != owner:
                return None
            row.update(changes)
            return copy.deepcopy(row)

    def delete_rule(self, owner: str, rule_id: int) -> dict | None:
        with self._lock:
            row = self._rules.get(rule_id)
            if row is None or row["user_id"] != owner:
                return None
            return self._rules.pop(rule_id)

    # --- emotion logs ---

    def insert_emotion_log(self, record: dict) -> dict:
        with self._lock:
            row = dict(record, id=self._next_log_id)
            row.setdefault("created_at", self._clock())
            self._next_log_id += 1
            self._logs.append(row)
            return dict(row)

    def select_emotion_logs(
        self,
        owner: str,
        since: datetime | None = None,
        limit: int | None = config.HISTORY_LIMIT,
    ) -> list[dict]:
        with self._lock:
            rows = [
                dict(r) for r in self._logs
                if r["user_id"] == owner
                and (since is None or parse_timestamp(r["created_at"]) >= since)
            ]
        rows.sort(key=lambda r: (parse_timestamp(r["created_at"]), r["id"]), reverse=True)
        return rows if limit is None else rows[:limit]

    # --- profile / snooze ---

    def get_snooze_until(self, owner: str) -> datetime | None:
        with self._lock:
            profile = self._profiles.get(owner, {})
            return parse_timestamp(profile.get("snooze_until"))

    def set_snooze_until(self, owner: str, until: datetime | None) -> None:
        with self._lock:
            self._profiles.setdefault(owner, {"id": owner})["snooze_until"] = until


class SupabaseStore:
    """Store backed by the Supabase `user_rules`, `emotion_logs` and `profiles` tables.

    The client should carry the user's access token so row level security
    scopes every query to that user; queries are filtered by owner as well.
    Any client failure is raised as PersistenceError.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_env(cls) -> SupabaseStore:
        """Create a client from SUPABASE_URL / SUPABASE_ANON_KEY / SUPABASE_JWT."""
        url = os.environ.get(config.ENV_SUPABASE_URL)
        key = os.environ.get(config.ENV_SUPABASE_KEY)
        if not url or not key:
            raise PersistenceError(
                f"{config.ENV_SUPABASE_URL} or {config.ENV_SUPABASE_KEY} not set"
            )

        from supabase import create_client

        try:
            client = create_client(url, key)
        except Exception as e:
            raise PersistenceError(f"Failed to initialize Supabase: {e}") from e

        token = os.environ.get(config.ENV_SUPABASE_JWT)
        if token:
            client.postgrest.auth(token)
        print("[STORE] Supabase client initialized")
        return cls(client)

    def _execute(self, query: Any, what: str) -> list[dict]:
        try:
            result = query.execute()
        except Exception as e:
            print(f"[STORE] {what} failed: {type(e).__name__}: {e}")
            raise PersistenceError(f"{what} failed: {e}") from e
        return result.data or []

    # --- rules ---

    def insert_rules(self, records: list[dict]) -> list[dict]:
        query = self._client.table(RULES_TABLE).insert(records)
        return self._execute(query, "Insert rules")

    def insert_rule(self, record: dict) -> dict:
        rows = self.insert_rules([record])
        if not rows:
            raise PersistenceError("Insert rule returned no row")
        return rows[0]

    def select_rules(self, owner: str, rule_id: int | None = None) -> list[dict]:
        query = self._client.table(RULES_TABLE).select("*").eq("user_id", owner)
        if rule_id is not None:
            query = query.eq("id", rule_id)
        query = query.order("created_at", desc=False).order("id", desc=False)
        return self._execute(query, "Select rules")

    def update_rule(self, owner: str, rule_id: int, changes: dict) -> dict | None:
        query = (
            self._client.table(RULES_TABLE)
            .update(changes)
            .eq("id", rule_id)
            .eq("user_id", owner)
        )
        rows = self._execute(query, "Update rule")
        return rows[0] if rows else None

    def delete_rule(self, owner: str, rule_id: int) -> dict | None:
        query = (
            self._client.table(RULES_TABLE)
            .delete()
            .eq("id", rule_id)
            .eq("user_id", owner)
        )
        rows = self._execute(query, "Delete rule")
        return rows[0] if rows else None

    # --- emotion logs ---

    def insert_emotion_log(self, record: dict) -> dict:
        row = dict(record)
        if isinstance(row.get("created_at"), datetime):
            row["created_at"] = row["created_at"].isoformat()
        rows = self._execute(self._client.table(LOGS_TABLE).insert(row), "Insert emotion log")
        return rows[0] if rows else row

    def select_emotion_logs(
        self,
        owner: str,
        since: datetime | None = None,
        limit: int | None = config.HISTORY_LIMIT,
    ) -> list[dict]:
        query = self._client.table(LOGS_TABLE).select("created_at, emotion, user_id").eq("user_id", owner)
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        query = query.order("created_at", desc=True)
        if limit is not None:
            query = query.limit(limit)
        return self._execute(query, "Select emotion logs")

    # --- profile / snooze ---

    def get_snooze_until(self, owner: str) -> datetime | None:
        query = self._client.table(PROFILES_TABLE).select("snooze_until").eq("id", owner).limit(1)
        rows = self._execute(query, "Select profile")
        if not rows:
            return None
        return parse_timestamp(rows[0].get("snooze_until"))

    def set_snooze_until(self, owner: str, until: datetime | None) -> None:
        record = {"id": owner, "snooze_until": until.isoformat() if until else None}
        self._execute(self._client.table(PROFILES_TABLE).upsert(record), "Update snooze")
