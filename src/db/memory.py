"""In-process storage collaborators.

Used when `DATABASE_URL` is not configured (local runs) and in tests. Each method holds a lock for
the whole read-modify-write, which gives the same atomicity as the single-statement Postgres
versions; nothing awaits while the lock is held.
"""

from __future__ import annotations

import threading
from itertools import count

from src.intent.schema import SmartRule, UsageCounter


class InMemorySmartRuleRepository:
    """Smart rules keyed by (globally unique) keyword."""

    def __init__(self, rules: list[SmartRule] | None = None) -> None:
        self._lock = threading.Lock()
        self._ids = count(1)
        self._by_keyword: dict[str, SmartRule] = {}
        for rule in rules or []:
            stored = rule if rule.id is not None else rule.model_copy(update={"id": next(self._ids)})
            self._by_keyword[stored.keyword] = stored

    async def list_for_user(self, user_id: str) -> list[SmartRule]:
        with self._lock:
            return [r for r in self._by_keyword.values() if r.user_id == user_id]

    async def upsert_owned(self, rule: SmartRule) -> SmartRule | None:
        with self._lock:
            existing = self._by_keyword.get(rule.keyword)
            if existing is not None and existing.user_id != rule.user_id:
                return None
            rule_id = existing.id if existing is not None else next(self._ids)
            stored = rule.model_copy(update={"id": rule_id})
            self._by_keyword[rule.keyword] = stored
            return stored


class InMemoryUsageStore:
    """Usage counters, one per user."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, UsageCounter] = {}

    async def get(self, user_id: str) -> UsageCounter | None:
        with self._lock:
            row = self._rows.get(user_id)
            return row.model_copy() if row is not None else None

    async def increment_if_below(self, user_id: str, day: str, limit: int) -> int | None:
        with self._lock:
            row = self._rows.get(user_id)
            if row is None or row.date != day or row.count >= limit:
                return None
            row.count += 1
            return row.count

    async def insert_first(self, user_id: str, day: str) -> bool:
        with self._lock:
            if user_id in self._rows:
                return False
            self._rows[user_id] = UsageCounter(user_id=user_id, date=day, count=1)
            return True

    async def reset_stale(self, user_id: str, stale_day: str, day: str) -> bool:
        with self._lock:
            row = self._rows.get(user_id)
            if row is None or row.date != stale_day:
                return False
            self._rows[user_id] = UsageCounter(user_id=user_id, date=day, count=1)
            return True

    async def decrement(self, user_id: str, day: str) -> int | None:
        with self._lock:
            row = self._rows.get(user_id)
            if row is None or row.date != day or row.count <= 0:
                return None
            row.count -= 1
            return row.count
