"""Daily per-user budget for LLM-assisted parses.

Per (user, day) the counter moves Fresh (no row) -> Active (count < limit) -> Exhausted
(count == limit), and a new day starts Fresh again. The reservation itself is the atomic
boundary: the store only increments when `date == today AND count < limit` in one statement, so
two concurrent requests can never both take the last slot. There is no separate read-then-write.

A reservation is handed back with `release` when the AI call it paid for failed, so only calls
that actually produced a result consume budget. A crash between reserve and release keeps the
slot consumed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from src.intent.schema import UsageCounter, UsageSnapshot

logger = logging.getLogger(__name__)

# One re-read after a lost race (row created or day rolled over by a concurrent request).
_RESERVE_ATTEMPTS = 2


class UsageStore(Protocol):
    """Storage collaborator for per-user usage counters (one row per user)."""

    async def get(self, user_id: str) -> UsageCounter | None:
        """Return the user's counter row, if any."""
        ...

    async def increment_if_below(self, user_id: str, day: str, limit: int) -> int | None:
        """`count += 1 WHERE date = day AND count < limit`; the new count, or `None` if no row changed."""
        ...

    async def insert_first(self, user_id: str, day: str) -> bool:
        """Create the row at `count = 1` unless it already exists; whether it was created."""
        ...

    async def reset_stale(self, user_id: str, stale_day: str, day: str) -> bool:
        """`date = day, count = 1 WHERE date = stale_day`; whether a row changed."""
        ...

    async def decrement(self, user_id: str, day: str) -> int | None:
        """`count -= 1 WHERE date = day AND count > 0`; the new count, or `None` if no row changed."""
        ...


@dataclass(frozen=True)
class Reservation:
    """Outcome of `QuotaGovernor.try_reserve`."""

    allowed: bool
    snapshot: UsageSnapshot


class QuotaGovernor:
    """Reserves and releases daily LLM budget per user."""

    def __init__(self, store: UsageStore, *, daily_limit: int, clock: Callable[[], datetime]) -> None:
        if daily_limit < 0:
            raise ValueError("daily_limit must be >= 0")
        self._store = store
        self._limit = daily_limit
        self._clock = clock

    @property
    def daily_limit(self) -> int:
        return self._limit

    def today(self) -> str:
        """The current calendar day (in the clock's timezone) as an ISO string."""

        return self._clock().date().isoformat()

    def _snapshot(self, day: str, count: int) -> UsageSnapshot:
        return UsageSnapshot(date=day, count=count, limit=self._limit)

    async def try_reserve(self, user_id: str) -> Reservation:
        """Atomically take one slot of today's budget.

        Steps, each a single conditional statement in the store:
            1. increment today's row if it is below the limit;
            2. otherwise re-read: no row -> create it at 1; stale day -> reset it to today at 1;
               today's row at the limit -> exhausted.
        A lost race in step 2 (someone else created/reset the row) retries once.
        """

        day = self.today()
        if self._limit == 0:
            return Reservation(allowed=False, snapshot=self._snapshot(day, 0))

        for _ in range(_RESERVE_ATTEMPTS):
            count = await self._store.increment_if_below(user_id, day, self._limit)
            if count is not None:
                return Reservation(allowed=True, snapshot=self._snapshot(day, count))

            current = await self._store.get(user_id)
            if current is None:
                if await self._store.insert_first(user_id, day):
                    return Reservation(allowed=True, snapshot=self._snapshot(day, 1))
                continue

            if current.date != day:
                if await self._store.reset_stale(user_id, current.date, day):
                    return Reservation(allowed=True, snapshot=self._snapshot(day, 1))
                continue

            # Today's row and the conditional increment missed: the budget is spent.
            break

        snapshot = await self.snapshot(user_id)
        logger.info("quota exhausted user=%s count=%d limit=%d", user_id, snapshot.count, self._limit)
        return Reservation(allowed=False, snapshot=snapshot)

    async def release(self, user_id: str, day: str | None = None) -> UsageSnapshot:
        """Give back one slot reserved on `day` (default: today). Never goes below zero.

        A release for a day that has already rolled over is a no-op.
        """

        day = day or self.today()
        count = await self._store.decrement(user_id, day)
        if count is None:
            logger.warning("quota release had nothing to release user=%s day=%s", user_id, day)
            return await self.snapshot(user_id)
        return self._snapshot(day, count)

    async def snapshot(self, user_id: str) -> UsageSnapshot:
        """Today's usage without changing it (a stale row reads as zero)."""

        day = self.today()
        current = await self._store.get(user_id)
        if current is None or current.date != day:
            return self._snapshot(day, 0)
        return self._snapshot(day, current.count)
