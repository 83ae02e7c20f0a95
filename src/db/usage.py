"""Postgres usage counters for the quota governor.

Every mutation is a single conditional statement so that Postgres row locking provides the
compare-and-increment semantics the governor relies on.
"""

from __future__ import annotations

from psycopg_pool import AsyncConnectionPool

from src.db.pool import get_conn
from src.db.query import fetch_one
from src.intent.schema import UsageCounter

_GET_SQL = "SELECT user_id, usage_date, count FROM ai_usage WHERE user_id = %s"

_INCREMENT_IF_BELOW_SQL = """
    UPDATE ai_usage
    SET count = count + 1, updated_at = NOW()
    WHERE user_id = %s AND usage_date = %s AND count < %s
    RETURNING count
"""

_INSERT_FIRST_SQL = """
    INSERT INTO ai_usage (user_id, usage_date, count)
    VALUES (%s, %s, 1)
    ON CONFLICT (user_id) DO NOTHING
    RETURNING count
"""

_RESET_STALE_SQL = """
    UPDATE ai_usage
    SET usage_date = %s, count = 1, updated_at = NOW()
    WHERE user_id = %s AND usage_date = %s
    RETURNING count
"""

_DECREMENT_SQL = """
    UPDATE ai_usage
    SET count = count - 1, updated_at = NOW()
    WHERE user_id = %s AND usage_date = %s AND count > 0
    RETURNING count
"""


class PostgresUsageStore:
    """Counters stored in the `ai_usage` table (one row per user)."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def get(self, user_id: str) -> UsageCounter | None:
        async with get_conn(self._pool) as conn:
            row = await fetch_one(conn, _GET_SQL, (user_id,))
        if not row:
            return None
        return UsageCounter(user_id=row[0], date=row[1], count=row[2])

    async def increment_if_below(self, user_id: str, day: str, limit: int) -> int | None:
        async with get_conn(self._pool) as conn:
            row = await fetch_one(conn, _INCREMENT_IF_BELOW_SQL, (user_id, day, limit))
        return int(row[0]) if row else None

    async def insert_first(self, user_id: str, day: str) -> bool:
        async with get_conn(self._pool) as conn:
            row = await fetch_one(conn, _INSERT_FIRST_SQL, (user_id, day))
        return row is not None

    async def reset_stale(self, user_id: str, stale_day: str, day: str) -> bool:
        async with get_conn(self._pool) as conn:
            row = await fetch_one(conn, _RESET_STALE_SQL, (day, user_id, stale_day))
        return row is not None

    async def decrement(self, user_id: str, day: str) -> int | None:
        async with get_conn(self._pool) as conn:
            row = await fetch_one(conn, _DECREMENT_SQL, (user_id, day))
        return int(row[0]) if row else None
