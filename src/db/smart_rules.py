"""Postgres repository for smart rules."""

from __future__ import annotations

from typing import Any

from psycopg_pool import AsyncConnectionPool

from src.db.pool import get_conn
from src.db.query import fetch_all, fetch_one
from src.intent.schema import SmartRule

_COLUMNS = "id, keyword, mapped_type, mapped_category, user_id"

_LIST_FOR_USER_SQL = f"SELECT {_COLUMNS} FROM smart_rules WHERE user_id = %s ORDER BY id"

# The WHERE on the conflict branch makes the ownership check part of the write: a keyword owned
# by someone else produces no row instead of being overwritten.
_UPSERT_OWNED_SQL = f"""
    INSERT INTO smart_rules (keyword, mapped_type, mapped_category, user_id)
    VALUES (%s, %s, %s, %s)
    ON CONFLICT (keyword) DO UPDATE
        SET mapped_type = EXCLUDED.mapped_type,
            mapped_category = EXCLUDED.mapped_category,
            updated_at = NOW()
        WHERE smart_rules.user_id = EXCLUDED.user_id
    RETURNING {_COLUMNS}
"""


def _rule_from_row(row: tuple[Any, ...]) -> SmartRule:
    rule_id, keyword, mapped_type, mapped_category, user_id = row
    return SmartRule(
        id=rule_id,
        keyword=keyword,
        mapped_type=mapped_type,
        mapped_category=mapped_category,
        user_id=user_id,
    )


class PostgresSmartRuleRepository:
    """Smart rules stored in the `smart_rules` table (unique `keyword`)."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def list_for_user(self, user_id: str) -> list[SmartRule]:
        async with get_conn(self._pool) as conn:
            rows = await fetch_all(conn, _LIST_FOR_USER_SQL, (user_id,))
        return [_rule_from_row(r) for r in rows]

    async def upsert_owned(self, rule: SmartRule) -> SmartRule | None:
        params = (rule.keyword, str(rule.mapped_type), rule.mapped_category, rule.user_id)
        async with get_conn(self._pool) as conn:
            row = await fetch_one(conn, _UPSERT_OWNED_SQL, params)
        return _rule_from_row(row) if row else None
