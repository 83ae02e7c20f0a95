"""Application composition root.

This module wires together configuration, storage collaborators and the quick-add pipeline for the
bot runtime.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from psycopg_pool import AsyncConnectionPool

from src.config.settings import Settings
from src.db.memory import InMemorySmartRuleRepository, InMemoryUsageStore
from src.db.pool import create_pool
from src.db.smart_rules import PostgresSmartRuleRepository
from src.db.usage import PostgresUsageStore
from src.intent.llm_parser import AssistedParser, llm_config_from_settings
from src.intent.parser import QuickAddPipeline
from src.intent.smart_rules import SmartRuleRepository, SmartRuleStore
from src.quota.governor import QuotaGovernor, UsageStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class App:
    """Shared application dependencies for handlers."""

    settings: Settings
    pipeline: QuickAddPipeline
    pool: AsyncConnectionPool | None = None


def make_clock(settings: Settings) -> Callable[[], datetime]:
    """Current time in the configured timezone."""

    tz = settings.tz
    return lambda: datetime.now(tz)


def create_app(settings: Settings) -> App:
    """Create the application container.

    Note:
        When `DATABASE_URL` is set, the returned DB pool is not opened. Call
        `await app.pool.open()` at startup.
    """

    pool: AsyncConnectionPool | None = None
    repository: SmartRuleRepository
    usage_store: UsageStore
    if settings.database_url:
        pool = create_pool(settings.database_url, max_size=10)
        repository = PostgresSmartRuleRepository(pool)
        usage_store = PostgresUsageStore(pool)
    else:
        logger.warning("DATABASE_URL is not set; smart rules and AI usage are kept in memory")
        repository = InMemorySmartRuleRepository()
        usage_store = InMemoryUsageStore()

    clock = make_clock(settings)
    llm_config = llm_config_from_settings(settings)
    pipeline = QuickAddPipeline(
        rules=SmartRuleStore(repository),
        governor=QuotaGovernor(usage_store, daily_limit=settings.ai_daily_limit, clock=clock),
        assisted=AssistedParser(llm_config) if llm_config else None,
        clock=clock,
    )
    return App(settings=settings, pipeline=pipeline, pool=pool)
