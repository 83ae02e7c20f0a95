"""Quick-add pipeline orchestration.

Strategy for one sentence:
    1) a matching smart rule of the user decides kind/category (AI and fallback skipped);
    2) otherwise, if assisted parsing is configured, reserve one slot of the user's daily budget;
       a denied reservation ends with `QuotaExhausted` and the LLM is never called;
    3) ask the LLM; a failure gives the slot back;
    4) the rules fallback always produces a result.

Only empty input is rejected. Storage and LLM failures are logged and degrade to the fallback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from time import monotonic

from src.db.query import StoreError
from src.intent.llm_parser import AssistedParser, LLMParserError, intent_from_ai_payload
from src.intent.rules_parser import parse_fallback
from src.intent.schema import ParsedIntent, QuotaExhausted, SmartRule
from src.intent.smart_rules import SmartRuleStore, intent_from_smart_rule
from src.quota.governor import QuotaGovernor

logger = logging.getLogger(__name__)

AI_DISABLED_REASON = "Chưa cấu hình AI."
AI_FAILED_REASON = "AI không trả về kết quả hợp lệ."
QUOTA_UNAVAILABLE_REASON = "Không kiểm tra được hạn mức AI."


class InvalidInputError(ValueError):
    """Raised for empty or whitespace-only input."""


QuickAddResult = ParsedIntent | QuotaExhausted


class QuickAddPipeline:
    """Turns one raw sentence of one user into a `ParsedIntent` (or `QuotaExhausted`)."""

    def __init__(
            self,
            *,
            rules: SmartRuleStore,
            governor: QuotaGovernor,
            assisted: AssistedParser | None,
            clock: Callable[[], datetime],
    ) -> None:
        self._rules = rules
        self._governor = governor
        self._assisted = assisted
        self._clock = clock

    @property
    def rules(self) -> SmartRuleStore:
        return self._rules

    @property
    def governor(self) -> QuotaGovernor:
        return self._governor

    async def quick_add(self, raw_input: str, user_id: str) -> QuickAddResult:
        """Parse a sentence for a user.

        Raises:
            InvalidInputError: If the input is empty or whitespace-only.
        """

        if not raw_input or not raw_input.strip():
            raise InvalidInputError("input text is empty")

        started = monotonic()
        now = self._clock()
        result = await self._resolve(raw_input, user_id, now)

        latency_ms = int((monotonic() - started) * 1000)
        if isinstance(result, QuotaExhausted):
            logger.info("quick_add quota_exhausted user=%s latency_ms=%d", user_id, latency_ms)
        else:
            logger.info(
                "quick_add source=%s kind=%s user=%s latency_ms=%d",
                result.source,
                result.kind,
                user_id,
                latency_ms,
            )
        return result

    async def _resolve(self, text: str, user_id: str, now: datetime) -> QuickAddResult:
        rule = await self._find_rule(text, user_id)
        if rule is not None:
            return intent_from_smart_rule(text, rule, now=now)

        if self._assisted is None:
            return parse_fallback(text, now=now, reason=AI_DISABLED_REASON)

        try:
            reservation = await self._governor.try_reserve(user_id)
        except StoreError:
            logger.warning("quota reservation failed user=%s", user_id, exc_info=True)
            return parse_fallback(text, now=now, reason=QUOTA_UNAVAILABLE_REASON)

        if not reservation.allowed:
            return QuotaExhausted.from_snapshot(reservation.snapshot)

        try:
            payload = await self._assisted.parse(text)
            return intent_from_ai_payload(text, payload, now=now)
        except (LLMParserError, ValueError) as exc:
            # The slot paid for a call that produced nothing usable.
            logger.warning("assisted parse failed user=%s reason=%s", user_id, exc)
            await self._release(user_id, reservation.snapshot.date)

        return parse_fallback(text, now=now, reason=AI_FAILED_REASON)

    async def _find_rule(self, text: str, user_id: str) -> SmartRule | None:
        try:
            return await self._rules.find_match(text, user_id)
        except StoreError:
            logger.warning("smart rule lookup failed user=%s", user_id, exc_info=True)
            return None

    async def _release(self, user_id: str, day: str) -> None:
        try:
            await self._governor.release(user_id, day)
        except StoreError:
            logger.warning("quota release failed user=%s day=%s", user_id, day, exc_info=True)
