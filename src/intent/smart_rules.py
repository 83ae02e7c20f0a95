"""Per-user learned keyword overrides ("smart rules").

A rule maps a keyword to an intent kind (and optionally a category). When one of the user's
keywords occurs in the input, the rule decides kind/category and the rules parser is only used to
recover the date, amount and tags.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from src.intent.extractors import extract_amount, infer_category, infer_tags
from src.intent.normalize import normalize_text
from src.intent.rules_parser import analyze, assumption_notes, calendar_times, detect_direction
from src.intent.schema import Direction, IntentKind, ParsedIntent, SmartRule

logger = logging.getLogger(__name__)

SMART_RULE_NOTE = "Đã sử dụng Smart Learning để parse."
DEFAULT_DIRECTION_NOTE = "Không rõ thu hay chi, mặc định là chi."
MISSING_AMOUNT_NOTE = "Chưa tìm thấy số tiền, vui lòng bổ sung."


class RuleOwnershipConflictError(ValueError):
    """Raised when a keyword is already owned by another user."""


class SmartRuleRepository(Protocol):
    """Storage collaborator for smart rules (keyword is globally unique)."""

    async def list_for_user(self, user_id: str) -> list[SmartRule]:
        """Return all rules owned by the user."""
        ...

    async def upsert_owned(self, rule: SmartRule) -> SmartRule | None:
        """Insert or update by keyword, only if the keyword is free or owned by `rule.user_id`.

        Returns the stored rule, or `None` when another user owns the keyword. The ownership check
        and the write must be one atomic operation.
        """
        ...


def select_rule(text: str, rules: Iterable[SmartRule]) -> SmartRule | None:
    """Pick the rule with the longest normalized keyword contained in the text.

    Ties are broken by the lowest rule id, then by keyword, so the choice is deterministic.
    """

    normalized = normalize_text(text)
    candidates: list[tuple[int, int, str, SmartRule]] = []
    for rule in rules:
        keyword = normalize_text(rule.keyword).strip()
        if keyword and keyword in normalized:
            candidates.append((-len(keyword), rule.id if rule.id is not None else 0, keyword, rule))

    if not candidates:
        return None
    return min(candidates, key=lambda c: c[:3])[3]


class SmartRuleStore:
    """Reads and writes smart rules through a repository."""

    def __init__(self, repository: SmartRuleRepository) -> None:
        self._repository = repository

    async def find_match(self, text: str, user_id: str) -> SmartRule | None:
        """Return the best matching rule of this user, if any."""

        rules = await self._repository.list_for_user(user_id)
        return select_rule(text, rules)

    async def rules_for_user(self, user_id: str) -> list[SmartRule]:
        rules = await self._repository.list_for_user(user_id)
        return sorted(rules, key=lambda r: normalize_text(r.keyword))

    async def upsert(
            self,
            keyword: str,
            mapped_type: IntentKind | str,
            mapped_category: str | None,
            user_id: str,
    ) -> SmartRule:
        """Create or update the user's rule for a keyword.

        Raises:
            RuleOwnershipConflictError: If the keyword belongs to another user.
            ValueError: If the keyword is empty or the type is unknown.
        """

        rule = SmartRule(
            keyword=keyword,
            mapped_type=mapped_type,
            mapped_category=mapped_category,
            user_id=user_id,
        )
        stored = await self._repository.upsert_owned(rule)
        if stored is None:
            raise RuleOwnershipConflictError(f"keyword {rule.keyword!r} already belongs to another user")

        logger.info("smart rule saved keyword=%r type=%s user=%s", stored.keyword, stored.mapped_type, user_id)
        return stored


def intent_from_smart_rule(text: str, rule: SmartRule, *, now: datetime) -> ParsedIntent:
    """Build the result for a matched rule; the rule decides kind and category."""

    analysis = analyze(text, now.date())
    kind = rule.mapped_type
    occurs_at, due_or_end_at = calendar_times(analysis, kind, now=now)
    notes = [SMART_RULE_NOTE]

    amount = None
    direction = None
    category = rule.mapped_category
    if kind == IntentKind.transaction:
        amount = extract_amount(analysis.stripped)
        direction = detect_direction(analysis.stripped)
        if direction is None:
            direction = Direction.expense
            notes.append(DEFAULT_DIRECTION_NOTE)
        if amount is None:
            notes.append(MISSING_AMOUNT_NOTE)
        category = category or infer_category(text)

    notes.extend(assumption_notes(analysis, kind))
    return ParsedIntent(
        kind=kind,
        title=analysis.title,
        occurs_at=occurs_at,
        due_or_end_at=due_or_end_at,
        amount=amount,
        direction=direction,
        category=category,
        tags=infer_tags(text),
        confidence_notes=notes,
        source="smart_rule",
    )
