"""Tests for the aiogram message handlers' reply contract.

Every incoming message gets exactly one reply; internal failures are answered with a generic
message and never leak details.
"""

from __future__ import annotations

from datetime import datetime
from types import SimpleNamespace
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from src.bot.handlers import (
    EMPTY_INPUT_REPLY,
    HELP_REPLY,
    INTERNAL_ERROR_REPLY,
    NO_RULES_REPLY,
    RULE_CONFLICT_REPLY,
    RULE_USAGE_REPLY,
    handle_message,
    handle_quota_command,
    handle_rule_command,
    handle_rules_command,
    handle_start_command,
)
from src.db.memory import InMemorySmartRuleRepository, InMemoryUsageStore
from src.intent.parser import QuickAddPipeline
from src.intent.schema import QuotaExhausted
from src.intent.smart_rules import SmartRuleStore
from src.quota.governor import QuotaGovernor

TZ = ZoneInfo("Asia/Ho_Chi_Minh")
NOW = datetime(2026, 10, 14, 10, 30, tzinfo=TZ)


class _FakeMessage:
    def __init__(self, text: str | None, user_id: int | None = 42) -> None:
        self.text = text
        self.caption = None
        self.from_user = SimpleNamespace(id=user_id) if user_id is not None else None
        self.chat = SimpleNamespace(id=-100)
        self.answers: list[str] = []

    async def answer(self, text: str) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append(text)


def _make_app(limit: int = 5) -> Any:
    clock = lambda: NOW  # noqa: E731
    pipeline = QuickAddPipeline(
        rules=SmartRuleStore(InMemorySmartRuleRepository()),
        governor=QuotaGovernor(InMemoryUsageStore(), daily_limit=limit, clock=clock),
        assisted=None,
        clock=clock,
    )
    return SimpleNamespace(settings=SimpleNamespace(), pipeline=pipeline, pool=None)


def _single_reply(message: _FakeMessage) -> str:
    assert len(message.answers) == 1
    return message.answers[0]


@pytest.mark.asyncio
async def test_transaction_reply() -> None:
    message = _FakeMessage("chi 45k ăn sáng mai 7pm")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    reply = _single_reply(message)
    assert reply.startswith("Giao dịch: chi 45k an")
    assert "15/10/2026 19:00" in reply
    assert "Số tiền: 45,000 VND (chi)" in reply
    assert "Danh mục: Food" in reply


@pytest.mark.asyncio
async def test_task_reply_lists_tags() -> None:
    message = _FakeMessage("thi lái xe sáng thứ 7 tuần này")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    reply = _single_reply(message)
    assert reply.startswith("Task: thi lai xe")
    assert "17/10/2026 08:00" in reply
    assert "Tags: study, transport" in reply


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [None, "", "   "])
async def test_empty_message_gets_usage_hint(text: str | None) -> None:
    message = _FakeMessage(text)

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert _single_reply(message) == EMPTY_INPUT_REPLY


@pytest.mark.asyncio
async def test_internal_error_is_not_leaked() -> None:
    async def boom(raw_input: str, user_id: str) -> Any:
        raise RuntimeError("secret connection string")

    app = SimpleNamespace(pipeline=SimpleNamespace(quick_add=boom))
    message = _FakeMessage("mua sách")

    await handle_message(message, app)  # type: ignore[arg-type]

    assert _single_reply(message) == INTERNAL_ERROR_REPLY


@pytest.mark.asyncio
async def test_quota_exhausted_reply() -> None:
    async def exhausted(raw_input: str, user_id: str) -> Any:
        return QuotaExhausted(date="2026-10-14", count=5, limit=5)

    app = SimpleNamespace(pipeline=SimpleNamespace(quick_add=exhausted))
    message = _FakeMessage("chi 45k")

    await handle_message(message, app)  # type: ignore[arg-type]

    reply = _single_reply(message)
    assert "giới hạn" in reply
    assert "5/5 (còn lại 0)" in reply


@pytest.mark.asyncio
async def test_rule_command_teaches_and_applies_rule() -> None:
    app = _make_app()
    teach = _FakeMessage("/rule grab | transaction | Transport")
    use = _FakeMessage("grab về nhà")

    await handle_rule_command(teach, app)  # type: ignore[arg-type]
    await handle_message(use, app)  # type: ignore[arg-type]

    assert _single_reply(teach) == "Đã lưu: grab -> TRANSACTION / Transport"
    reply = _single_reply(use)
    assert reply.startswith("Giao dịch: grab ve nha")
    assert "Số tiền: chưa có (chi)" in reply


@pytest.mark.asyncio
async def test_rule_command_conflict_and_usage() -> None:
    app = _make_app()
    await handle_rule_command(_FakeMessage("/rule grab | TASK", user_id=1), app)  # type: ignore[arg-type]

    conflict = _FakeMessage("/rule grab | EVENT", user_id=2)
    bad_type = _FakeMessage("/rule grab | NOTE", user_id=1)
    missing = _FakeMessage("/rule", user_id=1)
    for message in (conflict, bad_type, missing):
        await handle_rule_command(message, app)  # type: ignore[arg-type]

    assert _single_reply(conflict) == RULE_CONFLICT_REPLY
    assert _single_reply(bad_type) == RULE_USAGE_REPLY
    assert _single_reply(missing) == RULE_USAGE_REPLY


@pytest.mark.asyncio
async def test_rules_command_lists_own_rules() -> None:
    app = _make_app()
    empty = _FakeMessage("/rules")
    await handle_rules_command(empty, app)  # type: ignore[arg-type]

    await handle_rule_command(_FakeMessage("/rule grab | TRANSACTION"), app)  # type: ignore[arg-type]
    await handle_rule_command(_FakeMessage("/rule họp | EVENT"), app)  # type: ignore[arg-type]
    listed = _FakeMessage("/rules")
    await handle_rules_command(listed, app)  # type: ignore[arg-type]

    assert _single_reply(empty) == NO_RULES_REPLY
    assert _single_reply(listed) == "grab -> TRANSACTION\nhọp -> EVENT"


@pytest.mark.asyncio
async def test_quota_command() -> None:
    message = _FakeMessage("/quota")

    await handle_quota_command(message, _make_app(limit=5))  # type: ignore[arg-type]

    assert _single_reply(message) == "AI hôm nay: 0/5 (còn lại 5)"


@pytest.mark.asyncio
async def test_start_command() -> None:
    message = _FakeMessage("/start")

    await handle_start_command(message)  # type: ignore[arg-type]

    assert _single_reply(message) == HELP_REPLY


@pytest.mark.asyncio
async def test_user_id_falls_back_to_chat() -> None:
    app = _make_app()
    await handle_rule_command(_FakeMessage("/rule grab | TASK", user_id=None), app)  # type: ignore[arg-type]

    assert await app.pipeline.rules.find_match("grab", "-100") is not None
