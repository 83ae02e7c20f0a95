"""aiogram message handlers.

Every incoming message gets exactly one reply. Plain text is parsed as a quick-add sentence;
`/rule`, `/rules` and `/quota` manage smart rules and show the AI budget. Internal errors are
logged and answered with a generic message, never with details.
"""

from __future__ import annotations

import logging

from aiogram.types import Message

from src.app import App
from src.intent.parser import InvalidInputError
from src.intent.schema import (
    Direction,
    IntentKind,
    ParsedIntent,
    QuotaExhausted,
    SmartRule,
    UsageSnapshot,
)
from src.intent.smart_rules import RuleOwnershipConflictError

logger = logging.getLogger(__name__)

EMPTY_INPUT_REPLY = "Vui lòng nhập nội dung cần thêm."
INTERNAL_ERROR_REPLY = "Có lỗi xảy ra, vui lòng thử lại sau."
RULE_USAGE_REPLY = "Cú pháp: /rule <từ khóa> | <TASK|EVENT|TRANSACTION> | [danh mục]"
RULE_CONFLICT_REPLY = "Từ khóa này đã thuộc về người dùng khác."
NO_RULES_REPLY = "Bạn chưa có smart rule nào."
HELP_REPLY = (
    "Gõ một câu để thêm task, sự kiện hoặc giao dịch, ví dụ: \"chi 45k ăn sáng mai 7pm\".\n"
    "/rule <từ khóa> | <TASK|EVENT|TRANSACTION> | [danh mục] để dạy bot.\n"
    "/rules xem smart rule, /quota xem lượt AI còn lại hôm nay."
)

_KIND_LABELS: dict[IntentKind, str] = {
    IntentKind.task: "Task",
    IntentKind.event: "Sự kiện",
    IntentKind.transaction: "Giao dịch",
}
_DIRECTION_LABELS: dict[Direction, str] = {
    Direction.income: "thu",
    Direction.expense: "chi",
}


def _user_id(message: Message) -> str:
    if message.from_user is not None:
        return str(message.from_user.id)
    return str(message.chat.id)


def _command_args(text: str) -> str:
    """Everything after the command word (`/rule@bot a | b` -> `a | b`)."""

    parts = text.strip().split(maxsplit=1)
    return parts[1].strip() if len(parts) > 1 else ""


def format_intent(intent: ParsedIntent) -> str:
    """Render a parsed intent as a short chat reply."""

    lines = [
        f"{_KIND_LABELS[intent.kind]}: {intent.title}",
        f"Thời gian: {intent.occurs_at:%d/%m/%Y %H:%M}",
    ]
    if intent.kind == IntentKind.transaction and intent.direction is not None:
        amount = f"{intent.amount:,} VND" if intent.amount is not None else "chưa có"
        lines.append(f"Số tiền: {amount} ({_DIRECTION_LABELS[intent.direction]})")
    if intent.category:
        lines.append(f"Danh mục: {intent.category}")
    if intent.tags:
        lines.append("Tags: " + ", ".join(sorted(intent.tags)))
    lines.extend(f"- {note}" for note in intent.confidence_notes)
    return "\n".join(lines)


def format_quota(snapshot: UsageSnapshot | QuotaExhausted) -> str:
    """Render the day's AI usage."""

    return f"AI hôm nay: {snapshot.count}/{snapshot.limit} (còn lại {snapshot.remaining})"


def format_rule(rule: SmartRule) -> str:
    category = f" / {rule.mapped_category}" if rule.mapped_category else ""
    return f"{rule.keyword} -> {rule.mapped_type}{category}"


async def handle_message(message: Message, app: App) -> None:
    """Parse a plain text message as a quick-add sentence and reply with the result."""

    raw_text = message.text or message.caption or ""
    try:
        result = await app.pipeline.quick_add(raw_text, _user_id(message))
        if isinstance(result, QuotaExhausted):
            reply = f"{result.message}\n{format_quota(result)}"
        else:
            reply = format_intent(result)
    except InvalidInputError:
        reply = EMPTY_INPUT_REPLY
    except Exception:
        # Handler boundary: internal errors must not leak to the chat.
        logger.exception("quick add handler failed")
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_rule_command(message: Message, app: App) -> None:
    """`/rule <keyword> | <TYPE> | [category]`: teach or update a smart rule."""

    parts = [p.strip() for p in _command_args(message.text or "").split("|")]
    if len(parts) < 2 or not parts[0] or parts[1].upper() not in {k.value for k in IntentKind}:
        await message.answer(RULE_USAGE_REPLY)
        return

    category = parts[2] if len(parts) > 2 else None
    try:
        rule = await app.pipeline.rules.upsert(parts[0], parts[1].upper(), category, _user_id(message))
        reply = "Đã lưu: " + format_rule(rule)
    except RuleOwnershipConflictError:
        reply = RULE_CONFLICT_REPLY
    except ValueError:
        reply = RULE_USAGE_REPLY
    except Exception:
        logger.exception("rule command failed")
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_rules_command(message: Message, app: App) -> None:
    """`/rules`: list the user's smart rules."""

    try:
        rules = await app.pipeline.rules.rules_for_user(_user_id(message))
        reply = "\n".join(format_rule(r) for r in rules) if rules else NO_RULES_REPLY
    except Exception:
        logger.exception("rules command failed")
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_quota_command(message: Message, app: App) -> None:
    """`/quota`: show today's AI usage."""

    try:
        reply = format_quota(await app.pipeline.governor.snapshot(_user_id(message)))
    except Exception:
        logger.exception("quota command failed")
        reply = INTERNAL_ERROR_REPLY

    await message.answer(reply)


async def handle_start_command(message: Message) -> None:
    """`/start` and `/help`: explain how to use the bot."""

    await message.answer(HELP_REPLY)
