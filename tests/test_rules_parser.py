"""Tests for the deterministic rules-based quick-add parser (fallback)."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from src.intent.rules_parser import (
    CALENDAR_NOTE,
    DEFAULT_DATE_NOTE,
    DEFAULT_TIME_NOTE,
    FALLBACK_NOTE,
    TRANSACTION_NOTE,
    classify,
    clean_title,
    detect_direction,
    parse_fallback,
)
from src.intent.schema import Direction, IntentKind

TZ = ZoneInfo("Asia/Ho_Chi_Minh")
# Wednesday.
NOW = datetime(2026, 10, 14, 10, 30, tzinfo=TZ)
TODAY = NOW.date()


def test_expense_with_relative_date_and_clock() -> None:
    intent = parse_fallback("chi 45k ăn sáng mai 7pm", now=NOW)
    assert intent.kind == IntentKind.transaction
    assert intent.direction == Direction.expense
    assert intent.amount == Decimal(45000)
    assert intent.category == "Food"
    assert intent.occurs_at == datetime(2026, 10, 15, 19, 0, tzinfo=TZ)
    assert intent.due_or_end_at is None
    assert intent.source == "fallback"
    assert intent.confidence_notes[0] == FALLBACK_NOTE
    assert TRANSACTION_NOTE in intent.confidence_notes


def test_weekday_task_with_period_and_tags() -> None:
    intent = parse_fallback("thi lái xe sáng thứ 7 tuần này", now=NOW)
    assert intent.kind == IntentKind.task
    assert intent.title == "thi lai xe"
    assert intent.occurs_at == datetime(2026, 10, 17, 8, 0, tzinfo=TZ)
    assert intent.due_or_end_at == intent.occurs_at
    assert intent.amount is None
    assert intent.direction is None
    assert intent.category is None
    assert {"study", "transport"} <= intent.tags
    assert CALENDAR_NOTE in intent.confidence_notes
    assert DEFAULT_DATE_NOTE not in intent.confidence_notes
    assert DEFAULT_TIME_NOTE not in intent.confidence_notes


def test_income_without_date_cue_uses_now_and_says_so() -> None:
    intent = parse_fallback("thu 2tr lương", now=NOW)
    assert intent.kind == IntentKind.transaction
    assert intent.direction == Direction.income
    assert intent.amount == Decimal(2000000)
    assert intent.category == "Salary"
    assert intent.occurs_at == NOW
    assert DEFAULT_DATE_NOTE in intent.confidence_notes
    assert DEFAULT_TIME_NOTE in intent.confidence_notes


def test_bare_number_next_to_weekday_is_not_money() -> None:
    assert classify("ăn sáng 30 thứ 7", today=TODAY).kind == IntentKind.task
    assert classify("ăn sáng 30000", today=TODAY).kind == IntentKind.transaction
    assert classify("ăn sáng 30k thứ 7", today=TODAY).kind == IntentKind.transaction


def test_direction_without_amount_is_not_a_transaction() -> None:
    classification = classify("mua sách", today=TODAY)
    assert classification.kind == IntentKind.task
    assert classification.amount is None


def test_event_marker_makes_all_day_event() -> None:
    intent = parse_fallback("Họp nhóm sự kiện ngày 20/10 9h", now=NOW)
    assert intent.kind == IntentKind.event
    assert intent.occurs_at == datetime(2026, 10, 20, 0, 0, tzinfo=TZ)
    assert intent.due_or_end_at is None
    assert intent.occurs_at.date() == date(2026, 10, 20)
    assert DEFAULT_TIME_NOTE not in intent.confidence_notes


def test_event_without_date_falls_on_today() -> None:
    intent = parse_fallback("sự kiện hội thảo", now=NOW)
    assert intent.kind == IntentKind.event
    assert intent.occurs_at == datetime(2026, 10, 14, 0, 0, tzinfo=TZ)
    assert DEFAULT_DATE_NOTE in intent.confidence_notes


def test_earliest_direction_keyword_wins() -> None:
    assert detect_direction("nhận tiền rồi chi 50k") == Direction.income
    assert detect_direction("chi 50k nhận hàng") == Direction.expense
    assert detect_direction("đi chợ") is None


def test_reason_is_recorded_after_fallback_note() -> None:
    intent = parse_fallback("mua sách", now=NOW, reason="AI đang tắt.")
    assert intent.confidence_notes[:2] == [FALLBACK_NOTE, "AI đang tắt."]


def test_title_falls_back_to_raw_input_when_only_temporal() -> None:
    assert clean_title("  Ngày mai ", today=TODAY) == "Ngày mai"
    assert parse_fallback("ngày mai", now=NOW).title == "ngày mai"


def test_spaced_magnitude_after_thu_is_income() -> None:
    intent = parse_fallback("thu 2 tr lương", now=NOW)
    assert intent.kind == IntentKind.transaction
    assert intent.direction == Direction.income
    assert intent.amount == Decimal(2000000)
