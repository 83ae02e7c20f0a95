"""Tests for temporal phrase resolution (anchors, weekdays, clock times, day periods)."""

from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from src.intent.dates import (
    has_date_cue,
    parse_llm_date,
    resolve_date,
    scan_temporal,
    strip_temporal_phrases,
    weekday_date,
)
from src.intent.dictionaries import WeekQualifier

TZ = ZoneInfo("Asia/Ho_Chi_Minh")
# Wednesday.
NOW = datetime(2026, 10, 14, 10, 30, tzinfo=TZ)


def _resolved_day(text: str) -> date:
    return resolve_date(text, all_day=True, now=NOW).date()


def test_no_cue_defaults_to_now() -> None:
    resolved = resolve_date("mua sach", now=NOW)
    assert resolved == NOW.replace(second=0, microsecond=0)
    assert resolved.tzinfo == TZ


def test_anchors_today_and_tomorrow() -> None:
    assert _resolved_day("hôm nay nộp bài") == date(2026, 10, 14)
    assert _resolved_day("nộp bài ngày mai") == date(2026, 10, 15)
    assert _resolved_day("submit report tomorrow") == date(2026, 10, 15)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("trả tiền nhà cuối tháng này", date(2026, 10, 31)),
        ("đóng học phí đầu tháng sau", date(2026, 11, 1)),
        ("cuối tháng sau", date(2026, 11, 30)),
        ("đầu tháng này", date(2026, 10, 1)),
        ("đi chơi cuối tuần", date(2026, 10, 17)),
        ("cuối tuần sau", date(2026, 10, 24)),
        ("đầu tuần sau", date(2026, 10, 19)),
        ("đầu tuần này", date(2026, 10, 12)),
    ],
)
def test_month_and_week_anchors(text: str, expected: date) -> None:
    assert _resolved_day(text) == expected


def test_unqualified_weekday_is_strictly_in_the_future() -> None:
    assert _resolved_day("họp thứ 6") == date(2026, 10, 16)
    assert _resolved_day("đá bóng chủ nhật") == date(2026, 10, 18)
    assert _resolved_day("gym monday") == date(2026, 10, 19)
    # Naming today's weekday means next week.
    assert _resolved_day("họp thứ 4") == date(2026, 10, 21)


def test_unqualified_weekday_is_within_seven_days() -> None:
    today = NOW.date()
    for target in range(7):
        resolved = weekday_date(target, today, None)
        assert 1 <= (resolved - today).days <= 7
        assert resolved.weekday() == target


def test_qualified_weekday_uses_monday_start_weeks() -> None:
    assert _resolved_day("thi lái xe sáng thứ 7 tuần này") == date(2026, 10, 17)
    assert _resolved_day("họp thứ 2 tuần sau") == date(2026, 10, 19)
    assert _resolved_day("họp thứ 2 tuần này") == date(2026, 10, 12)
    assert weekday_date(6, NOW.date(), WeekQualifier.next_week) == date(2026, 10, 25)


def test_explicit_date_beats_anchor_and_weekday() -> None:
    scan = scan_temporal("hop 20/10 ngay mai thu 6", NOW.date())
    assert scan.source == "explicit"
    assert scan.day == date(2026, 10, 20)


def test_explicit_date_with_year() -> None:
    assert _resolved_day("sinh nhật 2/1/2027") == date(2027, 1, 2)


def test_anchor_beats_weekday() -> None:
    scan = scan_temporal("mai thu 6", NOW.date())
    assert scan.source == "anchor"
    assert scan.day == date(2026, 10, 15)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("an sang mai 7pm", time(19, 0)),
        ("hop luc 9h30", time(9, 30)),
        ("hop 7:45", time(7, 45)),
        ("goi dien 12am", time(0, 0)),
        ("hop 9 gio", time(9, 0)),
    ],
)
def test_clock_times(text: str, expected: time) -> None:
    assert scan_temporal(text, NOW.date()).clock == expected


def test_day_period_applies_only_without_clock() -> None:
    assert scan_temporal("an sang", NOW.date()).clock == time(8, 0)
    assert scan_temporal("di choi toi", NOW.date()).clock == time(19, 0)
    assert scan_temporal("an sang 7:15", NOW.date()).clock == time(7, 15)


def test_out_of_range_clock_is_ignored() -> None:
    assert scan_temporal("hop 25h", NOW.date()).clock is None


def test_all_day_pins_midnight() -> None:
    resolved = resolve_date("họp ngày mai 7pm", all_day=True, now=NOW)
    assert resolved == datetime(2026, 10, 15, 0, 0, tzinfo=TZ)


def test_resolve_combines_day_and_clock() -> None:
    assert resolve_date("chi 45k ăn sáng mai 7pm", now=NOW) == datetime(2026, 10, 15, 19, 0, tzinfo=TZ)


def test_strip_temporal_phrases_removes_every_consumed_phrase() -> None:
    normalized = "thi lai xe sang thu 7 tuan nay"
    scan = scan_temporal(normalized, NOW.date())
    assert strip_temporal_phrases(normalized, scan) == "thi lai xe"


def test_has_date_cue() -> None:
    assert has_date_cue("họp thứ 6", today=NOW.date())
    assert has_date_cue("nộp bài 18/10", today=NOW.date())
    assert not has_date_cue("mua sách 7pm", today=NOW.date())


def test_parse_llm_date_attaches_reference_timezone() -> None:
    parsed = parse_llm_date("2026-10-20T15:00:00", now=NOW)
    assert parsed == datetime(2026, 10, 20, 15, 0, tzinfo=TZ)


def test_parse_llm_date_rejects_garbage() -> None:
    assert parse_llm_date(None, now=NOW) is None
    assert parse_llm_date("   ", now=NOW) is None
    assert parse_llm_date("???", now=NOW) is None


def test_out_of_range_month_is_not_swapped_into_a_date() -> None:
    scan = scan_temporal("hop 5/13/2026", NOW.date())
    assert scan.source == "default"
    assert resolve_date("hop 5/13/2026", now=NOW) == NOW


def test_invalid_explicit_date_does_not_beat_anchor() -> None:
    assert _resolved_day("hop 5/13/2026 ngay mai") == date(2026, 10, 15)


def test_bare_week_phrase_is_not_an_evening() -> None:
    scan = scan_temporal("hop tuan toi", NOW.date())
    assert scan.clock is None
    assert resolve_date("họp tuần tới", now=NOW) == NOW
    assert strip_temporal_phrases("hop tuan toi", scan) == "hop tuan toi"


def test_evening_still_read_next_to_week_phrase() -> None:
    assert scan_temporal("di choi toi tuan sau", NOW.date()).clock == time(19, 0)


def test_weekday_digit_followed_by_magnitude_is_an_amount() -> None:
    assert scan_temporal("thu 2 tr luong", NOW.date()).source == "default"
    assert scan_temporal("hop thu 2 tuan sau", NOW.date()).source == "weekday"
