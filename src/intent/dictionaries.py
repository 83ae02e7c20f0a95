"""Keyword tables for the rules-based quick-add parser.

All phrases are written in normalized form (lowercase, no diacritics, see `normalize_text`).
Tables are ordered: the first entry that matches wins, so precedence is explicit here rather than
implied by the order of `if` branches in the parsers. Within an entry, longer phrases come first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from src.intent.normalize import contains_phrase, phrase_pattern
from src.intent.schema import Direction


class Anchor(StrEnum):
    """Named relative calendar anchors."""

    today = "today"
    tomorrow = "tomorrow"
    end_of_next_month = "end_of_next_month"
    end_of_this_month = "end_of_this_month"
    start_of_next_month = "start_of_next_month"
    start_of_this_month = "start_of_this_month"
    end_of_next_week = "end_of_next_week"
    end_of_this_week = "end_of_this_week"
    start_of_next_week = "start_of_next_week"
    start_of_this_week = "start_of_this_week"


class WeekQualifier(StrEnum):
    """Which Monday-start week a day-of-week phrase refers to."""

    this_week = "this_week"
    next_week = "next_week"


DATE_ANCHORS: tuple[tuple[Anchor, tuple[str, ...]], ...] = (
    (Anchor.today, ("hom nay", "today")),
    (Anchor.tomorrow, ("ngay mai", "tomorrow", "mai", "tmr")),
    (Anchor.end_of_next_month, ("cuoi thang sau", "cuoi thang toi", "end of next month")),
    (
        Anchor.end_of_this_month,
        ("cuoi thang hien tai", "cuoi thang nay", "end of this month", "end of month"),
    ),
    (
        Anchor.start_of_next_month,
        ("dau thang sau", "dau thang toi", "beginning of next month", "start of next month"),
    ),
    (
        Anchor.start_of_this_month,
        ("dau thang hien tai", "dau thang nay", "beginning of this month", "start of this month"),
    ),
    (Anchor.end_of_next_week, ("cuoi tuan sau", "cuoi tuan toi", "end of next week", "next weekend")),
    (Anchor.end_of_this_week, ("cuoi tuan nay", "end of this week", "this weekend", "cuoi tuan")),
    (Anchor.start_of_next_week, ("dau tuan sau", "dau tuan toi", "start of next week")),
    (Anchor.start_of_this_week, ("dau tuan nay", "start of this week")),
)

# Python weekday numbers: Monday == 0 ... Sunday == 6.
WEEKDAYS: tuple[tuple[int, tuple[str, ...]], ...] = (
    (0, ("thu hai", "thu 2", "t2", "monday")),
    (1, ("thu ba", "thu 3", "t3", "tuesday")),
    (2, ("thu tu", "thu 4", "t4", "wednesday")),
    (3, ("thu nam", "thu 5", "t5", "thursday")),
    (4, ("thu sau", "thu 6", "t6", "friday")),
    (5, ("thu bay", "thu 7", "t7", "saturday")),
    (6, ("chu nhat", "cn", "sunday")),
)

WEEK_QUALIFIERS: tuple[tuple[WeekQualifier, tuple[str, ...]], ...] = (
    (WeekQualifier.next_week, ("tuan sau", "tuan toi", "next week")),
    (WeekQualifier.this_week, ("tuan nay", "this week")),
)

# Week/month phrases that never name a day on their own; "tuan toi" must not read as evening.
RELATIVE_SPANS: tuple[str, ...] = (
    "tuan sau",
    "tuan toi",
    "tuan nay",
    "thang sau",
    "thang toi",
    "thang nay",
    "next week",
    "this week",
    "next month",
    "this month",
)

# (hour, minute) for named day periods, applied only when no clock time is present.
DAY_PERIODS: tuple[tuple[tuple[int, int], tuple[str, ...]], ...] = (
    ((8, 0), ("buoi sang", "sang", "morning")),
    ((12, 0), ("buoi trua", "trua", "noon")),
    ((14, 0), ("buoi chieu", "chieu", "afternoon")),
    ((19, 0), ("buoi toi", "toi", "evening", "tonight")),
)

DIRECTION_KEYWORDS: dict[Direction, tuple[str, ...]] = {
    Direction.income: ("thu", "nhan", "luong", "salary", "income"),
    Direction.expense: (
        "thanh toan",
        "ca phe",
        "chi",
        "mua",
        "tra",
        "an",
        "uong",
        "cafe",
        "pay",
        "buy",
    ),
}

EVENT_MARKERS: tuple[str, ...] = ("su kien", "event")

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Food", ("ca phe", "tra sua", "an", "uong", "cafe", "com", "pho", "bun", "food")),
    ("Transport", ("xang", "xe", "grab", "taxi", "bus")),
    ("Study", ("hoc phi", "khoa hoc", "sach", "course", "book")),
    ("Bills", ("internet", "dien", "nuoc", "wifi", "bill")),
    ("Salary", ("luong", "salary")),
)

DEFAULT_CATEGORY = "General"

# Urgency is a chain: only the first matching level contributes tags.
PRIORITY_TAGS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("khan cap", "urgent", "gap"), ("urgent", "high")),
    (("quan trong", "important", "high"), ("high",)),
    (("thap", "low"), ("low",)),
)

# Topical tags are independent of each other.
TOPIC_TAGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("study", ("study", "hoc", "ielts", "thi")),
    ("work", ("cong viec", "work")),
    ("personal", ("ca nhan", "personal")),
    ("transport", ("lai xe", "xe")),
)

DEFAULT_TAG = "quick-add"


@dataclass(frozen=True)
class PhraseMatch:
    """A table phrase found in normalized text."""

    phrase: str
    start: int
    end: int


def find_phrase(text: str, phrases: tuple[str, ...]) -> PhraseMatch | None:
    """Return the first phrase (in table order) that occurs in the text as whole words."""

    for phrase in phrases:
        match = phrase_pattern(phrase).search(text)
        if match:
            return PhraseMatch(phrase=phrase, start=match.start(), end=match.end())
    return None


def find_first_keyword(text: str, phrases: tuple[str, ...]) -> PhraseMatch | None:
    """Return the keyword occurring earliest in the text (ties go to the longer phrase)."""

    best: PhraseMatch | None = None
    for phrase in phrases:
        match = phrase_pattern(phrase).search(text)
        if not match:
            continue
        if best is None or (match.start(), -len(phrase)) < (best.start, -len(best.phrase)):
            best = PhraseMatch(phrase=phrase, start=match.start(), end=match.end())
    return best


def has_any_phrase(text: str, phrases: tuple[str, ...]) -> bool:
    """Whether any of the phrases occurs in the text as whole words."""

    return any(contains_phrase(text, phrase) for phrase in phrases)
