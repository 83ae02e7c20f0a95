"""Temporal phrase resolution for quick-add text (Vietnamese/English).

Resolution order over normalized text:
    1. explicit `D/M[/YYYY]` date,
    2. named anchors (today, tomorrow, start/end of this/next month or week),
    3. day-of-week, optionally qualified by "this week"/"next week",
    4. the current date.

Weeks start on Monday. Time of day comes from an explicit clock time, else a named day period,
else the current wall-clock time; all-day items are pinned to midnight.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Literal

import dateparser
from dateparser.conf import Settings as DateparserSettings

from src.intent.dictionaries import (
    DATE_ANCHORS,
    DAY_PERIODS,
    RELATIVE_SPANS,
    WEEK_QUALIFIERS,
    WEEKDAYS,
    Anchor,
    PhraseMatch,
    WeekQualifier,
    find_phrase,
)
from src.intent.normalize import collapse_spaces, normalize_text, phrase_pattern

# A magnitude right after "thu 2" makes it an amount ("thu 2 tr").
_MAGNITUDE_AFTER_RE = re.compile(r"\s*(?:trieu|tr|cu|nghin|ngan|k)(?!\w)")

_DATEPARSER_SETTINGS = DateparserSettings().replace(
    STRICT_PARSING=True,
    DATE_ORDER="DMY",
)

_EXPLICIT_DATE_RE = re.compile(r"(?<![\d/])(?P<d>\d{1,2})/(?P<m>\d{1,2})(?:/(?P<y>\d{4}))?(?![\d/])")

# "7:30", "7:30pm"
_CLOCK_COLON_RE = re.compile(r"(?<![\d:])(?P<h>\d{1,2}):(?P<m>\d{2})\s*(?P<suffix>am|pm)?(?![\w:])")
# "7pm", "9h", "9h30", "9 gio", "9 gio 30"
_CLOCK_SUFFIX_RE = re.compile(
    r"(?<![\w.,])(?P<h>\d{1,2})\s*(?P<suffix>am|pm|gio|h)(?:\s*(?P<m>\d{2})(?!\d))?(?!\w)"
)

DateSource = Literal["explicit", "anchor", "weekday", "default"]


@dataclass(frozen=True)
class TemporalScan:
    """What the resolver found in one piece of normalized text."""

    day: date
    source: DateSource
    clock: time | None = None
    spans: tuple[tuple[int, int], ...] = field(default_factory=tuple)

    @property
    def has_date_cue(self) -> bool:
        return self.source != "default"


def _parse_date_fragment(day: int, month: int, year: int) -> date | None:
    dt = dateparser.parse(
        f"{day}/{month}/{year}",
        languages=["en"],
        settings=_DATEPARSER_SETTINGS,
    )
    # dateparser swaps day and month when the month is out of range ("5/13").
    if not dt or dt.day != day or dt.month != month:
        return None
    return dt.date()


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def _next_month_start(day: date) -> date:
    return _month_end(day) + timedelta(days=1)


def _anchor_date(anchor: Anchor, today: date) -> date:
    this_monday = _week_start(today)
    next_monday = this_monday + timedelta(days=7)

    # "cuoi tuan" is the weekend: Saturday of that week.
    resolved: dict[Anchor, date] = {
        Anchor.today: today,
        Anchor.tomorrow: today + timedelta(days=1),
        Anchor.end_of_next_month: _month_end(_next_month_start(today)),
        Anchor.end_of_this_month: _month_end(today),
        Anchor.start_of_next_month: _next_month_start(today),
        Anchor.start_of_this_month: today.replace(day=1),
        Anchor.end_of_next_week: next_monday + timedelta(days=5),
        Anchor.end_of_this_week: this_monday + timedelta(days=5),
        Anchor.start_of_next_week: next_monday,
        Anchor.start_of_this_week: this_monday,
    }
    return resolved[anchor]


def weekday_date(target: int, today: date, qualifier: WeekQualifier | None) -> date:
    """Resolve a weekday (Monday == 0) relative to `today`.

    Qualified phrases pick the weekday inside that Monday-start week (which may lie in the past for
    "this week"). Unqualified phrases pick the next occurrence strictly after today, so naming
    today's weekday means one week ahead.
    """

    if qualifier is not None:
        monday = _week_start(today)
        if qualifier == WeekQualifier.next_week:
            monday += timedelta(days=7)
        return monday + timedelta(days=target)

    days_ahead = (target - today.weekday()) % 7
    return today + timedelta(days=days_ahead or 7)


def _find_explicit_date(text: str, today: date) -> tuple[date, PhraseMatch] | None:
    for match in _EXPLICIT_DATE_RE.finditer(text):
        year = int(match.group("y")) if match.group("y") else today.year
        resolved = _parse_date_fragment(int(match.group("d")), int(match.group("m")), year)
        if resolved is not None:
            return resolved, PhraseMatch(phrase=match.group(0), start=match.start(), end=match.end())
    return None


def _find_anchor(text: str, today: date) -> tuple[date, PhraseMatch] | None:
    for anchor, phrases in DATE_ANCHORS:
        match = find_phrase(text, phrases)
        if match:
            return _anchor_date(anchor, today), match
    return None


def _find_weekday_phrase(text: str, phrases: tuple[str, ...]) -> PhraseMatch | None:
    """Like `find_phrase`, but `thu 2 tr` is an amount rather than Monday."""

    for phrase in phrases:
        for match in phrase_pattern(phrase).finditer(text):
            if phrase[-1].isdigit() and _MAGNITUDE_AFTER_RE.match(text, match.end()):
                continue
            return PhraseMatch(phrase=phrase, start=match.start(), end=match.end())
    return None


def _find_weekday(text: str, today: date) -> tuple[date, list[PhraseMatch]] | None:
    for target, phrases in WEEKDAYS:
        day_match = _find_weekday_phrase(text, phrases)
        if not day_match:
            continue

        consumed = [day_match]
        qualifier: WeekQualifier | None = None
        for candidate, qualifier_phrases in WEEK_QUALIFIERS:
            qualifier_match = find_phrase(text, qualifier_phrases)
            if qualifier_match:
                qualifier = candidate
                consumed.append(qualifier_match)
                break
        return weekday_date(target, today, qualifier), consumed
    return None


def _relative_spans(text: str) -> list[tuple[int, int]]:
    return [
        (match.start(), match.end())
        for phrase in RELATIVE_SPANS
        for match in phrase_pattern(phrase).finditer(text)
    ]


def _mask(text: str, spans: list[tuple[int, int]]) -> str:
    """Blank out consumed spans while keeping offsets stable."""

    chars = list(text)
    for start, end in spans:
        chars[start:end] = " " * (end - start)
    return "".join(chars)


def _to_24h(hour: int, minute: int, suffix: str | None) -> time | None:
    if suffix == "pm" and hour < 12:
        hour += 12
    elif suffix == "am" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def _find_clock(text: str) -> tuple[time, PhraseMatch] | None:
    for pattern in (_CLOCK_COLON_RE, _CLOCK_SUFFIX_RE):
        for match in pattern.finditer(text):
            minute = int(match.group("m")) if match.group("m") else 0
            resolved = _to_24h(int(match.group("h")), minute, match.group("suffix"))
            if resolved is not None:
                return resolved, PhraseMatch(phrase=match.group(0), start=match.start(), end=match.end())
    return None


def _find_period(text: str) -> tuple[time, PhraseMatch] | None:
    for (hour, minute), phrases in DAY_PERIODS:
        match = find_phrase(text, phrases)
        if match:
            return time(hour, minute), match
    return None


def scan_temporal(normalized: str, today: date) -> TemporalScan:
    """Find the date and time-of-day cues in already-normalized text.

    The calendar day comes from the highest-priority rule that matched (an explicit date beats an
    anchor, which beats a weekday), but every recognized phrase is consumed so that none of them
    leaks into the title.
    """

    spans: list[tuple[int, int]] = []
    source: DateSource = "default"
    day = today

    explicit = _find_explicit_date(normalized, today)
    if explicit:
        spans.append((explicit[1].start, explicit[1].end))

    anchor = _find_anchor(_mask(normalized, spans), today)
    if anchor:
        spans.append((anchor[1].start, anchor[1].end))

    weekday = _find_weekday(_mask(normalized, spans), today)
    if weekday:
        spans.extend((m.start, m.end) for m in weekday[1])

    if explicit:
        day, source = explicit[0], "explicit"
    elif anchor:
        day, source = anchor[0], "anchor"
    elif weekday:
        day, source = weekday[0], "weekday"

    remaining = _mask(normalized, spans)
    # Bare week/month phrases stay in the title but are hidden from the time-of-day scan.
    remaining = _mask(remaining, _relative_spans(remaining))
    clock: time | None = None
    clock_match = _find_clock(remaining)
    if clock_match:
        clock, match = clock_match
        spans.append((match.start, match.end))
        remaining = _mask(remaining, [(match.start, match.end)])

    period_match = _find_period(remaining)
    if period_match:
        period_time, match = period_match
        spans.append((match.start, match.end))
        if clock is None:
            clock = period_time

    return TemporalScan(day=day, source=source, clock=clock, spans=tuple(sorted(spans)))


def resolve_date(text: str, *, all_day: bool = False, now: datetime | None = None) -> datetime:
    """Resolve the date-and-time phrases of a raw quick-add sentence.

    Args:
        text: Raw user text (normalized internally).
        all_day: Pin the result to midnight and skip time-of-day refinement.
        now: Reference "current" time; its tzinfo is carried over to the result.
    """

    now = now or datetime.now().astimezone()
    scan = scan_temporal(normalize_text(text), now.date())
    return datetime_from_scan(scan, all_day=all_day, now=now)


def datetime_from_scan(scan: TemporalScan, *, all_day: bool, now: datetime) -> datetime:
    """Combine a scan's calendar day with its time-of-day cue."""

    if all_day:
        return datetime.combine(scan.day, time.min, tzinfo=now.tzinfo)
    clock = scan.clock if scan.clock is not None else time(now.hour, now.minute)
    return datetime.combine(scan.day, clock, tzinfo=now.tzinfo)


def has_date_cue(text: str, *, today: date | None = None) -> bool:
    """Whether the text names a date explicitly, by anchor, or by weekday."""

    today = today or date.today()
    return scan_temporal(normalize_text(text), today).has_date_cue


def strip_temporal_phrases(normalized: str, scan: TemporalScan) -> str:
    """Remove every consumed temporal phrase and collapse whitespace."""

    return collapse_spaces(_mask(normalized, list(scan.spans)))


def parse_llm_date(value: str | None, *, now: datetime) -> datetime | None:
    """Parse the LLM's date field (expected ISO-8601); `None` if absent or unparseable."""

    if not value or not value.strip():
        return None
    dt = dateparser.parse(
        value.strip(),
        languages=["en"],
        settings={"RELATIVE_BASE": now.replace(tzinfo=None)},
    )
    if not dt:
        return None
    if now.tzinfo is None:
        return dt.replace(tzinfo=None) if dt.tzinfo else dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=now.tzinfo)
    return dt.astimezone(now.tzinfo)


def mentions_weekday(normalized: str) -> bool:
    """Whether already-normalized text contains any day-of-week phrase."""

    return any(_find_weekday_phrase(normalized, phrases) for _, phrases in WEEKDAYS)
