"""Rules-based quick-add parser (fallback).

This parser is deterministic and never calls out of process:
    - temporal phrases are resolved first and removed from the text,
    - direction keywords and money cues decide whether the sentence is a transaction,
    - everything else is a task, or an event when explicitly marked.

It always produces a `ParsedIntent` for non-empty input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from src.intent.dates import (
    TemporalScan,
    datetime_from_scan,
    mentions_weekday,
    scan_temporal,
    strip_temporal_phrases,
)
from src.intent.dictionaries import (
    DIRECTION_KEYWORDS,
    EVENT_MARKERS,
    find_first_keyword,
    has_any_phrase,
)
from src.intent.extractors import extract_amount, has_currency_cue, infer_category, infer_tags
from src.intent.normalize import normalize_text
from src.intent.schema import Direction, IntentKind, ParsedIntent

FALLBACK_NOTE = "Đã sử dụng rule-based parsing (fallback)."
DEFAULT_DATE_NOTE = "Không tìm thấy ngày, dùng ngày hôm nay."
DEFAULT_TIME_NOTE = "Không tìm thấy giờ, dùng giờ hiện tại."
TRANSACTION_NOTE = "Nhận diện là thu/chi nên tạo giao dịch."
CALENDAR_NOTE = "Không có dấu hiệu thu/chi nên tạo task hoặc event."


@dataclass(frozen=True)
class TextAnalysis:
    """Everything the rules derive from one raw sentence."""

    raw: str
    normalized: str
    scan: TemporalScan
    stripped: str

    @property
    def title(self) -> str:
        return self.stripped or self.raw.strip()


@dataclass(frozen=True)
class Classification:
    """Kind plus the money facts that led to it."""

    kind: IntentKind
    direction: Direction | None = None
    amount: Decimal | None = None


def analyze(text: str, today: date) -> TextAnalysis:
    """Normalize, scan temporal phrases, and strip them for the remaining extractors."""

    normalized = normalize_text(text)
    scan = scan_temporal(normalized, today)
    return TextAnalysis(
        raw=text,
        normalized=normalized,
        scan=scan,
        stripped=strip_temporal_phrases(normalized, scan),
    )


def detect_direction(text: str) -> Direction | None:
    """Detect INCOME/EXPENSE from verbs; when both occur, the earliest keyword wins."""

    normalized = normalize_text(text)
    best: tuple[int, Direction] | None = None
    for direction, keywords in DIRECTION_KEYWORDS.items():
        match = find_first_keyword(normalized, keywords)
        if match and (best is None or match.start < best[0]):
            best = (match.start, direction)
    return best[1] if best else None


def classify_analysis(analysis: TextAnalysis) -> Classification:
    """Classify an analyzed sentence.

    A transaction needs a direction verb and a money cue. When a day-of-week phrase is present a
    bare number is not enough ("an sang thu 7"); only a currency-like token counts.
    """

    direction = detect_direction(analysis.stripped)
    amount = extract_amount(analysis.stripped)
    currency = has_currency_cue(analysis.stripped)

    if mentions_weekday(analysis.normalized):
        has_money = currency
    else:
        has_money = currency or amount is not None

    if direction is not None and has_money and amount is not None:
        return Classification(kind=IntentKind.transaction, direction=direction, amount=amount)

    kind = IntentKind.event if has_any_phrase(analysis.normalized, EVENT_MARKERS) else IntentKind.task
    return Classification(kind=kind, direction=direction)


def classify(text: str, *, today: date | None = None) -> Classification:
    """Decide TASK / EVENT / TRANSACTION for a raw sentence."""

    return classify_analysis(analyze(text, today or date.today()))


def clean_title(text: str, *, today: date | None = None) -> str:
    """Title with temporal phrases removed; the raw input if nothing is left."""

    return analyze(text, today or date.today()).title


def calendar_times(
        analysis: TextAnalysis, kind: IntentKind, *, now: datetime
) -> tuple[datetime, datetime | None]:
    """`(occurs_at, due_or_end_at)` for a kind.

    Events are all-day (midnight, no end); tasks are due when they occur; transactions have no
    deadline.
    """

    occurs_at = datetime_from_scan(analysis.scan, all_day=kind == IntentKind.event, now=now)
    if kind == IntentKind.task:
        return occurs_at, occurs_at
    return occurs_at, None


def assumption_notes(analysis: TextAnalysis, kind: IntentKind) -> list[str]:
    """Notes for the defaults the resolver had to guess."""

    notes: list[str] = []
    if not analysis.scan.has_date_cue:
        notes.append(DEFAULT_DATE_NOTE)
    if kind != IntentKind.event and analysis.scan.clock is None:
        notes.append(DEFAULT_TIME_NOTE)
    return notes


def parse_fallback(text: str, *, now: datetime, reason: str | None = None) -> ParsedIntent:
    """Parse a sentence with rules only.

    Args:
        text: Raw, non-empty user text.
        now: Reference current time (timezone-aware in production).
        reason: Why the AI path was not used, recorded as an extra note.
    """

    analysis = analyze(text, now.date())
    classification = classify_analysis(analysis)
    kind = classification.kind
    occurs_at, due_or_end_at = calendar_times(analysis, kind, now=now)

    notes = [FALLBACK_NOTE]
    if reason:
        notes.append(reason)
    notes.append(TRANSACTION_NOTE if kind == IntentKind.transaction else CALENDAR_NOTE)
    notes.extend(assumption_notes(analysis, kind))

    is_transaction = kind == IntentKind.transaction
    return ParsedIntent(
        kind=kind,
        title=analysis.title,
        occurs_at=occurs_at,
        due_or_end_at=due_or_end_at,
        amount=classification.amount if is_transaction else None,
        direction=classification.direction if is_transaction else None,
        category=infer_category(text) if is_transaction else None,
        tags=infer_tags(text),
        confidence_notes=notes,
        source="fallback",
    )
