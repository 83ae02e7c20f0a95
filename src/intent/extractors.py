"""Amount, category and tag extraction from normalized text."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from src.intent.dictionaries import (
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    DEFAULT_TAG,
    PRIORITY_TAGS,
    TOPIC_TAGS,
    has_any_phrase,
)
from src.intent.normalize import normalize_text

_MULTIPLIERS: dict[str, int] = {
    "trieu": 1_000_000,
    "tr": 1_000_000,
    "cu": 1_000_000,
    "nghin": 1_000,
    "ngan": 1_000,
    "k": 1_000,
    "vnd": 1,
    "dong": 1,
    "d": 1,
}
_SUFFIX_GROUP = "|".join(sorted(_MULTIPLIERS, key=lambda s: (-len(s), s)))

_AMOUNT_RE = re.compile(
    rf"(?<![\w.,])(?P<dollar>\$\s*)?(?P<number>\d+(?:[.,]\d+)*)\s*(?P<suffix>{_SUFFIX_GROUP})?(?!\w)"
)
_CURRENCY_RE = re.compile(
    rf"(?<![\w.,])(?:\$\s*\d+(?:[.,]\d+)*|\d+(?:[.,]\d+)*\s*(?:{_SUFFIX_GROUP}|\$))(?!\w)"
)
_THOUSANDS_RE = re.compile(r"^\d{1,3}(?:[.,]\d{3})+$")


def _to_decimal(number: str) -> Decimal | None:
    """Convert "1.500.000", "45,000" or "2.5" into a Decimal.

    Separators followed by groups of exactly three digits are thousand separators; a single other
    separator is a decimal point.
    """

    if _THOUSANDS_RE.match(number):
        raw = number.replace(".", "").replace(",", "")
    elif number.count(".") + number.count(",") == 1:
        raw = number.replace(",", ".")
    else:
        raw = number.replace(".", "").replace(",", "")

    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


def extract_amount(text: str) -> Decimal | None:
    """Extract the first monetary amount as a positive magnitude.

    Magnitude suffixes are applied (`45k` -> 45000, `2tr` -> 2000000). Returns `None` when there
    is no numeric token or it evaluates to zero.
    """

    normalized = normalize_text(text)
    match = _AMOUNT_RE.search(normalized)
    if not match:
        return None

    value = _to_decimal(match.group("number"))
    if value is None:
        return None

    suffix = match.group("suffix")
    if suffix:
        value *= _MULTIPLIERS[suffix]

    value = abs(value)
    if value == 0:
        return None
    if value == value.to_integral_value():
        value = value.quantize(Decimal(1))
    return value


def has_currency_cue(text: str) -> bool:
    """Whether a number is written as money (`45k`, `2tr`, `50000d`, `$5`)."""

    return _CURRENCY_RE.search(normalize_text(text)) is not None


def infer_category(text: str) -> str:
    """Map keywords to a spending/income category (first table entry wins)."""

    normalized = normalize_text(text)
    for category, keywords in CATEGORY_KEYWORDS:
        if has_any_phrase(normalized, keywords):
            return category
    return DEFAULT_CATEGORY


def infer_tags(text: str) -> set[str]:
    """Derive priority and topical tags; `{"quick-add"}` when no rule fires."""

    normalized = normalize_text(text)
    tags: set[str] = set()

    for keywords, priority_tags in PRIORITY_TAGS:
        if has_any_phrase(normalized, keywords):
            tags.update(priority_tags)
            break

    for tag, keywords in TOPIC_TAGS:
        if has_any_phrase(normalized, keywords):
            tags.add(tag)

    return tags or {DEFAULT_TAG}
