"""Text normalization for deterministic quick-add parsing."""

from __future__ import annotations

import re
import unicodedata
from functools import lru_cache

_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Fold user text into the view every parser component works on.

    Normalization is intentionally conservative:
        - Lowercase.
        - Strip diacritics (NFD + drop combining marks), `đ` -> `d`.

    Punctuation is preserved: explicit dates (`18/10`) and clock times (`7:30`) rely on it.
    The function is idempotent.
    """

    value = (text or "").lower()
    value = unicodedata.normalize("NFD", value)
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    return value.replace("đ", "d")


def collapse_spaces(text: str) -> str:
    """Collapse runs of whitespace and trim."""

    return _MULTISPACE_RE.sub(" ", text or "").strip()


@lru_cache(maxsize=512)
def phrase_pattern(phrase: str) -> re.Pattern[str]:
    """Compile a whole-word pattern for a normalized keyword phrase.

    Inner spaces match any whitespace run, so `"thu  7"` still matches `"thu 7"`.
    """

    parts = [re.escape(p) for p in phrase.split()]
    return re.compile(r"(?<!\w)" + r"\s+".join(parts) + r"(?!\w)")


def contains_phrase(text: str, phrase: str) -> bool:
    """Whether the normalized text contains the phrase as whole words."""

    return phrase_pattern(phrase).search(text) is not None
