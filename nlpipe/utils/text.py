"""
Text comparison primitives used by every matching stage:
  - Case / accent folding ("Cuánto" == "cuanto")
  - Whitespace cleanup
  - Folded containment and equality checks

All functions are pure (no I/O, no DB, no LLM).  The pipeline keeps the
user's original text for the LLM prompt and only uses these for matching.
"""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")


def clean_whitespace(text: str | None) -> str:
    """Trim and collapse runs of whitespace into single spaces."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def strip_accents(text: str | None) -> str:
    """Remove diacritics ("ñ" → "n", "é" → "e") without touching case."""
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str | None) -> str:
    """
    Fold text for comparison: lower-case, no diacritics, single spaces.

    Idempotent: ``normalize_text(normalize_text(x)) == normalize_text(x)``.
    """
    folded = strip_accents(text).casefold()
    # casefold() can reintroduce combining marks (e.g. "İ" → "i̇")
    folded = strip_accents(folded)
    return clean_whitespace(folded)


def text_includes(haystack: str | None, needle: str | None) -> bool:
    """Folded substring check.  An empty needle never matches."""
    n = normalize_text(needle)
    if not n:
        return False
    return n in normalize_text(haystack)


def text_equals(a: str | None, b: str | None) -> bool:
    """Folded equality check."""
    return normalize_text(a) == normalize_text(b)
