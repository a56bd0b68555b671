"""
Temporal scope detection and period → date range conversion.

Explicit ranges win over keywords:
  "entre 2024-01-01 y 2024-03-31"  → custom range
  "desde 01/02/2024 hasta 15/02/2024" → custom range
  "marzo 2024", "en marzo"        → that calendar month
  "hoy" / "esta semana" / "este mes" / "este año" → period keyword
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from nlpipe.core.config import settings
from nlpipe.schemas.intent import Period, TemporalScope
from nlpipe.schemas.query_plan import DateRange
from nlpipe.utils.logging import get_logger
from nlpipe.utils.text import normalize_text

logger = get_logger("nlpipe.pipeline.temporal")

MONTHS_ES: dict[str, int] = {
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5, "junio": 6,
    "julio": 7, "agosto": 8, "septiembre": 9, "setiembre": 9, "octubre": 10,
    "noviembre": 11, "diciembre": 12,
}
MONTHS: dict[str, int] = {
    **MONTHS_ES,
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
    "december": 12,
}

_DATE = r"(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4})"
_RANGE_RE = re.compile(
    rf"\b(?:entre|desde|del|from|between)\s+{_DATE}\s+(?:y|hasta|al|to|and)\s+{_DATE}"
)
_MONTH_YEAR_RE = re.compile(
    rf"\b({'|'.join(MONTHS)})\s+(?:(?:de|of)\s+)?(\d{{4}})\b"
)
# Bare Spanish month names ("en marzo"); English ones are too ambiguous ("may")
_MONTH_RE = re.compile(rf"\b({'|'.join(MONTHS_ES)})\b")

# Checked in order; the first hit wins
_PERIOD_PATTERNS: list[tuple[Period, re.Pattern[str]]] = [
    ("today", re.compile(r"\b(?:hoy|today)\b")),
    ("week", re.compile(r"\b(?:semana|semanal|week|weekly)\b")),
    ("month", re.compile(r"\b(?:mes|mensual|month|monthly)\b")),
    ("year", re.compile(r"\b(?:ano|anual|year|yearly)\b")),
]


def _parse_date(raw: str) -> date | None:
    try:
        if "-" in raw:
            return date.fromisoformat(raw)
        day, month, year = (int(part) for part in raw.split("/"))
        return date(year, month, day)
    except ValueError:
        return None


def _month_range(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def detect_temporal_scope(text: str, today: date | None = None) -> TemporalScope | None:
    """
    Find the time window a question refers to, or ``None``.

    A month named without a year refers to ``today``'s year.
    """
    folded = normalize_text(text)
    if not folded:
        return None

    match = _RANGE_RE.search(folded)
    if match:
        start, end = _parse_date(match.group(1)), _parse_date(match.group(2))
        if start and end:
            if start > end:
                start, end = end, start
            return TemporalScope(start=start, end=end, period="custom")

    match = _MONTH_YEAR_RE.search(folded)
    if match:
        start, end = _month_range(int(match.group(2)), MONTHS[match.group(1)])
        return TemporalScope(start=start, end=end, period="custom")

    match = _MONTH_RE.search(folded)
    if match:
        year = (today or date.today()).year
        start, end = _month_range(year, MONTHS_ES[match.group(1)])
        return TemporalScope(start=start, end=end, period="custom")

    for period, pattern in _PERIOD_PATTERNS:
        if pattern.search(folded):
            return TemporalScope(period=period)
    return None


def period_to_date_range(period: Period | None, today: date) -> DateRange | None:
    """
    Concrete dates for a keyword period.

    Weeks run Sunday to Saturday.  ``custom`` (and ``None``) have no
    implied range.
    """
    if period == "today":
        return DateRange(start=today, end=today)
    if period == "week":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateRange(start=start, end=start + timedelta(days=6))
    if period == "month":
        start, end = _month_range(today.year, today.month)
        return DateRange(start=start, end=end)
    if period == "year":
        return DateRange(start=date(today.year, 1, 1), end=date(today.year, 12, 31))
    return None


def scope_to_date_range(scope: TemporalScope | None, today: date) -> DateRange | None:
    """Explicit dates if the scope has both ends, else the period's range."""
    if scope is None:
        return None
    if scope.start and scope.end:
        return DateRange(start=scope.start, end=scope.end)
    return period_to_date_range(scope.period, today)


def today_in(timezone: str | None = None) -> date:
    """Current date in ``timezone`` (falls back to the configured default)."""
    name = timezone or settings.default_timezone
    try:
        tz = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("[TEMPORAL] Unknown timezone %r, using %s", name, settings.default_timezone)
        tz = ZoneInfo(settings.default_timezone)
    return datetime.now(tz).date()
