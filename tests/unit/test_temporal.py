"""Unit tests for temporal scope detection and period → date range conversion."""

from datetime import date

import pytest

from nlpipe.pipeline.temporal import (
    detect_temporal_scope,
    period_to_date_range,
    scope_to_date_range,
    today_in,
)
from nlpipe.schemas.intent import TemporalScope

TODAY = date(2024, 5, 15)  # a Wednesday


@pytest.mark.parametrize(
    "text, period",
    [
        ("¿Cuánto gasté hoy?", "today"),
        ("gastos de esta semana", "week"),
        ("¿Cuánto gasté en Casa Sur este mes?", "month"),
        ("balance de este año", "year"),
        ("income this month", "month"),
    ],
)
def test_period_keywords(text, period):
    scope = detect_temporal_scope(text, today=TODAY)
    assert scope == TemporalScope(period=period)


def test_keyword_order_prefers_shorter_period():
    assert detect_temporal_scope("hoy y esta semana").period == "today"


def test_no_temporal_cue():
    assert detect_temporal_scope("balance total") is None
    assert detect_temporal_scope("") is None


def test_iso_range():
    scope = detect_temporal_scope("movimientos entre 2024-01-01 y 2024-03-31")
    assert scope == TemporalScope(start=date(2024, 1, 1), end=date(2024, 3, 31), period="custom")


def test_day_first_range_and_reversed_ends():
    scope = detect_temporal_scope("gastos desde 15/02/2024 hasta 01/02/2024")
    assert (scope.start, scope.end) == (date(2024, 2, 1), date(2024, 2, 15))


def test_english_range():
    scope = detect_temporal_scope("expenses from 2024-06-01 to 2024-06-30 this month")
    assert (scope.start, scope.end, scope.period) == (date(2024, 6, 1), date(2024, 6, 30), "custom")


def test_invalid_dates_fall_back_to_keywords():
    scope = detect_temporal_scope("entre 2024-02-30 y 2024-03-10 este mes")
    assert scope == TemporalScope(period="month")


def test_month_with_year():
    scope = detect_temporal_scope("gastos de febrero de 2024")
    assert (scope.start, scope.end) == (date(2024, 2, 1), date(2024, 2, 29))


def test_bare_spanish_month_uses_current_year():
    scope = detect_temporal_scope("ingresos de marzo", today=TODAY)
    assert (scope.start, scope.end) == (date(2024, 3, 1), date(2024, 3, 31))


def test_bare_english_may_is_not_a_month():
    assert detect_temporal_scope("may I see the balance") is None


# ── Period → dates ───────────────────────────────────────────────────


def test_today_range():
    r = period_to_date_range("today", TODAY)
    assert (r.start, r.end) == (TODAY, TODAY)


def test_week_is_sunday_anchored():
    r = period_to_date_range("week", TODAY)
    assert (r.start, r.end) == (date(2024, 5, 12), date(2024, 5, 18))


def test_week_starting_on_sunday():
    sunday = date(2024, 5, 12)
    r = period_to_date_range("week", sunday)
    assert r.start == sunday


def test_month_range_handles_month_length():
    r = period_to_date_range("month", date(2023, 2, 10))
    assert (r.start, r.end) == (date(2023, 2, 1), date(2023, 2, 28))


def test_year_range():
    r = period_to_date_range("year", TODAY)
    assert (r.start, r.end) == (date(2024, 1, 1), date(2024, 12, 31))


def test_custom_and_missing_period_have_no_range():
    assert period_to_date_range("custom", TODAY) is None
    assert period_to_date_range(None, TODAY) is None


def test_scope_prefers_explicit_dates():
    scope = TemporalScope(start=date(2024, 1, 1), end=date(2024, 1, 10), period="custom")
    r = scope_to_date_range(scope, TODAY)
    assert (r.start, r.end) == (date(2024, 1, 1), date(2024, 1, 10))
    assert scope_to_date_range(None, TODAY) is None


def test_today_in_unknown_timezone_falls_back():
    assert isinstance(today_in("Not/A_Zone"), date)
    assert isinstance(today_in("America/Argentina/Buenos_Aires"), date)
