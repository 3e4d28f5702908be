"""Tests for date helpers."""

from datetime import datetime, timezone

from src.utils.dates import add_months, ensure_utc, month_key


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2026, 1, 31, tzinfo=timezone.utc)) == datetime(
        2026, 2, 28, tzinfo=timezone.utc
    )


def test_add_months_crosses_year():
    assert add_months(datetime(2026, 12, 15)) == datetime(2027, 1, 15)


def test_ensure_utc_attaches_timezone_to_naive_values():
    assert ensure_utc(datetime(2026, 5, 1, 12)).tzinfo == timezone.utc
    assert ensure_utc(None) is None


def test_month_key():
    assert month_key(datetime(2026, 3, 9)) == "2026-03"
