"""Tests for lookback windows and trend-comparison boundaries."""

from datetime import date

import pytest

from qos_report.kpi.periods import (
    default_anchor,
    latest_month,
    previous_month_key,
    resolve_lookback,
    resolve_window,
)


def test_lookback_spans_twelve_calendar_months():
    window = resolve_lookback(2025, 2)

    assert window.end == date(2025, 2, 1)
    assert window.start == date(2024, 3, 1)
    assert (window.start_key, window.end_key) == ("2024-03", "2025-02")


def test_window_contains_is_inclusive():
    window = resolve_lookback(2025, 2)

    assert window.contains("2024-03")
    assert window.contains("2025-02")
    assert not window.contains("2024-02")
    assert not window.contains("2025-03")
    assert not window.contains("2025-00")


def test_invalid_anchor_month_raises():
    with pytest.raises(ValueError):
        resolve_lookback(2025, 13)


@pytest.mark.parametrize("last,expected", [
    ("2025-03", "2025-02"),
    ("2025-01", "2024-12"),
    (None, None),
    ("bad", None),
])
def test_previous_month_key(last, expected):
    assert previous_month_key(last) == expected


def test_latest_month_ignores_malformed(make_record):
    records = [make_record("2025-02"), make_record("2025-13"), make_record("2024-11")]
    assert latest_month(records) == "2025-02"
    assert latest_month([]) is None


def test_default_anchor_uses_latest_data_month(two_month_records, fixed_today):
    assert default_anchor(two_month_records, today=fixed_today) == (2025, 2)


def test_default_anchor_falls_back_to_today(fixed_today):
    assert default_anchor([], today=fixed_today) == (2025, 6)


def test_explicit_anchor_overrides_data(two_month_records):
    window = resolve_window(two_month_records, anchor=(2024, 12))
    assert window.end_key == "2024-12"
