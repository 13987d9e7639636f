"""Lookback window and trend-comparison boundaries."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from qos_report.config import DEFAULT_CONFIG
from qos_report.kpi.models import MonthlySiteKpi, format_month_key, parse_month_key, shift_month
from qos_report.utils.types import MonthKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookbackWindow:
    start: date
    end: date
    start_key: MonthKey
    end_key: MonthKey

    def contains(self, month: MonthKey) -> bool:
        month_start = parse_month_key(month)
        if month_start is None:
            return False
        return self.start <= month_start <= self.end


def resolve_lookback(
    anchor_year: int,
    anchor_month: int,
    months: int = DEFAULT_CONFIG.lookback_months,
) -> LookbackWindow:
    """Trailing window of ``months`` calendar months ending at the anchor month."""
    if not 1 <= anchor_month <= 12:
        raise ValueError(f"Anchor month out of range: {anchor_month}")
    end = date(anchor_year, anchor_month, 1)
    start = shift_month(end, -(months - 1))
    return LookbackWindow(
        start=start,
        end=end,
        start_key=format_month_key(start),
        end_key=format_month_key(end),
    )


def latest_month(records: Iterable[MonthlySiteKpi]) -> MonthKey | None:
    months = [r.month for r in records if parse_month_key(r.month) is not None]
    return max(months) if months else None


def previous_month_key(last_available_month: MonthKey | None) -> MonthKey | None:
    """The calendar month before ``last_available_month``."""
    month_start = parse_month_key(last_available_month)
    if month_start is None:
        return None
    return format_month_key(shift_month(month_start, -1))


def default_anchor(
    records: Iterable[MonthlySiteKpi],
    today: date | None = None,
) -> tuple[int, int]:
    """Anchor on the latest month present in the data, else on the current month."""
    last = latest_month(records)
    if last is not None:
        month_start = parse_month_key(last)
        return month_start.year, month_start.month

    today = today or date.today()
    logger.info(f"No dated records; anchoring lookback on current month {format_month_key(today)}")
    return today.year, today.month


def resolve_window(
    records: Iterable[MonthlySiteKpi],
    anchor: tuple[int, int] | None = None,
    today: date | None = None,
) -> LookbackWindow:
    year, month = anchor if anchor is not None else default_anchor(records, today)
    return resolve_lookback(year, month)
