"""Non-cumulative monthly views: sparklines, PPM trailing averages, month-over-month table.

These are per-month figures. The headline tile trend in ``metrics`` is a
cumulative YTD comparison and is computed separately.
"""

import logging
from collections.abc import Iterable

import pandas as pd

from qos_report.kpi.metrics import SIDE_COLUMNS, compute_ppm
from qos_report.kpi.models import MonthlySiteKpi, records_to_frame
from qos_report.utils.types import SeriesRow, Side

logger = logging.getLogger(__name__)

SUPPORTED_AVERAGE_PERIODS = (3, 6, 12)


def _monthly_totals(df: pd.DataFrame, side: Side) -> pd.DataFrame:
    columns = SIDE_COLUMNS[Side(side)]
    by_month = df.groupby("month")[list(columns.values())].sum().sort_index()
    by_month.columns = list(columns.keys())
    by_month["ppm"] = [
        compute_ppm(d, q) for d, q in zip(by_month["defective"], by_month["deliveries"])
    ]
    return by_month


def sparkline(records: Iterable[MonthlySiteKpi]) -> list[SeriesRow]:
    """Per-month complaints, defective parts, deliveries and PPM for both sides."""
    df = records_to_frame(records)
    if df.empty:
        return []

    customer = _monthly_totals(df, Side.CUSTOMER)
    supplier = _monthly_totals(df, Side.SUPPLIER)
    rows = []
    for month in customer.index:
        row: SeriesRow = {"month": str(month)}
        for prefix, table in (("customer", customer), ("supplier", supplier)):
            for name in ("complaints", "defective", "deliveries", "ppm"):
                row[f"{prefix}_{name}"] = float(table.at[month, name])
        rows.append(row)
    return rows


def ppm_trend(
    records: Iterable[MonthlySiteKpi],
    side: Side = Side.CUSTOMER,
    period: int = 3,
) -> list[SeriesRow]:
    """Monthly PPM with the mean PPM of up to ``period`` trailing months."""
    if period not in SUPPORTED_AVERAGE_PERIODS:
        raise ValueError(f"Unsupported PPM average period: {period}")

    df = records_to_frame(records)
    if df.empty:
        return []

    totals = _monthly_totals(df, side)
    averages = totals["ppm"].rolling(window=period, min_periods=1).mean()
    return [
        {
            "month": str(month),
            "ppm": float(totals.at[month, "ppm"]),
            "average_target": float(averages[month]),
            "defective": float(totals.at[month, "defective"]),
            "deliveries": float(totals.at[month, "deliveries"]),
        }
        for month in totals.index
    ]


def _percent_change(current: float, previous: float | None) -> float | None:
    if previous is None or previous <= 0:
        return None
    return (current - previous) / previous * 100


def monthly_trend_table(
    records: Iterable[MonthlySiteKpi],
    side: Side = Side.CUSTOMER,
) -> list[dict[str, str | float | None]]:
    """Month-over-month PPM, defective and delivery changes with a 3-month PPM average."""
    rows = ppm_trend(records, side, period=3)
    table = []
    previous: dict = {}
    for row in rows:
        table.append({
            "month": row["month"],
            "ppm": row["ppm"],
            "three_month_avg": row["average_target"],
            "ppm_change": _percent_change(row["ppm"], previous.get("ppm")),
            "defective": row["defective"],
            "defective_change": _percent_change(row["defective"], previous.get("defective")),
            "deliveries": row["deliveries"],
            "deliveries_change": _percent_change(row["deliveries"], previous.get("deliveries")),
        })
        previous = row
    logger.debug(f"Built {side} monthly trend table with {len(table)} months")
    return table
