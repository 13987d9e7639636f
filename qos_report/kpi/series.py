"""Chart-ready monthly series by site or notification type, with stable axis scaling."""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import pandas as pd

from qos_report.config import DEFAULT_CONFIG, AxisScale
from qos_report.kpi.models import MonthlySiteKpi, records_to_frame
from qos_report.utils.types import DefectSide, SeriesDimension, SeriesMeasure, SeriesRow

logger = logging.getLogger(__name__)

TYPE_COLUMNS: dict[str, tuple[str, ...]] = {
    "Q1": ("customer_complaints_q1",),
    "Q2": ("supplier_complaints_q2",),
    "Q3": ("internal_complaints_q3",),
    "D": ("deviations_d",),
    "P": ("ppap_in_progress", "ppap_completed"),
}

DEFECT_COLUMNS: dict[DefectSide, tuple[str, ...]] = {
    DefectSide.CUSTOMER: ("customer_defective_parts",),
    DefectSide.SUPPLIER: ("supplier_defective_parts",),
    DefectSide.BOTH: ("customer_defective_parts", "supplier_defective_parts"),
}

DEFAULT_NOTIFICATION_TYPES = ("Q1", "Q2", "Q3")


@dataclass(frozen=True)
class ChartSeries:
    rows: list[SeriesRow]
    keys: list[str]
    axis_max: int


def _type_columns(notification_types: Sequence[str]) -> dict[str, tuple[str, ...]]:
    columns = {}
    for key in notification_types:
        if key not in TYPE_COLUMNS:
            raise ValueError(f"Unsupported series notification type: {key}")
        columns[key] = TYPE_COLUMNS[key]
    return columns


def _site_measure(
    df: pd.DataFrame,
    measure: SeriesMeasure,
    notification_types: Sequence[str],
    defect_side: DefectSide,
) -> pd.Series:
    match measure:
        case SeriesMeasure.NOTIFICATIONS:
            columns = [c for cols in _type_columns(notification_types).values() for c in cols]
        case SeriesMeasure.DEFECTS:
            columns = list(DEFECT_COLUMNS[DefectSide(defect_side)])
        case other:
            raise ValueError(f"Unsupported series measure: {other}")
    if not columns:
        return pd.Series(0.0, index=df.index)
    return df[columns].sum(axis=1)


def _month_by_key(
    df: pd.DataFrame,
    dimension: SeriesDimension,
    measure: SeriesMeasure,
    notification_types: Sequence[str],
    defect_side: DefectSide,
) -> pd.DataFrame:
    """Month-indexed frame with one column per dimension key."""
    match SeriesDimension(dimension):
        case SeriesDimension.SITE:
            values = df.assign(value=_site_measure(df, measure, notification_types, defect_side))
            table = values.groupby(["month", "site_code"])["value"].sum().unstack(fill_value=0.0)
            return table[sorted(table.columns)]
        case SeriesDimension.NOTIFICATION_TYPE:
            by_month = df.groupby("month")
            table = pd.DataFrame(index=pd.Index(sorted(df["month"].unique()), name="month"))
            for key, columns in _type_columns(notification_types).items():
                table[key] = by_month[list(columns)].sum().sum(axis=1)
            return table
        case other:
            raise ValueError(f"Unsupported series dimension: {other}")


def build_series(
    records: Iterable[MonthlySiteKpi],
    dimension: SeriesDimension,
    measure: SeriesMeasure = SeriesMeasure.NOTIFICATIONS,
    notification_types: Sequence[str] = DEFAULT_NOTIFICATION_TYPES,
    defect_side: DefectSide = DefectSide.BOTH,
    local_filter: str | None = None,
) -> list[SeriesRow]:
    """Group records by month and dimension into rows of ``{month, <key>: value, ..., total}``.

    ``local_filter`` narrows the drawn keys to a single site or type; the
    row ``total`` covers only the drawn keys.
    """
    df = records_to_frame(records)
    if df.empty:
        return []

    table = _month_by_key(df, dimension, measure, notification_types, defect_side)
    keys = [str(k) for k in table.columns]
    if local_filter is not None:
        keys = [k for k in keys if k == local_filter]

    rows = []
    for month, values in table.sort_index().iterrows():
        row: SeriesRow = {"month": str(month)}
        total = 0.0
        for key in keys:
            value = float(values[key])
            row[key] = value
            total += value
        row["total"] = total
        rows.append(row)
    return rows


def round_axis_ceiling(max_total: float, scale: AxisScale) -> int:
    """Round ``max_total`` up to the next step, never below the floor."""
    if max_total <= 0:
        return scale.floor
    rounded = math.ceil(max_total / scale.step) * scale.step
    return max(int(rounded), scale.floor)


def axis_ceiling(
    records: Iterable[MonthlySiteKpi],
    dimension: SeriesDimension,
    measure: SeriesMeasure = SeriesMeasure.NOTIFICATIONS,
    notification_types: Sequence[str] = DEFAULT_NOTIFICATION_TYPES,
    defect_side: DefectSide = DefectSide.BOTH,
    scale: AxisScale | None = None,
) -> int:
    """Y-axis maximum computed without any local chart filter."""
    rows = build_series(records, dimension, measure, notification_types, defect_side)
    max_total = max((row["total"] for row in rows), default=0.0)
    scale = scale or DEFAULT_CONFIG.axis_scales[SeriesMeasure(measure)]
    return round_axis_ceiling(max_total, scale)


def build_chart(
    records: Iterable[MonthlySiteKpi],
    dimension: SeriesDimension,
    measure: SeriesMeasure = SeriesMeasure.NOTIFICATIONS,
    notification_types: Sequence[str] = DEFAULT_NOTIFICATION_TYPES,
    defect_side: DefectSide = DefectSide.BOTH,
    local_filter: str | None = None,
) -> ChartSeries:
    records = list(records)
    rows = build_series(
        records, dimension, measure, notification_types, defect_side, local_filter
    )
    keys = [k for k in rows[0] if k not in ("month", "total")] if rows else []
    axis_max = axis_ceiling(records, dimension, measure, notification_types, defect_side)
    logger.debug(f"Built {dimension} chart with {len(rows)} months, axis max {axis_max}")
    return ChartSeries(rows=rows, keys=keys, axis_max=axis_max)
