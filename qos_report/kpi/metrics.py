"""Quality KPI tiles: YTD complaints, defective parts, deliveries and PPM with trends."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd

from qos_report.config import DEFAULT_CONFIG
from qos_report.kpi.models import MonthlySiteKpi, records_to_frame
from qos_report.utils.types import MonthKey, Side, Trend, classify_trend

logger = logging.getLogger(__name__)

SIDE_COLUMNS: dict[Side, dict[str, str]] = {
    Side.CUSTOMER: {
        "complaints": "customer_complaints_q1",
        "defective": "customer_defective_parts",
        "deliveries": "customer_deliveries",
    },
    Side.SUPPLIER: {
        "complaints": "supplier_complaints_q2",
        "defective": "supplier_defective_parts",
        "deliveries": "supplier_deliveries",
    },
}


@dataclass(frozen=True)
class TrendData:
    value: float
    previous_value: float
    change: float
    change_percent: float
    trend: Trend


@dataclass(frozen=True)
class FamilyMetrics:
    complaints: TrendData
    defective: TrendData
    deliveries: TrendData
    ppm: TrendData


@dataclass(frozen=True)
class MetricTiles:
    customer: FamilyMetrics
    supplier: FamilyMetrics

    def for_side(self, side: Side) -> FamilyMetrics:
        match side:
            case Side.CUSTOMER:
                return self.customer
            case Side.SUPPLIER:
                return self.supplier
            case other:
                raise ValueError(f"Unknown side: {other}")


def compute_ppm(defective: float, deliveries: float) -> float:
    """Parts per million defective; zero when nothing was delivered."""
    if deliveries == 0:
        return 0.0
    return (defective / deliveries) * DEFAULT_CONFIG.ppm_scale


def compute_trend(current: float, previous: float) -> TrendData:
    """Compare a current figure with the previous period's figure.

    A previous value of zero yields +100% when the current value is
    positive and 0% otherwise, so the result is never NaN or infinite.
    """
    change = current - previous
    if previous != 0:
        change_percent = (change / previous) * 100
    elif current > 0:
        change_percent = 100.0
    else:
        change_percent = 0.0
    return TrendData(
        value=current,
        previous_value=previous,
        change=change,
        change_percent=change_percent,
        trend=classify_trend(change_percent),
    )


def _family_totals(df: pd.DataFrame, side: Side) -> dict[str, float]:
    columns = SIDE_COLUMNS[side]
    totals = {name: float(df[column].sum()) for name, column in columns.items()}
    totals["ppm"] = compute_ppm(totals["defective"], totals["deliveries"])
    return totals


def aggregate_metrics(
    records: Iterable[MonthlySiteKpi],
    previous_month_key: MonthKey | None,
) -> MetricTiles:
    """Build customer and supplier metric tiles from filtered records.

    Current values cover the whole filtered set (YTD through the latest
    month). Previous values re-sum the records up to and including
    ``previous_month_key``. PPM is always the ratio of the summed
    defective parts to the summed deliveries.
    """
    df = records_to_frame(records)
    if previous_month_key is None:
        previous_df = df.iloc[0:0]
    else:
        previous_df = df[df["month"] <= previous_month_key]

    families = {}
    for side in (Side.CUSTOMER, Side.SUPPLIER):
        current = _family_totals(df, side)
        previous = _family_totals(previous_df, side)
        families[side] = FamilyMetrics(
            **{name: compute_trend(current[name], previous[name]) for name in current}
        )

    logger.info(
        f"Aggregated {len(df)} records (previous period through {previous_month_key}): "
        f"customer PPM {families[Side.CUSTOMER].ppm.value:.2f}, "
        f"supplier PPM {families[Side.SUPPLIER].ppm.value:.2f}"
    )
    return MetricTiles(customer=families[Side.CUSTOMER], supplier=families[Side.SUPPLIER])
