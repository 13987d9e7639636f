"""Quality KPI engine: filtered records, metric tiles, chart series and site contribution."""

import logging
from collections.abc import Iterable, Mapping
from datetime import date

from qos_report.config import DEFAULT_CONFIG
from qos_report.kpi.contribution import build_contribution, site_shares
from qos_report.kpi.conversions import collect_conversions
from qos_report.kpi.filters import filter_records
from qos_report.kpi.metrics import aggregate_metrics
from qos_report.kpi.models import (
    FilterState,
    MonthlySiteKpi,
    MonthlySiteKpiSchema,
    PlantInfo,
    records_to_frame,
    split_malformed,
)
from qos_report.kpi.periods import latest_month, previous_month_key, resolve_window
from qos_report.kpi.plants import index_plants, site_labels
from qos_report.kpi.series import build_chart
from qos_report.kpi.trends import ppm_trend, sparkline
from qos_report.utils.types import SeriesDimension, SeriesMeasure, Side
from qos_report.utils.validators import merge_results, validate_dataframe, validate_unique

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE_KEYS = ("Q1", "Q2", "Q3", "D", "P")


def validate(records: Iterable[MonthlySiteKpi]) -> dict:
    """Check the record snapshot against the schema and the (site, month) key.

    Diagnostic only; aggregation sums duplicates and skips malformed months
    whatever this reports.
    """
    df = records_to_frame(records, drop_malformed=False)
    return merge_results(
        validate_dataframe(df, MonthlySiteKpiSchema),
        validate_unique(df, ["site_code", "month"]),
    )


def run(
    records: Iterable[MonthlySiteKpi],
    filters: FilterState | None = None,
    anchor: tuple[int, int] | None = None,
    today: date | None = None,
    plants: Iterable[PlantInfo | Mapping] | None = None,
    average_period: int = DEFAULT_CONFIG.ppm_average_period,
):
    """Derive every view for one record snapshot and filter state.

    Nothing is cached: calling twice with the same inputs recomputes and
    returns equal results.
    """
    records = list(records)
    filters = filters or FilterState()

    valid, rejected = split_malformed(records)
    window = resolve_window(valid, anchor=anchor, today=today)
    filtered = filter_records(valid, filters, window)
    previous_key = previous_month_key(latest_month(filtered))

    output = {
        "window": window,
        "rejected": rejected,
        "filtered": filtered,
        "previous_month_key": previous_key,
        "metrics": aggregate_metrics(filtered, previous_key),
        "charts": {
            "site_notifications": build_chart(
                filtered, SeriesDimension.SITE, SeriesMeasure.NOTIFICATIONS
            ),
            "site_defects": build_chart(filtered, SeriesDimension.SITE, SeriesMeasure.DEFECTS),
            "notification_types": build_chart(
                filtered,
                SeriesDimension.NOTIFICATION_TYPE,
                SeriesMeasure.NOTIFICATIONS,
                notification_types=NOTIFICATION_TYPE_KEYS,
            ),
        },
        "contribution": {side: build_contribution(filtered, side) for side in Side},
        "site_shares": {side: site_shares(filtered, side) for side in Side},
        "conversions": {side: collect_conversions(filtered, side) for side in Side},
        "sparkline": sparkline(filtered),
        "ppm_trend": {side: ppm_trend(filtered, side, average_period) for side in Side},
        "site_labels": site_labels(filtered, index_plants(plants or [])),
        "validation": validate(records),
    }

    logger.info(
        f"Quality KPI run over {window.start_key}..{window.end_key}: "
        f"{len(filtered)} records, {len(rejected)} rejected"
    )
    return output
