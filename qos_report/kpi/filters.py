"""Apply plant, period and notification-type filters to monthly site KPIs."""

import logging
from collections.abc import Iterable

from qos_report.kpi.models import (
    FilterState,
    MonthlySiteKpi,
    month_end,
    parse_month_key,
    split_malformed,
    with_fields_zeroed,
)
from qos_report.kpi.periods import LookbackWindow
from qos_report.utils.types import ComplaintType, NotificationType

logger = logging.getLogger(__name__)

COMPLAINT_TYPE_FIELDS: dict[ComplaintType, tuple[str, ...]] = {
    ComplaintType.CUSTOMER: (
        "customer_complaints_q1",
        "customer_defective_parts",
        "customer_deliveries",
    ),
    ComplaintType.SUPPLIER: (
        "supplier_complaints_q2",
        "supplier_defective_parts",
        "supplier_deliveries",
    ),
    ComplaintType.INTERNAL: ("internal_complaints_q3",),
}

NOTIFICATION_TYPE_FIELDS: dict[NotificationType, tuple[str, ...]] = {
    NotificationType.Q1: (
        "customer_complaints_q1",
        "customer_defective_parts",
    ),
    NotificationType.Q2: (
        "supplier_complaints_q2",
        "supplier_defective_parts",
    ),
    NotificationType.Q3: ("internal_complaints_q3",),
}

DEVIATION_TYPES = frozenset({NotificationType.D1, NotificationType.D2, NotificationType.D3})
PPAP_COMPLETED_TYPES = frozenset({NotificationType.P2, NotificationType.P3})


def suppressed_fields(filters: FilterState) -> frozenset[str]:
    """Fields a filter state zeroes on every record it lets through."""
    suppressed: set[str] = set()

    complaint_types = {ComplaintType(t) for t in filters.selected_complaint_types}
    if complaint_types:
        for complaint_type, fields in COMPLAINT_TYPE_FIELDS.items():
            if complaint_type not in complaint_types:
                suppressed.update(fields)

    notification_types = {NotificationType(t) for t in filters.selected_notification_types}
    if notification_types:
        for notification_type, fields in NOTIFICATION_TYPE_FIELDS.items():
            if notification_type not in notification_types:
                suppressed.update(fields)
        if not notification_types & DEVIATION_TYPES:
            suppressed.add("deviations_d")
        if NotificationType.P1 not in notification_types:
            suppressed.add("ppap_in_progress")
        if not notification_types & PPAP_COMPLETED_TYPES:
            suppressed.add("ppap_completed")

    return frozenset(suppressed)


def _in_date_range(record: MonthlySiteKpi, filters: FilterState) -> bool:
    month_start = parse_month_key(record.month)
    if filters.date_from is not None and month_start < filters.date_from:
        return False
    if filters.date_to is not None and month_end(month_start) > filters.date_to:
        return False
    return True


def filter_records(
    records: Iterable[MonthlySiteKpi],
    filters: FilterState,
    window: LookbackWindow,
) -> list[MonthlySiteKpi]:
    """Restrict records to the selected plants and period, then zero suppressed types.

    Only the plant, lookback and date-range steps remove records. Type
    selections zero fields on copies so every month/site bucket survives.
    """
    records, _ = split_malformed(records)
    total = len(records)

    plants = set(filters.selected_plants)
    if plants:
        records = [r for r in records if r.site_code in plants]

    records = [r for r in records if window.contains(r.month)]
    in_window = len(records)

    if filters.date_from is not None or filters.date_to is not None:
        records = [r for r in records if _in_date_range(r, filters)]

    suppressed = suppressed_fields(filters)
    if suppressed:
        records = [with_fields_zeroed(r, suppressed) for r in records]

    logger.info(
        f"Filtered {total} records to {len(records)} "
        f"({in_window} in lookback {window.start_key}..{window.end_key})"
    )
    if not records:
        logger.warning("No records left after filtering; check date range and plant selection")
    return records
