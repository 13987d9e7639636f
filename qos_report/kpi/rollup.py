"""Roll notification and delivery rows up into monthly site KPI records."""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from qos_report.kpi.metrics import compute_ppm
from qos_report.kpi.models import (
    ConversionBlock,
    ConversionEntry,
    MonthlySiteKpi,
    PpapCounts,
    format_month_key,
)
from qos_report.utils.types import NotificationCategory, NotificationType, Side

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitConversion:
    original_value: float
    original_unit: str
    converted_value: float
    bottle_size: float | None = None
    material_description: str | None = None
    was_converted: bool = True


@dataclass(frozen=True)
class Notification:
    notification_number: str
    notification_type: NotificationType
    site_code: str
    created_on: date
    defective_parts: float = 0
    site_name: str | None = None
    conversion: UnitConversion | None = None


@dataclass(frozen=True)
class Delivery:
    site_code: str
    day: date
    quantity: float
    kind: Side
    site_name: str | None = None


def parse_notification_type(raw: str | None) -> NotificationType:
    """Normalize a free-text notification type to a known code."""
    if not raw:
        return NotificationType.OTHER
    match str(raw).strip().upper():
        case "Q1" | "Q2" | "Q3" | "D1" | "D2" | "D3" | "P1" | "P2" | "P3" as code:
            return NotificationType(code)
        case _:
            return NotificationType.OTHER


def category_for(notification_type: NotificationType) -> NotificationCategory:
    match notification_type:
        case NotificationType.Q1:
            return NotificationCategory.CUSTOMER_COMPLAINT
        case NotificationType.Q2:
            return NotificationCategory.SUPPLIER_COMPLAINT
        case NotificationType.D1 | NotificationType.D2 | NotificationType.D3:
            return NotificationCategory.DEVIATION
        case NotificationType.P1 | NotificationType.P2 | NotificationType.P3:
            return NotificationCategory.PPAP
        case _:
            # Q3 and anything unrecognized count as internal
            return NotificationCategory.INTERNAL_COMPLAINT


def _delivery_side(delivery: Delivery) -> Side:
    return Side(str(delivery.kind).lower())


def _ppm_or_none(defective: float, deliveries: float) -> float | None:
    if deliveries == 0:
        return None
    return compute_ppm(defective, deliveries)


def _conversion_block(notifications: list[Notification]) -> ConversionBlock | None:
    entries = tuple(
        ConversionEntry(
            notification_number=n.notification_number,
            original_ml=n.conversion.original_value,
            converted_pc=n.conversion.converted_value,
            original_unit=n.conversion.original_unit,
            bottle_size=n.conversion.bottle_size,
            material_description=n.conversion.material_description,
        )
        for n in notifications
        if n.conversion is not None and n.conversion.was_converted
    )
    if not entries:
        return None
    return ConversionBlock(
        conversions=entries,
        total_ml=sum(e.original_ml for e in entries),
        total_pc=sum(e.converted_pc for e in entries),
    )


def _site_month_record(
    site_code: str,
    month: str,
    notifications: list[Notification],
    deliveries: list[Delivery],
) -> MonthlySiteKpi:
    by_type: dict[NotificationType, list[Notification]] = defaultdict(list)
    for notification in notifications:
        by_type[NotificationType(notification.notification_type)].append(notification)

    customer = by_type[NotificationType.Q1]
    supplier = by_type[NotificationType.Q2]
    internal = by_type[NotificationType.Q3]

    customer_defective = sum(n.defective_parts for n in customer)
    supplier_defective = sum(n.defective_parts for n in supplier)
    customer_deliveries = sum(d.quantity for d in deliveries if _delivery_side(d) == Side.CUSTOMER)
    supplier_deliveries = sum(d.quantity for d in deliveries if _delivery_side(d) == Side.SUPPLIER)

    site_name = next(
        (row.site_name for row in [*notifications, *deliveries] if row.site_name),
        None,
    )

    return MonthlySiteKpi(
        month=month,
        site_code=site_code,
        site_name=site_name,
        customer_complaints_q1=len(customer),
        supplier_complaints_q2=len(supplier),
        internal_complaints_q3=len(internal),
        deviations_d=sum(
            len(by_type[t]) for t in (NotificationType.D1, NotificationType.D2, NotificationType.D3)
        ),
        ppap=PpapCounts(
            in_progress=len(by_type[NotificationType.P1]),
            completed=len(by_type[NotificationType.P2]) + len(by_type[NotificationType.P3]),
        ),
        customer_defective_parts=customer_defective,
        supplier_defective_parts=supplier_defective,
        internal_defective_parts=sum(n.defective_parts for n in internal),
        customer_deliveries=customer_deliveries,
        supplier_deliveries=supplier_deliveries,
        customer_ppm=_ppm_or_none(customer_defective, customer_deliveries),
        supplier_ppm=_ppm_or_none(supplier_defective, supplier_deliveries),
        customer_conversions=_conversion_block(customer),
        supplier_conversions=_conversion_block(supplier),
    )


def build_monthly_site_kpis(
    notifications: Iterable[Notification],
    deliveries: Iterable[Delivery],
) -> list[MonthlySiteKpi]:
    """One record per site and month seen in either input, sorted by month then site."""
    notifications_by_key: dict[tuple[str, str], list[Notification]] = defaultdict(list)
    for notification in notifications:
        key = (notification.site_code, format_month_key(notification.created_on))
        notifications_by_key[key].append(notification)

    deliveries_by_key: dict[tuple[str, str], list[Delivery]] = defaultdict(list)
    for delivery in deliveries:
        deliveries_by_key[(delivery.site_code, format_month_key(delivery.day))].append(delivery)

    keys = set(notifications_by_key) | set(deliveries_by_key)
    records = [
        _site_month_record(
            site_code,
            month,
            notifications_by_key.get((site_code, month), []),
            deliveries_by_key.get((site_code, month), []),
        )
        for site_code, month in keys
    ]
    records.sort(key=lambda r: (r.month, r.site_code))

    logger.info(
        f"Rolled up {sum(len(v) for v in notifications_by_key.values())} notifications and "
        f"{sum(len(v) for v in deliveries_by_key.values())} deliveries into {len(records)} site-months"
    )
    return records


def global_ppm(
    notifications: Iterable[Notification],
    deliveries: Iterable[Delivery],
) -> dict[Side, float | None]:
    """Customer and supplier PPM across all sites and months; None without deliveries."""
    notifications = list(notifications)
    deliveries = list(deliveries)
    result = {}
    for side, notification_type in ((Side.CUSTOMER, NotificationType.Q1), (Side.SUPPLIER, NotificationType.Q2)):
        defective = sum(n.defective_parts for n in notifications if n.notification_type == notification_type)
        delivered = sum(d.quantity for d in deliveries if _delivery_side(d) == side)
        result[side] = _ppm_or_none(defective, delivered)
    return result
