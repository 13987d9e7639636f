"""Tests for rolling notification and delivery rows into monthly site records."""

from datetime import date

import pytest

from qos_report.kpi.rollup import (
    Delivery,
    Notification,
    UnitConversion,
    build_monthly_site_kpis,
    category_for,
    global_ppm,
    parse_notification_type,
)
from qos_report.utils.types import NotificationCategory, NotificationType, Side


@pytest.fixture
def notifications():
    return [
        Notification("N1", NotificationType.Q1, "101", date(2025, 1, 5), defective_parts=10, site_name="Site Vienna"),
        Notification(
            "N2", NotificationType.Q1, "101", date(2025, 1, 20), defective_parts=3,
            conversion=UnitConversion(original_value=1500, original_unit="ML", converted_value=3, bottle_size=500),
        ),
        Notification("N3", NotificationType.Q2, "101", date(2025, 1, 9), defective_parts=8),
        Notification("N4", NotificationType.Q3, "101", date(2025, 1, 9), defective_parts=2),
        Notification("N5", NotificationType.D2, "101", date(2025, 1, 11)),
        Notification("N6", NotificationType.P1, "205", date(2025, 2, 1)),
        Notification("N7", NotificationType.P3, "205", date(2025, 2, 2)),
    ]


@pytest.fixture
def deliveries():
    return [
        Delivery("101", date(2025, 1, 3), 100_000, Side.CUSTOMER),
        Delivery("101", date(2025, 1, 15), 30_000, "Customer"),
        Delivery("101", date(2025, 1, 15), 40_000, Side.SUPPLIER),
        Delivery("310", date(2025, 2, 15), 5_000, Side.CUSTOMER),
    ]


@pytest.mark.parametrize("raw,expected", [
    ("Q1", NotificationType.Q1),
    (" q2 ", NotificationType.Q2),
    ("P3", NotificationType.P3),
    ("Z9", NotificationType.OTHER),
    (None, NotificationType.OTHER),
])
def test_parse_notification_type(raw, expected):
    assert parse_notification_type(raw) == expected


def test_category_for():
    assert category_for(NotificationType.Q1) == NotificationCategory.CUSTOMER_COMPLAINT
    assert category_for(NotificationType.D3) == NotificationCategory.DEVIATION
    assert category_for(NotificationType.OTHER) == NotificationCategory.INTERNAL_COMPLAINT


def test_rollup_groups_by_site_and_month(notifications, deliveries):
    records = build_monthly_site_kpis(notifications, deliveries)

    assert [(r.month, r.site_code) for r in records] == [
        ("2025-01", "101"),
        ("2025-02", "205"),
        ("2025-02", "310"),
    ]

    vienna = records[0]
    assert vienna.site_name == "Site Vienna"
    assert vienna.customer_complaints_q1 == 2
    assert vienna.supplier_complaints_q2 == 1
    assert vienna.internal_complaints_q3 == 1
    assert vienna.deviations_d == 1
    assert vienna.customer_defective_parts == 13
    assert vienna.internal_defective_parts == 2
    assert vienna.customer_deliveries == 130_000
    assert vienna.supplier_deliveries == 40_000
    assert vienna.customer_ppm == pytest.approx(100.0)
    assert vienna.supplier_ppm == pytest.approx(200.0)


def test_rollup_builds_conversion_blocks(notifications, deliveries):
    vienna = build_monthly_site_kpis(notifications, deliveries)[0]

    block = vienna.customer_conversions
    assert block.total_converted == 1
    assert block.total_ml == 1500
    assert block.total_pc == 3
    assert block.conversions[0].notification_number == "N2"
    assert vienna.supplier_conversions is None


def test_rollup_ppap_and_missing_deliveries(notifications, deliveries):
    records = build_monthly_site_kpis(notifications, deliveries)
    ppap_site = records[1]

    assert ppap_site.ppap.in_progress == 1
    assert ppap_site.ppap.completed == 1
    assert ppap_site.customer_ppm is None
    assert records[2].customer_deliveries == 5_000


def test_global_ppm(notifications, deliveries):
    result = global_ppm(notifications, deliveries)
    assert result[Side.CUSTOMER] == pytest.approx(13 / 135_000 * 1e6)
    assert result[Side.SUPPLIER] == pytest.approx(200.0)


def test_global_ppm_without_deliveries(notifications):
    assert global_ppm(notifications, []) == {Side.CUSTOMER: None, Side.SUPPLIER: None}
