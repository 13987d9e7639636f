"""Tests for unit-conversion disclosure."""

from qos_report.kpi.conversions import collect_conversions
from qos_report.kpi.filters import filter_records
from qos_report.kpi.models import FilterState
from qos_report.utils.types import ComplaintType, NotificationType, Side


def test_collects_entries_tagged_with_site_and_month(multi_site_records):
    summary = collect_conversions(multi_site_records, Side.CUSTOMER)

    assert summary.has_conversions
    assert summary.total_converted == 2
    assert summary.total_original_units == 1512.0
    assert summary.total_pc == 7.0
    assert [d.notification_number for d in summary.details] == ["200001", "200002"]
    assert {(d.site_code, d.month) for d in summary.details} == {("101", "2025-01")}
    assert summary.units == ["M", "ML"]


def test_side_without_conversions(multi_site_records):
    summary = collect_conversions(multi_site_records, Side.SUPPLIER)

    assert not summary.has_conversions
    assert summary.total_converted == 0
    assert summary.details == []


def test_conversions_survive_complaint_type_filter(multi_site_records, window_2025_03):
    filtered = filter_records(
        multi_site_records,
        FilterState(selected_complaint_types=(ComplaintType.SUPPLIER,)),
        window_2025_03,
    )
    summary = collect_conversions(filtered, Side.CUSTOMER)

    assert summary.has_conversions
    assert summary.total_converted == 2
    assert filtered[0].customer_defective_parts == 0


def test_conversions_survive_notification_type_filter(multi_site_records, window_2025_03):
    filtered = filter_records(
        multi_site_records,
        FilterState(selected_notification_types=(NotificationType.Q2,)),
        window_2025_03,
    )
    assert collect_conversions(filtered, Side.CUSTOMER).total_pc == 7.0
