"""Pytest configuration and shared fixtures."""

from datetime import date

import pytest

from qos_report.kpi.models import ConversionBlock, ConversionEntry, MonthlySiteKpi, PpapCounts
from qos_report.kpi.periods import resolve_lookback


# ===== FIXTURES =====

@pytest.fixture
def make_record():
    """Factory for records with zero defaults for anything not given."""

    def _make(month: str = "2025-01", site_code: str = "101", **fields) -> MonthlySiteKpi:
        return MonthlySiteKpi(month=month, site_code=site_code, **fields)

    return _make


@pytest.fixture
def two_month_records(make_record):
    """Site 101 over January and February 2025: customer PPM 100 overall."""
    return [
        make_record("2025-01", "101", customer_defective_parts=10, customer_deliveries=100_000),
        make_record("2025-02", "101", customer_defective_parts=20, customer_deliveries=200_000),
    ]


@pytest.fixture
def conversion_block():
    return ConversionBlock(
        conversions=(
            ConversionEntry(
                notification_number="200001",
                original_ml=1500.0,
                converted_pc=3.0,
                original_unit="ML",
                bottle_size=500.0,
                material_description="Bottle 500ml",
            ),
            ConversionEntry(
                notification_number="200002",
                original_ml=12.0,
                converted_pc=4.0,
                original_unit="M",
            ),
        ),
        total_ml=1512.0,
        total_pc=7.0,
    )


@pytest.fixture
def multi_site_records(make_record, conversion_block):
    """Three sites over three months with complaints of every family."""
    return [
        make_record(
            "2025-01", "101", site_name="Site Vienna",
            customer_complaints_q1=2, supplier_complaints_q2=1, internal_complaints_q3=3,
            deviations_d=1, ppap=PpapCounts(in_progress=1, completed=2),
            customer_defective_parts=40, supplier_defective_parts=10,
            customer_deliveries=100_000, supplier_deliveries=50_000,
            customer_conversions=conversion_block,
        ),
        make_record(
            "2025-01", "205", site_name="Plant Graz",
            customer_complaints_q1=1, internal_complaints_q3=1,
            customer_defective_parts=10, customer_deliveries=50_000,
        ),
        make_record(
            "2025-02", "101",
            customer_complaints_q1=4, supplier_complaints_q2=2,
            customer_defective_parts=60, supplier_defective_parts=30,
            customer_deliveries=150_000, supplier_deliveries=60_000,
        ),
        make_record(
            "2025-02", "310",
            customer_complaints_q1=1, deviations_d=2,
            customer_defective_parts=5, customer_deliveries=0,
        ),
        make_record(
            "2025-03", "205",
            customer_complaints_q1=3, supplier_complaints_q2=1,
            customer_defective_parts=90, supplier_defective_parts=5,
            customer_deliveries=100_000, supplier_deliveries=40_000,
            ppap=PpapCounts(in_progress=0, completed=1),
        ),
    ]


@pytest.fixture
def window_2025_03():
    return resolve_lookback(2025, 3)


@pytest.fixture
def fixed_today():
    return date(2025, 6, 15)
