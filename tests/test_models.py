"""Tests for the record model, month keys and record flattening."""

from datetime import date, datetime

import pytest

from qos_report.kpi.models import (
    FilterState,
    MonthlySiteKpi,
    PpapCounts,
    month_end,
    parse_month_key,
    records_to_frame,
    shift_month,
    split_malformed,
    with_fields_zeroed,
)
from qos_report.utils.types import ComplaintType, NotificationType


class TestMonthKeys:
    @pytest.mark.parametrize("key,expected", [
        ("2025-01", date(2025, 1, 1)),
        ("1999-12", date(1999, 12, 1)),
    ])
    def test_valid_keys_parse_to_first_of_month(self, key, expected):
        assert parse_month_key(key) == expected

    @pytest.mark.parametrize("key", ["2025-13", "2025-1", "25-01", "", None, "2025/01"])
    def test_malformed_keys_parse_to_none(self, key):
        assert parse_month_key(key) is None

    def test_shift_month_crosses_year_boundary(self):
        assert shift_month(date(2025, 2, 1), -11) == date(2024, 3, 1)
        assert shift_month(date(2024, 12, 1), 1) == date(2025, 1, 1)

    def test_month_end_handles_leap_year(self):
        assert month_end(date(2024, 2, 1)) == date(2024, 2, 29)


class TestFromDict:
    def test_reads_collaborator_camel_case(self):
        record = MonthlySiteKpi.from_dict({
            "month": "2025-01",
            "siteCode": 101,
            "siteName": "Site Vienna",
            "customerComplaintsQ1": 2,
            "customerDefectiveParts": 12.5,
            "customerDeliveries": "1000",
            "customerPpm": None,
            "ppapP": {"inProgress": 1, "completed": 3},
            "customerConversions": {
                "totalConverted": 1,
                "totalML": 500,
                "totalPC": 1,
                "conversions": [
                    {"notificationNumber": "N1", "originalML": 500, "convertedPC": 1, "originalUnit": "ML"}
                ],
            },
        })

        assert record.site_code == "101"
        assert record.customer_complaints_q1 == 2
        assert record.customer_defective_parts == 12.5
        assert record.customer_deliveries == 1000
        assert record.customer_ppm is None
        assert record.ppap == PpapCounts(in_progress=1, completed=3)
        assert record.customer_conversions.total_converted == 1
        assert record.customer_conversions.conversions[0].original_unit == "ML"
        assert record.supplier_conversions is None

    def test_payload_without_month_is_rejected_not_raised(self):
        record = MonthlySiteKpi.from_dict({"siteCode": "101", "customerDeliveries": 10})

        assert record.month is None
        valid, malformed = split_malformed([record])
        assert valid == []
        assert malformed == [record]

    def test_missing_and_null_quantities_read_as_zero(self):
        record = MonthlySiteKpi.from_dict({"month": "2025-01", "siteCode": "101", "supplierDeliveries": None})
        assert record.supplier_deliveries == 0
        assert record.customer_defective_parts == 0
        assert record.ppap == PpapCounts()

    def test_to_dict_keeps_camel_case_keys(self):
        record = MonthlySiteKpi(month="2025-01", site_code="101", customer_deliveries=10)
        data = record.to_dict()
        assert data["siteCode"] == "101"
        assert data["customerDeliveries"] == 10
        assert data["ppapP"] == {"inProgress": 0, "completed": 0}
        assert "customerConversions" not in data


class TestWithFieldsZeroed:
    def test_returns_copy_and_leaves_input_untouched(self, make_record, conversion_block):
        record = make_record(
            customer_complaints_q1=3,
            customer_defective_parts=7,
            ppap=PpapCounts(in_progress=2, completed=5),
            customer_conversions=conversion_block,
        )

        zeroed = with_fields_zeroed(
            record,
            {"customer_complaints_q1", "customer_defective_parts", "ppap_completed", "customer_conversions"},
        )

        assert zeroed is not record
        assert zeroed.customer_complaints_q1 == 0
        assert zeroed.customer_defective_parts == 0
        assert zeroed.ppap == PpapCounts(in_progress=2, completed=0)
        assert zeroed.customer_conversions is None
        assert record.customer_complaints_q1 == 3
        assert record.ppap.completed == 5
        assert record.customer_conversions is conversion_block

    def test_empty_field_set_returns_record(self, make_record):
        record = make_record(customer_complaints_q1=1)
        assert with_fields_zeroed(record, []) is record

    def test_unknown_field_raises(self, make_record):
        with pytest.raises(ValueError, match="cannot be zeroed"):
            with_fields_zeroed(make_record(), {"site_code"})


class TestMalformedRecords:
    def test_split_malformed_separates_bad_months(self, make_record, caplog):
        good = make_record("2025-01")
        bad = make_record("2025-13")

        with caplog.at_level("WARNING"):
            valid, malformed = split_malformed([good, bad])

        assert valid == [good]
        assert malformed == [bad]
        assert "malformed month" in caplog.text

    def test_frame_drops_malformed_by_default(self, make_record):
        records = [make_record("2025-01", customer_deliveries=5), make_record("garbage")]

        assert len(records_to_frame(records)) == 1
        assert len(records_to_frame(records, drop_malformed=False)) == 2

    def test_frame_flattens_ppap_counts(self, make_record):
        df = records_to_frame([make_record(ppap=PpapCounts(in_progress=2, completed=1))])
        assert df.loc[0, "ppap_in_progress"] == 2.0
        assert df.loc[0, "ppap_completed"] == 1.0

    def test_empty_frame_has_columns(self):
        df = records_to_frame([])
        assert df.empty
        assert "customer_deliveries" in df.columns


class TestFilterState:
    def test_round_trips_persisted_json(self):
        data = {
            "selectedPlants": ["101", "205"],
            "selectedComplaintTypes": ["Customer"],
            "selectedNotificationTypes": ["Q1", "D2"],
            "dateFrom": "2025-01-01T00:00:00.000Z",
            "dateTo": None,
        }

        state = FilterState.from_dict(data)

        assert state.selected_plants == ("101", "205")
        assert state.selected_complaint_types == (ComplaintType.CUSTOMER,)
        assert state.selected_notification_types == (NotificationType.Q1, NotificationType.D2)
        assert state.date_from == date(2025, 1, 1)
        assert state.to_dict()["dateFrom"] == "2025-01-01"
        assert FilterState.from_dict(state.to_dict()) == state

    def test_missing_state_means_no_filters(self):
        assert FilterState.from_dict(None) == FilterState()

    def test_datetime_bounds_are_read_as_dates(self):
        state = FilterState.from_dict({
            "dateFrom": datetime(2025, 1, 1, 8, 30),
            "dateTo": datetime(2025, 2, 28, 23, 59),
        })

        assert state.date_from == date(2025, 1, 1)
        assert type(state.date_to) is date
