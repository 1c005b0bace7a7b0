"""Tests for attendance rollups."""

from datetime import date
from decimal import Decimal

import pytest

from delivery_ledger.attendance import as_of_day_for, summarize_attendance
from delivery_ledger.models import DeliveryStatus
from delivery_ledger.month_view import reconstruct_month

CUSTOMER_ID = "11111111-1111-1111-1111-111111111111"


def _month(make_record, statuses: dict[int, DeliveryStatus], month=6, year=2025):
    records = [
        make_record(CUSTOMER_ID, date(year, month, day), status, quantity="2")
        for day, status in statuses.items()
    ]
    return reconstruct_month(CUSTOMER_ID, month, year, records)


class TestSummarizeAttendance:
    """Tests for summarize_attendance."""

    def test_all_counted_days_delivered(self, make_record):
        """Test that a fully delivered period scores 100."""
        slots = _month(make_record, {d: DeliveryStatus.DELIVERED for d in range(1, 31)})

        summary = summarize_attendance(slots, 30)

        assert summary.counted_days == 30
        assert summary.present_days == 30
        assert summary.absent_days == 0
        assert summary.attendance_rate == 100.0

    def test_no_delivered_days(self, make_record):
        slots = _month(make_record, {})

        summary = summarize_attendance(slots, 30)

        assert summary.present_days == 0
        assert summary.absent_days == 30
        assert summary.attendance_rate == 0.0

    def test_truncates_at_as_of_day(self, make_record):
        """Test that days after the as-of day are excluded from the rate."""
        slots = _month(make_record, {d: DeliveryStatus.DELIVERED for d in range(1, 11)})

        summary = summarize_attendance(slots, 10)

        assert summary.counted_days == 10
        assert summary.present_days == 10
        assert summary.attendance_rate == 100.0

    def test_delivered_after_as_of_not_present(self, make_record):
        slots = _month(make_record, {5: DeliveryStatus.DELIVERED, 20: DeliveryStatus.DELIVERED})

        summary = summarize_attendance(slots, 10)

        assert summary.present_days == 1
        assert summary.absent_days == 9
        assert summary.attendance_rate == pytest.approx(10.0)
        assert summary.delivered_days == 2

    def test_counted_days_capped_at_month_length(self, make_record):
        slots = _month(make_record, {}, month=2, year=2025)

        summary = summarize_attendance(slots, 31)

        assert summary.counted_days == 28

    def test_zero_as_of_day(self, make_record):
        """Test that nothing counted yields a zero rate instead of dividing by zero."""
        slots = _month(make_record, {1: DeliveryStatus.DELIVERED})

        summary = summarize_attendance(slots, 0)

        assert summary.counted_days == 0
        assert summary.absent_days == 0
        assert summary.attendance_rate == 0.0

    def test_holidays_count_as_absent(self, make_record):
        slots = _month(
            make_record,
            {1: DeliveryStatus.DELIVERED, 2: DeliveryStatus.HOLIDAY, 3: DeliveryStatus.MISSED},
        )

        summary = summarize_attendance(slots, 3)

        assert summary.present_days == 1
        assert summary.absent_days == 2

    def test_status_counts_cover_whole_month(self, make_record):
        slots = _month(
            make_record,
            {1: DeliveryStatus.DELIVERED, 2: DeliveryStatus.HOLIDAY, 29: DeliveryStatus.DELIVERED},
        )

        summary = summarize_attendance(slots, 5)

        assert summary.delivered_days == 2
        assert summary.holiday_days == 1
        assert summary.missed_days == 27
        assert summary.total_quantity == Decimal("4")

    def test_to_dict(self, make_record):
        summary = summarize_attendance(_month(make_record, {1: DeliveryStatus.DELIVERED}), 2)

        result = summary.to_dict()

        assert result["counted"] == 2
        assert result["present"] == 1
        assert result["absent"] == 1
        assert result["rate"] == 50.0


class TestAsOfDay:
    """Tests for deriving the as-of day from today's date."""

    def test_elapsed_period_counts_in_full(self):
        assert as_of_day_for(5, 2025, date(2025, 6, 15)) == 31

    def test_current_period_counts_to_today(self):
        assert as_of_day_for(6, 2025, date(2025, 6, 15)) == 15

    def test_future_period_counts_nothing(self):
        assert as_of_day_for(7, 2025, date(2025, 6, 15)) == 0

    def test_previous_year(self):
        assert as_of_day_for(12, 2024, date(2025, 1, 2)) == 31
