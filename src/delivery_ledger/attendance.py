"""Attendance rollups over a reconstructed month view."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from delivery_ledger.models import DeliveryStatus
from delivery_ledger.month_view import DaySlot, days_in_month


@dataclass(frozen=True)
class AttendanceSummary:
    """Attendance up to the as-of day plus whole-month status counts."""

    counted_days: int
    present_days: int
    absent_days: int
    attendance_rate: float
    delivered_days: int = 0
    missed_days: int = 0
    holiday_days: int = 0
    total_quantity: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, object]:
        return {
            "counted": self.counted_days,
            "present": self.present_days,
            "absent": self.absent_days,
            "rate": self.attendance_rate,
            "delivered": self.delivered_days,
            "missed": self.missed_days,
            "holiday": self.holiday_days,
            "total_quantity": str(self.total_quantity),
        }


def as_of_day_for(month: int, year: int, today: date) -> int:
    """How many days of a period have elapsed as of ``today``.

    Elapsed periods count in full, the current period counts up to and
    including today, and future periods count zero days.
    """
    total = days_in_month(month, year)
    if (year, month) < (today.year, today.month):
        return total
    if (year, month) == (today.year, today.month):
        return today.day
    return 0


def summarize_attendance(slots: Sequence[DaySlot], as_of_day: int) -> AttendanceSummary:
    """Roll a dense month view up into attendance figures.

    Only the first ``as_of_day`` slots count towards attendance so that
    days still ahead (which reconstruct as missed) do not drag the rate
    down. Status counts and total quantity cover the whole view.
    """
    counted = max(min(as_of_day, len(slots)), 0)
    present = sum(1 for slot in slots[:counted] if slot.status == DeliveryStatus.DELIVERED)
    absent = max(counted - present, 0)
    rate = (present / counted) * 100 if counted else 0.0

    delivered = [slot for slot in slots if slot.status == DeliveryStatus.DELIVERED]
    return AttendanceSummary(
        counted_days=counted,
        present_days=present,
        absent_days=absent,
        attendance_rate=rate,
        delivered_days=len(delivered),
        missed_days=sum(1 for slot in slots if slot.status == DeliveryStatus.MISSED),
        holiday_days=sum(1 for slot in slots if slot.status == DeliveryStatus.HOLIDAY),
        total_quantity=sum((slot.quantity for slot in delivered), Decimal("0")),
    )
