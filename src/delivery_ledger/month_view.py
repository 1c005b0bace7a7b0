"""Dense month view reconstructed from sparse delivery records.

Stored records only exist for days something was recorded. The month
view has one slot per calendar day; a day without a record reads as
missed with zero quantity. That default applies to future days of the
period too: the ledger has no "not yet due" state, and the attendance
aggregator excludes not-yet-elapsed days instead.
"""

import calendar
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from delivery_ledger.errors import ValidationError
from delivery_ledger.models import DeliveryRecord, DeliveryStatus


def validate_period(month: int, year: int) -> None:
    """Reject a billing period outside the supported calendar range."""
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month!r}")
    if not isinstance(year, int) or not 1 <= year <= 9999:
        raise ValidationError(f"Year out of range: {year!r}")


def days_in_month(month: int, year: int) -> int:
    """Number of days in a month (proleptic Gregorian, Feb 29 on leap years)."""
    validate_period(month, year)
    return calendar.monthrange(year, month)[1]


def period_bounds(month: int, year: int) -> tuple[date, date]:
    """First and last date of a billing period."""
    return date(year, month, 1), date(year, month, days_in_month(month, year))


@dataclass(frozen=True)
class DaySlot:
    """One calendar day of a month view, bound to a record or defaulted."""

    day: int
    delivery_date: date
    status: DeliveryStatus
    quantity: Decimal = Decimal("0")
    delivery_time: str | None = None
    photo_url: str | None = None
    notes: str | None = None
    record: DeliveryRecord | None = None

    @property
    def is_recorded(self) -> bool:
        """True when the slot comes from a stored record."""
        return self.record is not None

    @classmethod
    def from_record(cls, record: DeliveryRecord) -> "DaySlot":
        return cls(
            day=record.delivery_date.day,
            delivery_date=record.delivery_date,
            status=record.status,
            quantity=record.quantity_delivered,
            delivery_time=record.delivery_time,
            photo_url=record.photo_url,
            notes=record.notes,
            record=record,
        )

    @classmethod
    def missing(cls, delivery_date: date) -> "DaySlot":
        return cls(
            day=delivery_date.day,
            delivery_date=delivery_date,
            status=DeliveryStatus.MISSED,
        )


def reconstruct_month(
    customer_id: str,
    month: int,
    year: int,
    records: Iterable[DeliveryRecord],
) -> list[DaySlot]:
    """Build the dense month view for one customer.

    Returns exactly ``days_in_month(month, year)`` slots ordered by day
    ascending. Records for other customers or outside the period are
    ignored; callers wanting newest-first presentation reverse the list.
    """
    start, end = period_bounds(month, year)
    by_date = {
        record.delivery_date: record
        for record in records
        if record.customer_id == customer_id and start <= record.delivery_date <= end
    }

    slots: list[DaySlot] = []
    for day in range(1, end.day + 1):
        current = date(year, month, day)
        record = by_date.get(current)
        slots.append(DaySlot.from_record(record) if record else DaySlot.missing(current))
    return slots
