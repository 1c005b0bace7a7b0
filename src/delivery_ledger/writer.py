"""Single write path for delivery outcomes."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog

from delivery_ledger.errors import LedgerWriteFailed, ValidationError
from delivery_ledger.models import DeliveryRecord, DeliveryStatus, Table, to_decimal
from delivery_ledger.store.base import LedgerStore

logger = structlog.get_logger(__name__)


def parse_delivery_date(value: Any) -> date:
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"Malformed delivery date: {value!r}") from e
    raise ValidationError(f"Malformed delivery date: {value!r}")


def parse_status(value: Any) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError as e:
        raise ValidationError(f"Unknown delivery status: {value!r}") from e


def parse_quantity(value: Any) -> Decimal:
    """Non-negative, finite liters."""
    try:
        quantity = to_decimal(value)
    except ValueError as e:
        raise ValidationError(f"Malformed quantity: {value!r}") from e
    if not quantity.is_finite():
        raise ValidationError(f"Quantity must be finite, got {value!r}")
    if quantity < 0:
        raise ValidationError(f"Quantity must not be negative, got {value!r}")
    return quantity


class LedgerWriter:
    """Records delivery outcomes, one row per customer per day.

    Each call is one whole-row upsert keyed on (customer_id, delivery_date),
    so a later write for the same day replaces every column of the earlier
    one. Store failures surface as ``LedgerWriteFailed`` and are not
    retried here.
    """

    def __init__(self, store: LedgerStore):
        self._store = store
        self._logger = logger.bind(component="ledger_writer")

    def build_record(
        self,
        customer_id: str,
        delivery_date: date | str,
        status: DeliveryStatus | str,
        quantity: Decimal | int | float | str = 0,
        photo_url: str | None = None,
        notes: str | None = None,
        delivered_by: str | None = None,
        delivery_time: str | None = None,
    ) -> DeliveryRecord:
        """Validate inputs and build the row that would be written."""
        if not isinstance(customer_id, str) or not customer_id.strip():
            raise ValidationError("customer_id is required")

        parsed_status = parse_status(status)
        parsed_quantity = parse_quantity(quantity)
        if parsed_status != DeliveryStatus.DELIVERED:
            parsed_quantity = Decimal("0")

        return DeliveryRecord(
            customer_id=customer_id,
            delivery_date=parse_delivery_date(delivery_date),
            status=parsed_status,
            quantity_delivered=parsed_quantity,
            delivery_time=delivery_time,
            photo_url=photo_url,
            notes=notes,
            delivered_by=delivered_by,
        )

    async def record_delivery(
        self,
        customer_id: str,
        delivery_date: date | str,
        status: DeliveryStatus | str,
        quantity: Decimal | int | float | str = 0,
        photo_url: str | None = None,
        notes: str | None = None,
        delivered_by: str | None = None,
        delivery_time: str | None = None,
    ) -> DeliveryRecord:
        """Write the outcome for one customer and day, replacing any prior row."""
        record = self.build_record(
            customer_id,
            delivery_date,
            status,
            quantity,
            photo_url=photo_url,
            notes=notes,
            delivered_by=delivered_by,
            delivery_time=delivery_time,
        )

        try:
            await self._store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())
        except LedgerWriteFailed as e:
            self._logger.warning(
                "delivery_write_failed",
                customer_id=record.customer_id,
                delivery_date=record.delivery_date.isoformat(),
                status_code=e.status_code,
                error=str(e),
            )
            raise

        self._logger.info(
            "delivery_recorded",
            customer_id=record.customer_id,
            delivery_date=record.delivery_date.isoformat(),
            status=record.status.value,
            quantity=str(record.quantity_delivered),
        )
        return record
