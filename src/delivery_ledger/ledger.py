"""Dashboard-facing entry points of the delivery ledger core.

``DeliveryLedger`` wires the writer, reconciler and the pure month-view,
attendance and billing functions to one store. Every period-dependent
call takes the period (and, where it matters, the as-of date) explicitly.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import structlog

from delivery_ledger.attendance import AttendanceSummary, as_of_day_for, summarize_attendance
from delivery_ledger.billing import MonthlyBill, amount_due, billed_quantity, monthly_bill
from delivery_ledger.models import (
    Customer,
    DeliveryRecord,
    DeliveryStatus,
    PaymentLedgerEntry,
    Table,
)
from delivery_ledger.month_view import DaySlot, period_bounds, reconstruct_month
from delivery_ledger.reconciler import (
    PaymentReconciler,
    PaymentTotals,
    ReconcileResult,
    summarize_payments,
)
from delivery_ledger.store.base import LedgerStore
from delivery_ledger.writer import LedgerWriter

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DailyReportRow:
    customer: Customer
    record: DeliveryRecord | None = None

    @property
    def status(self) -> DeliveryStatus | None:
        """Recorded status, or None while nothing has been recorded."""
        return self.record.status if self.record else None


@dataclass(frozen=True)
class DailyReport:
    """Every customer's outcome for one date."""

    day: date
    rows: list[DailyReportRow] = field(default_factory=list)

    def _count(self, status: DeliveryStatus | None) -> int:
        return sum(1 for row in self.rows if row.status == status)

    @property
    def delivered(self) -> int:
        return self._count(DeliveryStatus.DELIVERED)

    @property
    def missed(self) -> int:
        return self._count(DeliveryStatus.MISSED)

    @property
    def holiday(self) -> int:
        return self._count(DeliveryStatus.HOLIDAY)

    @property
    def pending(self) -> int:
        return self._count(None)

    @property
    def total_quantity(self) -> Decimal:
        """Liters delivered that day, at default quantity where none was recorded."""
        return sum(
            (
                billed_quantity(row.record, row.customer.quantity)
                for row in self.rows
                if row.record is not None
            ),
            Decimal("0"),
        )


class DeliveryLedger:
    """Facade over one ledger store."""

    def __init__(
        self,
        store: LedgerStore,
        price_per_liter: Decimal | None = None,
        concurrency: int | None = None,
    ):
        self.store = store
        self.writer = LedgerWriter(store)
        self.reconciler = PaymentReconciler(
            store, price_per_liter=price_per_liter, concurrency=concurrency
        )
        self._logger = logger.bind(component="delivery_ledger")

    @property
    def price_per_liter(self) -> Decimal:
        return self.reconciler.price_per_liter

    async def _period_records(
        self, customer_id: str, month: int, year: int
    ) -> list[DeliveryRecord]:
        start, end = period_bounds(month, year)
        return await self.store.list_delivery_records(customer_id, start, end)

    # === Month view, attendance, billing ===

    async def reconstruct_month(self, customer_id: str, month: int, year: int) -> list[DaySlot]:
        """Dense, ascending month view for one customer."""
        records = await self._period_records(customer_id, month, year)
        return reconstruct_month(customer_id, month, year, records)

    async def attendance(
        self, customer_id: str, month: int, year: int, as_of: date
    ) -> AttendanceSummary:
        """Attendance for a period, counting days up to ``as_of``."""
        slots = await self.reconstruct_month(customer_id, month, year)
        return summarize_attendance(slots, as_of_day_for(month, year, as_of))

    async def amount_due(self, customer_id: str, month: int, year: int) -> Decimal | None:
        """Fresh amount due for a period; None for an unknown customer."""
        customer = await self.store.get_customer(customer_id)
        if customer is None:
            return None
        records = await self._period_records(customer_id, month, year)
        return amount_due(records, customer.quantity, self.price_per_liter)

    async def monthly_bill(self, customer_id: str, month: int, year: int) -> MonthlyBill | None:
        customer = await self.store.get_customer(customer_id)
        if customer is None:
            return None
        records = await self._period_records(customer_id, month, year)
        return monthly_bill(
            customer_id, month, year, records, customer.quantity, self.price_per_liter
        )

    # === Writes ===

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
        return await self.writer.record_delivery(
            customer_id,
            delivery_date,
            status,
            quantity,
            photo_url=photo_url,
            notes=notes,
            delivered_by=delivered_by,
            delivery_time=delivery_time,
        )

    async def delete_customer(self, customer_id: str) -> bool:
        """Delete a customer with its payment entries and delivery records.

        Returns False when the customer does not exist.
        """
        if await self.store.get_customer(customer_id) is None:
            return False
        payments = await self.store.delete_where(Table.PAYMENT_ENTRY, {"customer_id": customer_id})
        deliveries = await self.store.delete_where(
            Table.DELIVERY_RECORD, {"customer_id": customer_id}
        )
        deleted = await self.store.delete(Table.CUSTOMER, (customer_id,))
        self._logger.info(
            "customer_deleted",
            customer_id=customer_id,
            payment_entries=payments,
            delivery_records=deliveries,
        )
        return deleted

    # === Payments ===

    async def ensure_payment_entries(
        self, month: int, year: int, customers: Sequence[Customer | str] | None = None
    ) -> list[ReconcileResult]:
        """Backfill payment entries for ``customers`` (default: all customers)."""
        if customers is None:
            customers = await self.store.list_customers()
        return await self.reconciler.ensure_payment_entries_for_all(customers, month, year)

    async def record_payment(
        self,
        customer_id: str,
        month: int,
        year: int,
        amount_paid: Decimal | int | float | str,
        payment_date: date | None = None,
        notes: str | None = None,
    ) -> PaymentLedgerEntry | None:
        return await self.reconciler.record_payment(
            customer_id, month, year, amount_paid, payment_date=payment_date, notes=notes
        )

    async def payment_summary(self, month: int, year: int) -> PaymentTotals:
        return summarize_payments(await self.store.list_payment_entries(month, year))

    # === Reports ===

    async def daily_report(self, day: date) -> DailyReport:
        """One row per customer with that day's recorded outcome, if any."""
        customers = await self.store.list_customers()
        by_customer = {r.customer_id: r for r in await self.store.list_deliveries_on(day)}
        return DailyReport(
            day=day,
            rows=[DailyReportRow(customer, by_customer.get(customer.id)) for customer in customers],
        )
