"""Monthly payment-entry backfill.

For every customer and billing period the reconciler makes sure exactly
one payment entry exists. The amount due is computed from the period's
delivered days when the entry is first created and is never recomputed
afterwards: a later pass over the same period leaves the entry alone even
if deliveries have changed since.
"""

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

import structlog

from delivery_ledger.billing import amount_due
from delivery_ledger.config import get_settings
from delivery_ledger.errors import LedgerError, ValidationError
from delivery_ledger.models import (
    Customer,
    PaymentLedgerEntry,
    PaymentStatus,
    Table,
    to_decimal,
)
from delivery_ledger.month_view import period_bounds, validate_period
from delivery_ledger.store.base import LedgerStore

logger = structlog.get_logger(__name__)


class ReconcileOutcome(str, Enum):
    """Per-customer result of a reconciliation pass."""

    CREATED = "created"
    EXISTING = "existing"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome for one customer and period."""

    customer_id: str
    month: int
    year: int
    outcome: ReconcileOutcome
    entry: PaymentLedgerEntry | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "customer_id": self.customer_id,
            "month": self.month,
            "year": self.year,
            "outcome": self.outcome.value,
            "amount_due": str(self.entry.amount_due) if self.entry else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class PaymentTotals:
    """Aggregate figures across payment entries."""

    total_due: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    pending: int
    partial: int
    paid: int


def summarize_payments(entries: Iterable[PaymentLedgerEntry]) -> PaymentTotals:
    """Totals and status counts for a set of payment entries."""
    entries = list(entries)
    total_due = sum((e.amount_due for e in entries), Decimal("0"))
    total_paid = sum((e.amount_paid for e in entries), Decimal("0"))
    statuses = [e.status for e in entries]
    return PaymentTotals(
        total_due=total_due,
        total_paid=total_paid,
        total_outstanding=total_due - total_paid,
        pending=statuses.count(PaymentStatus.PENDING),
        partial=statuses.count(PaymentStatus.PARTIAL),
        paid=statuses.count(PaymentStatus.PAID),
    )


class PaymentReconciler:
    """Creates missing payment entries from delivered-day billing."""

    def __init__(
        self,
        store: LedgerStore,
        price_per_liter: Decimal | None = None,
        concurrency: int | None = None,
    ):
        if price_per_liter is None or concurrency is None:
            settings = get_settings()
            price_per_liter = (
                price_per_liter if price_per_liter is not None else settings.price_per_liter
            )
            concurrency = concurrency or settings.reconcile_concurrency
        self._store = store
        self._price_per_liter = price_per_liter
        self._concurrency = concurrency
        self._logger = logger.bind(component="payment_reconciler")

    @property
    def price_per_liter(self) -> Decimal:
        return self._price_per_liter

    async def _resolve_customer(self, customer: Customer | str) -> Customer:
        if isinstance(customer, Customer):
            return customer
        found = await self._store.get_customer(customer)
        if found is None:
            raise ValidationError(f"Unknown customer: {customer}")
        return found

    async def compute_amount_due(self, customer: Customer, month: int, year: int) -> Decimal:
        """Fresh amount due for a period from the stored delivery records."""
        start, end = period_bounds(month, year)
        records = await self._store.list_delivery_records(customer.id, start, end)
        return amount_due(records, customer.quantity, self._price_per_liter)

    async def ensure_payment_entry(
        self, customer: Customer | str, month: int, year: int
    ) -> ReconcileResult:
        """Create the payment entry for a period unless one already exists.

        The insert is conditional at the store, so two passes racing on the
        same period produce one entry; the loser reports ``existing``.
        """
        validate_period(month, year)
        resolved = await self._resolve_customer(customer)

        existing = await self._store.get_payment_entry(resolved.id, month, year)
        if existing is not None:
            return ReconcileResult(
                resolved.id, month, year, ReconcileOutcome.EXISTING, entry=existing
            )

        entry = PaymentLedgerEntry(
            customer_id=resolved.id,
            month=month,
            year=year,
            amount_due=await self.compute_amount_due(resolved, month, year),
        )
        inserted = await self._store.insert_if_absent(
            Table.PAYMENT_ENTRY, entry.key, entry.to_row()
        )
        if not inserted:
            self._logger.info(
                "payment_entry_race_lost", customer_id=resolved.id, month=month, year=year
            )
            current = await self._store.get_payment_entry(resolved.id, month, year)
            return ReconcileResult(
                resolved.id, month, year, ReconcileOutcome.EXISTING, entry=current
            )

        self._logger.info(
            "payment_entry_created",
            customer_id=resolved.id,
            month=month,
            year=year,
            amount_due=str(entry.amount_due),
        )
        return ReconcileResult(resolved.id, month, year, ReconcileOutcome.CREATED, entry=entry)

    async def ensure_payment_entries_for_all(
        self, customers: Sequence[Customer | str], month: int, year: int
    ) -> list[ReconcileResult]:
        """Reconcile every customer for a period, one outcome per customer.

        Customers are independent: a failure for one is reported in its
        result and does not stop the others.
        """
        validate_period(month, year)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(customer: Customer | str) -> ReconcileResult:
            customer_id = customer.id if isinstance(customer, Customer) else customer
            async with semaphore:
                try:
                    return await self.ensure_payment_entry(customer, month, year)
                except (LedgerError, ValueError) as e:
                    self._logger.warning(
                        "payment_entry_failed",
                        customer_id=customer_id,
                        month=month,
                        year=year,
                        error=str(e),
                    )
                    return ReconcileResult(
                        customer_id, month, year, ReconcileOutcome.FAILED, error=str(e)
                    )

        results = await asyncio.gather(*(_one(c) for c in customers))

        self._logger.info(
            "reconciliation_completed",
            month=month,
            year=year,
            created=sum(1 for r in results if r.outcome == ReconcileOutcome.CREATED),
            existing=sum(1 for r in results if r.outcome == ReconcileOutcome.EXISTING),
            failed=sum(1 for r in results if r.outcome == ReconcileOutcome.FAILED),
        )
        return list(results)

    async def record_payment(
        self,
        customer_id: str,
        month: int,
        year: int,
        amount_paid: Decimal | int | float | str,
        payment_date: date | None = None,
        notes: str | None = None,
    ) -> PaymentLedgerEntry | None:
        """Set the paid amount of an existing entry; None if there is none.

        ``amount_due`` is carried over unchanged.
        """
        validate_period(month, year)
        try:
            paid = to_decimal(amount_paid)
        except ValueError as e:
            raise ValidationError(f"Malformed payment amount: {amount_paid!r}") from e
        if not paid.is_finite() or paid < 0:
            raise ValidationError(f"Payment amount must be a non-negative number: {amount_paid!r}")

        current = await self._store.get_payment_entry(customer_id, month, year)
        if current is None:
            return None

        updated = PaymentLedgerEntry(
            customer_id=current.customer_id,
            month=current.month,
            year=current.year,
            amount_due=current.amount_due,
            amount_paid=paid,
            payment_date=payment_date,
            notes=notes,
        )
        await self._store.upsert(Table.PAYMENT_ENTRY, updated.key, updated.to_row())
        self._logger.info(
            "payment_recorded",
            customer_id=customer_id,
            month=month,
            year=year,
            amount_paid=str(paid),
            status=updated.status.value,
        )
        return updated
