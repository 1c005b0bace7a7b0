"""Amount due for a billing period.

Pricing is quantity times a flat price per liter. A delivered record
without a recorded quantity is billed at the customer's default daily
quantity. Missed and holiday days are never billed.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from delivery_ledger.models import CENTS, DeliveryRecord, DeliveryStatus


def billed_quantity(record: DeliveryRecord, default_quantity: Decimal) -> Decimal:
    """Liters billed for one record (0 unless delivered)."""
    if record.status != DeliveryStatus.DELIVERED:
        return Decimal("0")
    if record.quantity_delivered > 0:
        return record.quantity_delivered
    return default_quantity


def amount_due(
    records: Iterable[DeliveryRecord],
    default_quantity: Decimal,
    price_per_liter: Decimal,
) -> Decimal:
    """Sum of billed liters times price, rounded to cents."""
    total = sum(
        (billed_quantity(record, default_quantity) * price_per_liter for record in records),
        Decimal("0"),
    )
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MonthlyBill:
    """Billing breakdown shown alongside a customer's month view."""

    customer_id: str
    month: int
    year: int
    delivered_days: int
    total_quantity: Decimal
    price_per_liter: Decimal
    daily_rate: Decimal
    amount_due: Decimal


def monthly_bill(
    customer_id: str,
    month: int,
    year: int,
    records: Iterable[DeliveryRecord],
    default_quantity: Decimal,
    price_per_liter: Decimal,
) -> MonthlyBill:
    """Build the bill breakdown for one customer and period."""
    delivered = [r for r in records if r.status == DeliveryStatus.DELIVERED]
    total_quantity = sum(
        (billed_quantity(r, default_quantity) for r in delivered), Decimal("0")
    )
    return MonthlyBill(
        customer_id=customer_id,
        month=month,
        year=year,
        delivered_days=len(delivered),
        total_quantity=total_quantity,
        price_per_liter=price_per_liter,
        daily_rate=(default_quantity * price_per_liter).quantize(CENTS, rounding=ROUND_HALF_UP),
        amount_due=amount_due(delivered, default_quantity, price_per_liter),
    )
