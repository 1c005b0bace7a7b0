"""Domain models for customers, delivery records and payment entries.

Rows exchanged with the store are plain dicts using the hosted schema's
column names. Each model converts to and from that shape with ``to_row`` /
``from_row`` so the store adapters never need to know about the models.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

Key = tuple[Any, ...]

CENTS = Decimal("0.01")


class Table(str, Enum):
    """Tables of the hosted store that the core reads and writes."""

    CUSTOMER = "customers"
    DELIVERY_RECORD = "delivery_records"
    PAYMENT_ENTRY = "customer_payments"


# Natural key columns per table, in key order
KEY_FIELDS: dict[Table, tuple[str, ...]] = {
    Table.CUSTOMER: ("id",),
    Table.DELIVERY_RECORD: ("customer_id", "delivery_date"),
    Table.PAYMENT_ENTRY: ("customer_id", "month", "year"),
}


class DeliveryStatus(str, Enum):
    """Outcome of a delivery day."""

    DELIVERED = "delivered"
    MISSED = "missed"
    HOLIDAY = "holiday"


class PaymentStatus(str, Enum):
    """Settlement state of a payment entry."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce a JSON number or numeric string to Decimal."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e


def _to_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_date(value: Any) -> date | None:
    return _to_date(value) if value else None


def row_key(table: Table, row: dict[str, Any]) -> Key:
    """Extract the natural key of a store row."""
    if table == Table.CUSTOMER:
        return (str(row["id"]),)
    if table == Table.DELIVERY_RECORD:
        return (str(row["customer_id"]), _to_date(row["delivery_date"]).isoformat())
    return (str(row["customer_id"]), int(row["month"]), int(row["year"]))


def key_filters(table: Table, key: Key) -> dict[str, Any]:
    """Map a natural key onto column equality filters."""
    return dict(zip(KEY_FIELDS[table], key, strict=True))


@dataclass(frozen=True)
class Customer:
    """A delivery customer with a default daily quantity in liters."""

    id: str
    name: str
    address: str = ""
    quantity: Decimal = Decimal("1")
    contact_number: str | None = None
    profile_id: str | None = None

    @property
    def key(self) -> Key:
        return (self.id,)

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "quantity": str(self.quantity),
            "contact_number": self.contact_number,
            "profile_id": self.profile_id,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Customer":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            address=row.get("address") or "",
            quantity=to_decimal(row.get("quantity"), Decimal("1")),
            contact_number=row.get("contact_number"),
            profile_id=row.get("profile_id"),
        )


@dataclass(frozen=True)
class DeliveryRecord:
    """The single recorded outcome for one customer on one date."""

    customer_id: str
    delivery_date: date
    status: DeliveryStatus
    quantity_delivered: Decimal = Decimal("0")
    delivery_time: str | None = None
    photo_url: str | None = None
    notes: str | None = None
    delivered_by: str | None = None

    @property
    def key(self) -> Key:
        return (self.customer_id, self.delivery_date.isoformat())

    def to_row(self) -> dict[str, Any]:
        """Full row; every column is present so an upsert replaces the row."""
        return {
            "customer_id": self.customer_id,
            "delivery_date": self.delivery_date.isoformat(),
            "status": self.status.value,
            "quantity_delivered": str(self.quantity_delivered),
            "delivery_time": self.delivery_time,
            "photo_url": self.photo_url,
            "notes": self.notes,
            "delivered_by": self.delivered_by,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DeliveryRecord":
        return cls(
            customer_id=str(row["customer_id"]),
            delivery_date=_to_date(row["delivery_date"]),
            status=DeliveryStatus(row["status"]),
            quantity_delivered=to_decimal(row.get("quantity_delivered")),
            delivery_time=row.get("delivery_time"),
            photo_url=row.get("photo_url"),
            notes=row.get("notes"),
            delivered_by=row.get("delivered_by"),
        )


@dataclass(frozen=True)
class PaymentLedgerEntry:
    """Amount billed and paid for one customer and billing period."""

    customer_id: str
    month: int
    year: int
    amount_due: Decimal
    amount_paid: Decimal = Decimal("0")
    payment_date: date | None = None
    notes: str | None = None

    @property
    def key(self) -> Key:
        return (self.customer_id, self.month, self.year)

    @property
    def outstanding(self) -> Decimal:
        """Amount still owed; negative when overpaid."""
        return self.amount_due - self.amount_paid

    @property
    def status(self) -> PaymentStatus:
        if self.amount_paid >= self.amount_due:
            return PaymentStatus.PAID
        if self.amount_paid > 0:
            return PaymentStatus.PARTIAL
        return PaymentStatus.PENDING

    def to_row(self) -> dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "month": self.month,
            "year": self.year,
            "amount_due": str(self.amount_due),
            "amount_paid": str(self.amount_paid),
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "notes": self.notes,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PaymentLedgerEntry":
        return cls(
            customer_id=str(row["customer_id"]),
            month=int(row["month"]),
            year=int(row["year"]),
            amount_due=to_decimal(row.get("amount_due")),
            amount_paid=to_decimal(row.get("amount_paid")),
            payment_date=_optional_date(row.get("payment_date")),
            notes=row.get("notes"),
        )
