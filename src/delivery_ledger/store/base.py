"""Store adapter contract shared by the in-memory and hosted stores.

The core treats persistence as a key-value store keyed by each table's
natural key, with whole-row upsert, conditional insert and a push-based
change stream. Row-level primitives are abstract; the typed helpers below
them convert rows into domain models.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable
from datetime import date
from typing import Any, TypeVar

from delivery_ledger.errors import LedgerReadFailed
from delivery_ledger.events.types import ChangeEvent
from delivery_ledger.models import (
    Customer,
    DeliveryRecord,
    Key,
    PaymentLedgerEntry,
    Table,
)

Row = dict[str, Any]
EventPredicate = Callable[[ChangeEvent], bool]

ModelT = TypeVar("ModelT", Customer, DeliveryRecord, PaymentLedgerEntry)


def _decode(model: type[ModelT], table: Table, row: Row) -> ModelT:
    """Convert a stored row, reporting an undecodable one as a read failure."""
    try:
        return model.from_row(row)
    except (KeyError, TypeError, ValueError) as e:
        raise LedgerReadFailed(f"Undecodable {table.value} row: {e}", details=row) from e


class LedgerStore(ABC):
    """Async key-value view of the hosted tables."""

    # === Row primitives ===

    @abstractmethod
    async def get(self, table: Table, key: Key) -> Row | None:
        """Return the row stored at ``key`` or None."""

    @abstractmethod
    async def upsert(self, table: Table, key: Key, row: Row) -> Row:
        """Insert or fully replace the row stored at ``key``."""

    @abstractmethod
    async def insert_if_absent(self, table: Table, key: Key, row: Row) -> bool:
        """Insert ``row`` unless ``key`` exists. Returns True if inserted.

        The existence check and the insert are one store operation.
        """

    @abstractmethod
    async def delete(self, table: Table, key: Key) -> bool:
        """Delete the row at ``key``. Returns False if nothing was there."""

    @abstractmethod
    async def delete_where(self, table: Table, eq: dict[str, Any]) -> int:
        """Delete every row matching all equality filters."""

    @abstractmethod
    async def select(
        self,
        table: Table,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[Row]:
        """Return rows matching equality and inclusive range filters."""

    @abstractmethod
    def subscribe(
        self,
        tables: Iterable[Table] | None = None,
        predicate: EventPredicate | None = None,
    ) -> AsyncIterator[ChangeEvent]:
        """Stream change events for the given tables in commit order."""

    async def close(self) -> None:
        """Release connections held by the store."""
        return None

    async def __aenter__(self) -> "LedgerStore":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Customers ===

    async def get_customer(self, customer_id: str) -> Customer | None:
        row = await self.get(Table.CUSTOMER, (customer_id,))
        return _decode(Customer, Table.CUSTOMER, row) if row else None

    async def list_customers(self) -> list[Customer]:
        rows = await self.select(Table.CUSTOMER, order_by="name")
        return [_decode(Customer, Table.CUSTOMER, row) for row in rows]

    async def save_customer(self, customer: Customer) -> Customer:
        row = await self.upsert(Table.CUSTOMER, customer.key, customer.to_row())
        return _decode(Customer, Table.CUSTOMER, row)

    # === Delivery records ===

    async def get_delivery_record(
        self, customer_id: str, delivery_date: date
    ) -> DeliveryRecord | None:
        row = await self.get(
            Table.DELIVERY_RECORD, (customer_id, delivery_date.isoformat())
        )
        return _decode(DeliveryRecord, Table.DELIVERY_RECORD, row) if row else None

    async def list_delivery_records(
        self, customer_id: str, start: date, end: date
    ) -> list[DeliveryRecord]:
        """Records for one customer with start <= delivery_date <= end."""
        rows = await self.select(
            Table.DELIVERY_RECORD,
            eq={"customer_id": customer_id},
            gte={"delivery_date": start.isoformat()},
            lte={"delivery_date": end.isoformat()},
            order_by="delivery_date",
        )
        return [_decode(DeliveryRecord, Table.DELIVERY_RECORD, row) for row in rows]

    async def list_deliveries_on(self, delivery_date: date) -> list[DeliveryRecord]:
        rows = await self.select(
            Table.DELIVERY_RECORD, eq={"delivery_date": delivery_date.isoformat()}
        )
        return [_decode(DeliveryRecord, Table.DELIVERY_RECORD, row) for row in rows]

    # === Payment entries ===

    async def get_payment_entry(
        self, customer_id: str, month: int, year: int
    ) -> PaymentLedgerEntry | None:
        row = await self.get(Table.PAYMENT_ENTRY, (customer_id, month, year))
        return _decode(PaymentLedgerEntry, Table.PAYMENT_ENTRY, row) if row else None

    async def list_payment_entries(self, month: int, year: int) -> list[PaymentLedgerEntry]:
        """Entries for a billing period, largest amount due first."""
        rows = await self.select(Table.PAYMENT_ENTRY, eq={"month": month, "year": year})
        entries = [_decode(PaymentLedgerEntry, Table.PAYMENT_ENTRY, row) for row in rows]
        return sorted(entries, key=lambda entry: entry.amount_due, reverse=True)
