"""Read-side projection kept current from the store's change feed.

The projection holds every customer, delivery record and payment entry
in memory, indexed by natural key, for dashboards that need fast reads.
It is a cache with no authority over the store: when it may have missed
notifications the recovery path is ``refresh`` (a full re-fetch), never
a local repair.

One applier task writes; any number of readers take ``snapshot``. Each
applied event builds a new immutable snapshot and swaps it in, so a
reader never observes a half-applied event.
"""

from collections.abc import AsyncIterable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import structlog

from delivery_ledger.events.types import ChangeEvent, ChangeOp
from delivery_ledger.models import (
    Customer,
    DeliveryRecord,
    Key,
    PaymentLedgerEntry,
    Table,
    row_key,
)
from delivery_ledger.store.base import LedgerStore, Row

logger = structlog.get_logger(__name__)

TableRows = Mapping[Key, Row]
ProjectionHook = Callable[[ChangeEvent, "ProjectionSnapshot"], None]


def _frozen(rows: dict[Key, Row]) -> TableRows:
    return MappingProxyType(rows)


def _empty_tables() -> dict[Table, TableRows]:
    return {table: _frozen({}) for table in Table}


@dataclass(frozen=True)
class ProjectionSnapshot:
    """Immutable view of all projected tables at one point in the feed."""

    tables: Mapping[Table, TableRows] = field(default_factory=_empty_tables)

    def rows(self, table: Table) -> TableRows:
        return self.tables[table]

    def customer(self, customer_id: str) -> Customer | None:
        row = self.tables[Table.CUSTOMER].get((customer_id,))
        return Customer.from_row(row) if row else None

    def customers(self) -> list[Customer]:
        customers = [Customer.from_row(row) for row in self.tables[Table.CUSTOMER].values()]
        return sorted(customers, key=lambda c: c.name.lower())

    def delivery_records(self, customer_id: str | None = None) -> list[DeliveryRecord]:
        """Records ordered by date, optionally for one customer."""
        records = [
            DeliveryRecord.from_row(row)
            for key, row in self.tables[Table.DELIVERY_RECORD].items()
            if customer_id is None or key[0] == customer_id
        ]
        return sorted(records, key=lambda r: (r.delivery_date, r.customer_id))

    def payment_entries(self, customer_id: str | None = None) -> list[PaymentLedgerEntry]:
        entries = [
            PaymentLedgerEntry.from_row(row)
            for key, row in self.tables[Table.PAYMENT_ENTRY].items()
            if customer_id is None or key[0] == customer_id
        ]
        return sorted(entries, key=lambda e: (e.year, e.month, e.customer_id))

    def count(self, table: Table) -> int:
        return len(self.tables[table])


class ProjectionApplier:
    """Applies change events to the in-memory projection, one at a time.

    Usage:
        applier = ProjectionApplier()
        await applier.refresh(store)
        await applier.run(store.subscribe())

        # Any reader, any time
        snapshot = applier.snapshot
    """

    def __init__(self) -> None:
        self._snapshot = ProjectionSnapshot()
        self._applied = 0
        self._hooks: list[ProjectionHook] = []
        self._handlers: dict[Table, Callable[[ChangeEvent], dict[Table, TableRows]]] = {
            Table.CUSTOMER: self._apply_customer,
            Table.DELIVERY_RECORD: self._apply_keyed,
            Table.PAYMENT_ENTRY: self._apply_keyed,
        }
        self._logger = logger.bind(component="projection_applier")

    @property
    def snapshot(self) -> ProjectionSnapshot:
        """Current immutable view."""
        return self._snapshot

    @property
    def applied_count(self) -> int:
        """Number of events applied since creation or the last refresh."""
        return self._applied

    def add_hook(self, hook: ProjectionHook) -> None:
        """Call ``hook(event, snapshot)`` after every applied event."""
        self._hooks.append(hook)

    def remove_hook(self, hook: ProjectionHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    # === Loading ===

    def load(self, rows_by_table: Mapping[Table, Iterable[Row]]) -> ProjectionSnapshot:
        """Replace the whole projection with the given rows."""
        tables = _empty_tables()
        for table, rows in rows_by_table.items():
            tables[table] = _frozen({row_key(table, row): dict(row) for row in rows})
        self._snapshot = ProjectionSnapshot(tables=MappingProxyType(tables))
        self._applied = 0
        self._logger.info(
            "projection_loaded",
            **{table.value: len(tables[table]) for table in Table},
        )
        return self._snapshot

    async def refresh(self, store: LedgerStore) -> ProjectionSnapshot:
        """Re-fetch every table from the store."""
        rows_by_table = {table: await store.select(table) for table in Table}
        return self.load(rows_by_table)

    # === Applying events ===

    def apply(self, event: ChangeEvent) -> ProjectionSnapshot:
        """Apply one event and publish the resulting snapshot.

        Applying the same event twice yields the same projection.
        """
        try:
            changed = self._handlers[event.table](event)
        except (KeyError, ValueError) as e:
            # Without a key the row cannot be placed; a refresh repairs this.
            self._logger.warning(
                "event_missing_key", table=event.table.value, op=event.op.value, error=str(e)
            )
            return self._snapshot

        tables = dict(self._snapshot.tables)
        tables.update(changed)
        self._snapshot = ProjectionSnapshot(tables=MappingProxyType(tables))
        self._applied += 1

        for hook in self._hooks:
            try:
                hook(event, self._snapshot)
            except Exception as e:
                self._logger.error("projection_hook_error", error=str(e))
        return self._snapshot

    async def run(self, stream: AsyncIterable[ChangeEvent]) -> None:
        """Apply events from ``stream`` in arrival order until it ends."""
        self._logger.info("projection_subscribed")
        async for event in stream:
            self.apply(event)
        self._logger.info("projection_stream_ended", applied=self._applied)

    def _copy(self, table: Table) -> dict[Key, Row]:
        return dict(self._snapshot.tables[table])

    def _apply_keyed(self, event: ChangeEvent) -> dict[Table, TableRows]:
        rows = self._copy(event.table)
        key = event.key
        if event.op == ChangeOp.DELETE:
            rows.pop(key, None)
        else:
            rows[key] = dict(event.row)
        return {event.table: _frozen(rows)}

    def _apply_customer(self, event: ChangeEvent) -> dict[Table, TableRows]:
        changed = self._apply_keyed(event)
        if event.op != ChangeOp.DELETE:
            return changed

        customer_id = event.key[0]
        for child in (Table.DELIVERY_RECORD, Table.PAYMENT_ENTRY):
            rows = {k: v for k, v in self._snapshot.tables[child].items() if k[0] != customer_id}
            changed[child] = _frozen(rows)
        self._logger.debug("customer_cascade_removed", customer_id=customer_id)
        return changed


def snapshot_summary(snapshot: ProjectionSnapshot) -> dict[str, Any]:
    """Row counts per table, for health and status output."""
    return {table.value: snapshot.count(table) for table in Table}
