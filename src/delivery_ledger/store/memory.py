"""In-process ledger store.

Mirrors the hosted store's semantics closely enough to stand in for it in
tests and local tooling: unique natural keys, whole-row upsert, conditional
insert, cascading customer deletes and a change stream that delivers every
committed mutation to each subscriber in commit order.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from typing import Any

import structlog

from delivery_ledger.events.types import ChangeEvent, row_deleted, row_inserted, row_updated
from delivery_ledger.models import Key, Table, row_key
from delivery_ledger.store.base import EventPredicate, LedgerStore, Row

logger = structlog.get_logger(__name__)

# Child tables removed together with their customer
_CASCADE_TABLES = (Table.DELIVERY_RECORD, Table.PAYMENT_ENTRY)


def _matches(
    row: Row,
    eq: dict[str, Any] | None,
    gte: dict[str, Any] | None,
    lte: dict[str, Any] | None,
) -> bool:
    # Values are compared as strings; dates are ISO formatted so ranges hold.
    for column, value in (eq or {}).items():
        if str(row.get(column)) != str(value):
            return False
    for column, value in (gte or {}).items():
        if row.get(column) is None or str(row[column]) < str(value):
            return False
    for column, value in (lte or {}).items():
        if row.get(column) is None or str(row[column]) > str(value):
            return False
    return True


class Subscription:
    """Queue-backed change stream handed out by ``InMemoryLedgerStore``."""

    def __init__(
        self,
        store: "InMemoryLedgerStore",
        tables: set[Table] | None,
        predicate: EventPredicate | None,
    ):
        self._store = store
        self._tables = tables
        self._predicate = predicate
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._closed = False

    def accepts(self, event: ChangeEvent) -> bool:
        if self._tables is not None and event.table not in self._tables:
            return False
        return self._predicate is None or self._predicate(event)

    def push(self, event: ChangeEvent) -> None:
        if not self._closed and self.accepts(event):
            self._queue.put_nowait(event)

    @property
    def pending(self) -> int:
        """Number of events delivered but not yet consumed."""
        return self._queue.qsize()

    def close(self) -> None:
        """Stop the stream; iteration ends after already queued events."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        self._store._unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class InMemoryLedgerStore(LedgerStore):
    """Dict-backed store with hosted-store semantics."""

    def __init__(self) -> None:
        self._tables: dict[Table, dict[Key, Row]] = {table: {} for table in Table}
        self._subscriptions: list[Subscription] = []
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="memory_store")

    def row_count(self, table: Table) -> int:
        return len(self._tables[table])

    # === Row primitives ===

    async def get(self, table: Table, key: Key) -> Row | None:
        row = self._tables[table].get(tuple(key))
        return dict(row) if row is not None else None

    async def upsert(self, table: Table, key: Key, row: Row) -> Row:
        key = tuple(key)
        self._check_key(table, key, row)
        async with self._lock:
            previous = self._tables[table].get(key)
            stored = dict(row)
            self._tables[table][key] = stored
            if previous is None:
                self._emit(row_inserted(table, stored))
            else:
                self._emit(row_updated(table, stored, previous))
        return dict(stored)

    async def insert_if_absent(self, table: Table, key: Key, row: Row) -> bool:
        key = tuple(key)
        self._check_key(table, key, row)
        async with self._lock:
            if key in self._tables[table]:
                return False
            stored = dict(row)
            self._tables[table][key] = stored
            self._emit(row_inserted(table, stored))
        return True

    async def delete(self, table: Table, key: Key) -> bool:
        async with self._lock:
            return self._delete_locked(table, tuple(key))

    async def delete_where(self, table: Table, eq: dict[str, Any]) -> int:
        async with self._lock:
            keys = [
                key for key, row in self._tables[table].items() if _matches(row, eq, None, None)
            ]
            for key in keys:
                self._delete_locked(table, key)
        return len(keys)

    async def select(
        self,
        table: Table,
        eq: dict[str, Any] | None = None,
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[Row]:
        rows = [
            dict(row) for row in self._tables[table].values() if _matches(row, eq, gte, lte)
        ]
        if order_by:
            rows.sort(key=lambda row: str(row.get(order_by) or ""))
        return rows

    def subscribe(
        self,
        tables: Iterable[Table] | None = None,
        predicate: EventPredicate | None = None,
    ) -> Subscription:
        subscription = Subscription(
            self, set(tables) if tables is not None else None, predicate
        )
        self._subscriptions.append(subscription)
        return subscription

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()

    # === Internals ===

    def _check_key(self, table: Table, key: Key, row: Row) -> None:
        if row_key(table, row) != key:
            raise ValueError(f"Row key {row_key(table, row)} does not match {key}")

    def _delete_locked(self, table: Table, key: Key) -> bool:
        removed = self._tables[table].pop(key, None)
        if removed is None:
            return False
        self._emit(row_deleted(table, removed))
        if table == Table.CUSTOMER:
            customer_id = key[0]
            for child in _CASCADE_TABLES:
                child_keys = [k for k in self._tables[child] if k[0] == customer_id]
                for child_key in child_keys:
                    self._delete_locked(child, child_key)
        return True

    def _emit(self, event: ChangeEvent) -> None:
        self._logger.debug(
            "row_changed", op=event.op.value, table=event.table.value, key=list(event.key)
        )
        for subscription in list(self._subscriptions):
            subscription.push(event)

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
