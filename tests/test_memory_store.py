"""Tests for the in-memory ledger store."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from delivery_ledger.errors import LedgerReadFailed
from delivery_ledger.events import ChangeOp
from delivery_ledger.models import DeliveryRecord, DeliveryStatus, PaymentLedgerEntry, Table


def _record(customer_id: str, day: int, status=DeliveryStatus.DELIVERED) -> DeliveryRecord:
    return DeliveryRecord(customer_id, date(2025, 6, day), status, Decimal("1"))


async def _drain(subscription) -> list:
    subscription.close()
    return [event async for event in subscription]


class TestRowPrimitives:
    """Tests for keyed reads and writes."""

    @pytest.mark.asyncio
    async def test_get_returns_copy(self, store, customer):
        await store.save_customer(customer)

        row = await store.get(Table.CUSTOMER, customer.key)
        row["name"] = "changed"

        assert (await store.get_customer(customer.id)).name == "Asha Verma"

    @pytest.mark.asyncio
    async def test_upsert_key_mismatch_rejected(self, store):
        record = _record("c1", 1)

        with pytest.raises(ValueError):
            await store.upsert(Table.DELIVERY_RECORD, ("c1", "2025-06-02"), record.to_row())

    @pytest.mark.asyncio
    async def test_insert_if_absent(self, store):
        entry = PaymentLedgerEntry("c1", 6, 2025, Decimal("100"))
        other = PaymentLedgerEntry("c1", 6, 2025, Decimal("999"))

        assert await store.insert_if_absent(Table.PAYMENT_ENTRY, entry.key, entry.to_row())
        assert not await store.insert_if_absent(Table.PAYMENT_ENTRY, other.key, other.to_row())
        assert (await store.get_payment_entry("c1", 6, 2025)).amount_due == Decimal("100")

    @pytest.mark.asyncio
    async def test_concurrent_conditional_inserts(self, store):
        """Test that exactly one of many racing inserts wins."""
        entry = PaymentLedgerEntry("c1", 6, 2025, Decimal("100"))

        results = await asyncio.gather(
            *(store.insert_if_absent(Table.PAYMENT_ENTRY, entry.key, entry.to_row()) for _ in range(10))
        )

        assert results.count(True) == 1
        assert store.row_count(Table.PAYMENT_ENTRY) == 1

    @pytest.mark.asyncio
    async def test_list_delivery_records_range(self, store):
        for day in (1, 15, 30):
            record = _record("c1", day)
            await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())
        other = _record("c2", 15)
        await store.upsert(Table.DELIVERY_RECORD, other.key, other.to_row())

        records = await store.list_delivery_records("c1", date(2025, 6, 1), date(2025, 6, 15))

        assert [r.delivery_date.day for r in records] == [1, 15]

    @pytest.mark.asyncio
    async def test_list_payment_entries_largest_first(self, store):
        for customer_id, due in (("a", "100"), ("b", "900"), ("c", "400")):
            entry = PaymentLedgerEntry(customer_id, 6, 2025, Decimal(due))
            await store.insert_if_absent(Table.PAYMENT_ENTRY, entry.key, entry.to_row())

        entries = await store.list_payment_entries(6, 2025)

        assert [e.customer_id for e in entries] == ["b", "c", "a"]

    @pytest.mark.asyncio
    async def test_list_customers_by_name(self, store, customer, second_customer):
        await store.save_customer(second_customer)
        await store.save_customer(customer)

        customers = await store.list_customers()

        assert [c.name for c in customers] == ["Asha Verma", "Ravi Kumar"]

    @pytest.mark.asyncio
    async def test_undecodable_row_is_read_failure(self, store):
        row = {"customer_id": "c1", "delivery_date": "2025-06-03", "status": "pending"}
        await store.upsert(Table.DELIVERY_RECORD, ("c1", "2025-06-03"), row)

        with pytest.raises(LedgerReadFailed) as exc_info:
            await store.list_delivery_records("c1", date(2025, 6, 1), date(2025, 6, 30))

        assert exc_info.value.details == row


class TestDeletes:
    """Tests for deletes and the customer cascade."""

    @pytest.mark.asyncio
    async def test_delete_missing_returns_false(self, store):
        assert await store.delete(Table.CUSTOMER, ("nobody",)) is False

    @pytest.mark.asyncio
    async def test_customer_delete_cascades(self, store, customer):
        await store.save_customer(customer)
        record = _record(customer.id, 1)
        entry = PaymentLedgerEntry(customer.id, 6, 2025, Decimal("200"))
        await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())
        await store.insert_if_absent(Table.PAYMENT_ENTRY, entry.key, entry.to_row())

        assert await store.delete(Table.CUSTOMER, customer.key)

        assert store.row_count(Table.DELIVERY_RECORD) == 0
        assert store.row_count(Table.PAYMENT_ENTRY) == 0

    @pytest.mark.asyncio
    async def test_delete_where(self, store):
        for customer_id, day in (("c1", 1), ("c1", 2), ("c2", 1)):
            record = _record(customer_id, day)
            await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())

        removed = await store.delete_where(Table.DELIVERY_RECORD, {"customer_id": "c1"})

        assert removed == 2
        assert store.row_count(Table.DELIVERY_RECORD) == 1


class TestSubscriptions:
    """Tests for the change stream."""

    @pytest.mark.asyncio
    async def test_events_in_commit_order(self, store):
        subscription = store.subscribe()
        record = _record("c1", 1)

        await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())
        await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())
        await store.delete(Table.DELIVERY_RECORD, record.key)

        events = await _drain(subscription)
        assert [e.op for e in events] == [ChangeOp.INSERT, ChangeOp.UPDATE, ChangeOp.DELETE]
        assert all(e.key == record.key for e in events)
        assert events[1].old_row == record.to_row()

    @pytest.mark.asyncio
    async def test_cascade_emits_child_deletes(self, store, customer):
        await store.save_customer(customer)
        record = _record(customer.id, 1)
        await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())
        subscription = store.subscribe()

        await store.delete(Table.CUSTOMER, customer.key)

        events = await _drain(subscription)
        assert [(e.op, e.table) for e in events] == [
            (ChangeOp.DELETE, Table.CUSTOMER),
            (ChangeOp.DELETE, Table.DELIVERY_RECORD),
        ]

    @pytest.mark.asyncio
    async def test_table_and_predicate_filters(self, store, customer):
        subscription = store.subscribe(
            tables=[Table.DELIVERY_RECORD],
            predicate=lambda event: event.row.get("status") == "holiday",
        )

        await store.save_customer(customer)
        for day, status in ((1, DeliveryStatus.DELIVERED), (2, DeliveryStatus.HOLIDAY)):
            record = _record(customer.id, day, status)
            await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())

        events = await _drain(subscription)
        assert len(events) == 1
        assert events[0].row["delivery_date"] == "2025-06-02"

    @pytest.mark.asyncio
    async def test_closed_subscription_receives_nothing(self, store):
        subscription = store.subscribe()
        subscription.close()
        record = _record("c1", 1)

        await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())

        assert [event async for event in subscription] == []

    @pytest.mark.asyncio
    async def test_store_close_ends_streams(self, store):
        subscription = store.subscribe()
        record = _record("c1", 1)
        await store.upsert(Table.DELIVERY_RECORD, record.key, record.to_row())

        async with store:
            pass

        assert len([event async for event in subscription]) == 1
