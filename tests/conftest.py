"""Pytest configuration and fixtures."""

import os
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("LEDGER_STORE_KEY", "test-service-key")
os.environ.setdefault("LEDGER_STORE_URL", "http://localhost:54321")

from delivery_ledger.ledger import DeliveryLedger  # noqa: E402
from delivery_ledger.models import (  # noqa: E402
    Customer,
    DeliveryRecord,
    DeliveryStatus,
)
from delivery_ledger.store.memory import InMemoryLedgerStore  # noqa: E402


@pytest.fixture
def store():
    """Empty in-memory ledger store."""
    return InMemoryLedgerStore()


@pytest.fixture
def ledger(store):
    """Ledger facade over the in-memory store at 100 per liter."""
    return DeliveryLedger(store, price_per_liter=Decimal("100"))


@pytest.fixture
def customer():
    """Customer with a default of 2 liters per day."""
    return Customer(
        id="11111111-1111-1111-1111-111111111111",
        name="Asha Verma",
        address="12 Lake Road",
        quantity=Decimal("2"),
        contact_number="9800000001",
    )


@pytest.fixture
def second_customer():
    return Customer(
        id="22222222-2222-2222-2222-222222222222",
        name="Ravi Kumar",
        address="4 Hill Street",
        quantity=Decimal("1.5"),
    )


@pytest.fixture
def make_record():
    """Factory for delivery records."""

    def _make(
        customer_id: str,
        delivery_date: date,
        status: DeliveryStatus = DeliveryStatus.DELIVERED,
        quantity: str = "0",
        **kwargs,
    ) -> DeliveryRecord:
        return DeliveryRecord(
            customer_id=customer_id,
            delivery_date=delivery_date,
            status=status,
            quantity_delivered=Decimal(quantity),
            **kwargs,
        )

    return _make


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def delivery_row():
    """Delivery record row as returned by the hosted REST API."""
    return {
        "id": "33333333-3333-3333-3333-333333333333",
        "customer_id": "11111111-1111-1111-1111-111111111111",
        "delivery_date": "2025-06-15",
        "status": "delivered",
        "quantity_delivered": 2,
        "delivery_time": "07:15",
        "photo_url": "delivery-photos/2025-06-15/asha.jpg",
        "notes": "Delivered 2 liter(s)",
        "delivered_by": "Delivery Person",
        "created_at": "2025-06-15T07:15:03.123456+00:00",
        "updated_at": "2025-06-15T07:15:03.123456+00:00",
    }
