"""Store adapters for the delivery ledger."""

from delivery_ledger.store.base import LedgerStore
from delivery_ledger.store.memory import InMemoryLedgerStore, Subscription
from delivery_ledger.store.realtime import RealtimeChangeFeed
from delivery_ledger.store.rest import RestLedgerStore

__all__ = [
    "LedgerStore",
    "InMemoryLedgerStore",
    "Subscription",
    "RestLedgerStore",
    "RealtimeChangeFeed",
]
