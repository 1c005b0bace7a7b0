"""Delivery ledger - calendar reconstruction, attendance, billing and payment reconciliation."""

__version__ = "0.1.0"

from delivery_ledger.attendance import AttendanceSummary, as_of_day_for, summarize_attendance
from delivery_ledger.billing import MonthlyBill, amount_due, monthly_bill
from delivery_ledger.config import configure_logging, get_settings
from delivery_ledger.errors import (
    LedgerError,
    LedgerReadFailed,
    LedgerWriteFailed,
    StoreError,
    ValidationError,
)
from delivery_ledger.events import ChangeEvent, ChangeOp
from delivery_ledger.ledger import DailyReport, DeliveryLedger
from delivery_ledger.models import (
    Customer,
    DeliveryRecord,
    DeliveryStatus,
    PaymentLedgerEntry,
    PaymentStatus,
    Table,
)
from delivery_ledger.month_view import DaySlot, days_in_month, reconstruct_month
from delivery_ledger.projection import ProjectionApplier, ProjectionSnapshot
from delivery_ledger.reconciler import (
    PaymentReconciler,
    ReconcileOutcome,
    ReconcileResult,
    summarize_payments,
)
from delivery_ledger.store import InMemoryLedgerStore, LedgerStore, RestLedgerStore
from delivery_ledger.writer import LedgerWriter

__all__ = [
    # Version
    "__version__",
    # Models
    "Customer",
    "DeliveryRecord",
    "DeliveryStatus",
    "PaymentLedgerEntry",
    "PaymentStatus",
    "Table",
    "DaySlot",
    # Pure computations
    "days_in_month",
    "reconstruct_month",
    "AttendanceSummary",
    "as_of_day_for",
    "summarize_attendance",
    "MonthlyBill",
    "amount_due",
    "monthly_bill",
    "summarize_payments",
    # Writers & reconciliation
    "LedgerWriter",
    "PaymentReconciler",
    "ReconcileOutcome",
    "ReconcileResult",
    "DeliveryLedger",
    "DailyReport",
    # Stores & projection
    "LedgerStore",
    "InMemoryLedgerStore",
    "RestLedgerStore",
    "ChangeEvent",
    "ChangeOp",
    "ProjectionApplier",
    "ProjectionSnapshot",
    # Errors
    "LedgerError",
    "ValidationError",
    "StoreError",
    "LedgerWriteFailed",
    "LedgerReadFailed",
    # Config
    "get_settings",
    "configure_logging",
]
