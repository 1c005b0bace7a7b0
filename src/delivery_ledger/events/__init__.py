"""Change notification events for the delivery ledger."""

from delivery_ledger.events.types import (
    ChangeEvent,
    ChangeOp,
    row_deleted,
    row_inserted,
    row_updated,
)

__all__ = [
    "ChangeEvent",
    "ChangeOp",
    "row_inserted",
    "row_updated",
    "row_deleted",
]
