"""Change notification types emitted by the store on every mutation.

A single tagged event type covers every table; consumers dispatch on
``event.table`` and ``event.op``.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from delivery_ledger.models import Key, Table, row_key


class ChangeOp(str, Enum):
    """Kind of mutation carried by a change event."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """One committed mutation of a store row.

    ``row`` holds the new row for inserts and updates. Deletes carry the
    removed row in ``old_row`` (hosted tables use full replica identity,
    so the old row includes the key columns).
    """

    op: ChangeOp
    table: Table
    row: dict[str, Any] = field(default_factory=dict)
    old_row: dict[str, Any] = field(default_factory=dict)
    committed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> Key:
        """Natural key of the affected row."""
        source = self.old_row if self.op == ChangeOp.DELETE else self.row
        return row_key(self.table, source or self.row or self.old_row)

    def to_dict(self) -> dict[str, Any]:
        """Serialize event to dictionary for logging or JSON transmission."""
        return {
            "op": self.op.value,
            "table": self.table.value,
            "key": list(self.key),
            "row": self.row,
            "old_row": self.old_row,
            "committed_at": self.committed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChangeEvent":
        """Build an event from a serialized notification.

        Accepts both this module's ``to_dict`` shape and the realtime
        ``postgres_changes`` payload shape (``type``/``record``/``old_record``).
        """
        op_value = str(data.get("op") or data.get("type") or data.get("eventType", ""))
        committed = data.get("committed_at") or data.get("commit_timestamp")
        return cls(
            op=ChangeOp(op_value.lower()),
            table=Table(data["table"]),
            row=dict(data.get("row") or data.get("record") or data.get("new") or {}),
            old_row=dict(data.get("old_row") or data.get("old_record") or data.get("old") or {}),
            committed_at=(
                datetime.fromisoformat(str(committed).replace("Z", "+00:00"))
                if committed
                else datetime.now(UTC)
            ),
        )


# Factory functions for creating events


def row_inserted(table: Table, row: dict[str, Any]) -> ChangeEvent:
    """Create an insert event."""
    return ChangeEvent(op=ChangeOp.INSERT, table=table, row=dict(row))


def row_updated(
    table: Table, row: dict[str, Any], old_row: dict[str, Any] | None = None
) -> ChangeEvent:
    """Create an update event."""
    return ChangeEvent(op=ChangeOp.UPDATE, table=table, row=dict(row), old_row=dict(old_row or {}))


def row_deleted(table: Table, old_row: dict[str, Any]) -> ChangeEvent:
    """Create a delete event."""
    return ChangeEvent(op=ChangeOp.DELETE, table=table, old_row=dict(old_row))
