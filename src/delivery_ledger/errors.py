"""Exception hierarchy for the delivery ledger core.

Absence is never an error here: lookups of a customer, record or payment
entry that does not exist return ``None`` or an empty list.
"""

from typing import Any


class LedgerError(Exception):
    """Base exception for ledger errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class ValidationError(LedgerError):
    """Input rejected before any store call was made."""

    pass


class StoreError(LedgerError):
    """The backing store rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.status_code = status_code


class LedgerWriteFailed(StoreError):
    """An upsert, insert or delete did not complete. Callers decide on retries."""

    pass


class LedgerReadFailed(LedgerWriteFailed):
    """A read failed while reconstructing or billing a period."""

    pass
