"""Domain errors raised by the reconciliation services.

Routers translate these into ``ActionResponse`` envelopes, so every error
carries a stable ``code`` and a human-readable ``message``.
"""

from typing import Optional


class LedgerError(Exception):
    code = "LEDGER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RecordValidationError(LedgerError):
    """A single candidate record is malformed. Collected as a warning, never fatal."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, record_key: Optional[str] = None) -> None:
        super().__init__(message)
        self.record_key = record_key


class NotFoundError(LedgerError):
    code = "NOT_FOUND"


class BatchLockedError(LedgerError):
    code = "BATCH_LOCKED"

    def __init__(self, message: str, batch_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.batch_name = batch_name


class InvalidTransitionError(LedgerError):
    code = "INVALID_TRANSITION"


class DuplicateFileError(LedgerError):
    code = "DUPLICATE_FILE"

    def __init__(self, message: str, batch_name: Optional[str] = None, batch_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.batch_name = batch_name
        self.batch_id = batch_id


class EmptyInvoiceError(LedgerError):
    code = "EMPTY_INVOICE"


class EmptyTripSetError(LedgerError):
    code = "EMPTY_TRIP_SET"
