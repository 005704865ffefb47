from typing import Optional


class LedgerError(Exception):
    """Base error raised by the ledger services; carries the HTTP status to report."""

    status_code = 400

    def __init__(self, msg: str, status_code: Optional[int] = None, extra: Optional[dict] = None):
        super().__init__(msg)
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class ValidationFailed(LedgerError):
    status_code = 400


class NotFound(LedgerError):
    status_code = 404


class DuplicateInvoiceNumber(LedgerError):
    status_code = 409


class FetchFailed(LedgerError):
    """The store could not be read; callers must not treat this as empty data."""
    status_code = 503


class BalanceComputationFailed(LedgerError):
    status_code = 500
