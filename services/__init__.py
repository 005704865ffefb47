from .errors import (
    LedgerError, ValidationFailed, NotFound, DuplicateInvoiceNumber, FetchFailed, BalanceComputationFailed
)

__all__ = [
    "LedgerError", "ValidationFailed", "NotFound", "DuplicateInvoiceNumber", "FetchFailed",
    "BalanceComputationFailed",
]
