from .user import User, UserRole, UserStatus
from .doctors import Doctor, ContactType
from .products import Product
from .stock_ledger import StockTransaction, TransactionType
from .visits import Visit, VisitSale, VisitStatus
from .ledger_entry import LedgerEntry, SourceType
from .cash_flow import CashFlow, CashType, CashFlowType, CashPurpose

__all__ = [
    "User", "UserRole", "UserStatus", "Doctor", "ContactType", "Product",
    "StockTransaction", "TransactionType", "Visit", "VisitSale", "VisitStatus",
    "LedgerEntry", "SourceType", "CashFlow", "CashType", "CashFlowType", "CashPurpose"
]
