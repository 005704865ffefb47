from .user import UserCreate, UserUpdate, UserStatusUpdate, UserResponse, RepActivity, UserLogin, Token
from .doctors import DoctorCreate, DoctorUpdate, DoctorResponse, ContactTypeEnum
from .products import ProductCreate, ProductUpdate, ProductResponse
from .stock_ledger import (
    StockTransactionResponse, StockSummary, StockSummaryResponse, StockAddRequest, StockEditRequest,
    StockChangeResponse, InventoryReportRow, InventoryReportTotals, InventoryReportResponse,
    StockDivergence, StockResyncResponse
)
from .visits import VisitCreate, VisitUpdate, VisitResponse, VisitSaleCreate, VisitSaleResponse, VisitStatusEnum
from .ledger_entry import (
    LedgerEntryResponse, LedgerEntryWithBalance, AccountLedgerResponse, PaymentCreate, AdjustmentCreate,
    TrialBalanceRow, InvoiceNumberResponse, SourceTypeEnum, PaymentMethodEnum
)
from .cash_flow import (
    CashFlowCreate, CashFlowUpdate, CashFlowResponse, CashFlowSummary,
    CashTypeEnum, CashFlowTypeEnum, CashPurposeEnum
)
from .reports import (
    SalesLineRow, CompanySales, DoctorSales, SalesReportResponse,
    DashboardCounts, RecentVisit, RecentSale, DashboardSummary
)

__all__ = [
    "UserCreate", "UserUpdate", "UserStatusUpdate", "UserResponse", "RepActivity", "UserLogin", "Token",
    "DoctorCreate", "DoctorUpdate", "DoctorResponse", "ContactTypeEnum",
    "ProductCreate", "ProductUpdate", "ProductResponse",
    "StockTransactionResponse", "StockSummary", "StockSummaryResponse", "StockAddRequest", "StockEditRequest",
    "StockChangeResponse", "InventoryReportRow", "InventoryReportTotals", "InventoryReportResponse",
    "StockDivergence", "StockResyncResponse",
    "VisitCreate", "VisitUpdate", "VisitResponse", "VisitSaleCreate", "VisitSaleResponse", "VisitStatusEnum",
    "LedgerEntryResponse", "LedgerEntryWithBalance", "AccountLedgerResponse", "PaymentCreate", "AdjustmentCreate",
    "TrialBalanceRow", "InvoiceNumberResponse", "SourceTypeEnum", "PaymentMethodEnum",
    "CashFlowCreate", "CashFlowUpdate", "CashFlowResponse", "CashFlowSummary",
    "CashTypeEnum", "CashFlowTypeEnum", "CashPurposeEnum",
    "SalesLineRow", "CompanySales", "DoctorSales", "SalesReportResponse",
    "DashboardCounts", "RecentVisit", "RecentSale", "DashboardSummary",
]
