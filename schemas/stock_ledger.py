from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from models.stock_ledger import TransactionType


class StockTransactionBase(BaseModel):
    product_id: int = Field(..., description="Product reference")
    transaction_type: TransactionType = Field(..., description="Type of stock movement")
    quantity: int = Field(..., description="Signed quantity: positive raises stock, negative lowers it")
    transaction_date: date = Field(..., description="Date the movement is attributed to")
    reference_type: Optional[str] = Field(None, max_length=50, description="Originating action")
    reference_id: Optional[int] = Field(None, description="Originating record ID")
    notes: Optional[str] = None


class StockTransactionResponse(StockTransactionBase):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Unique transaction ID")
    created_at: datetime = Field(..., description="Record creation timestamp")


class StockSummary(BaseModel):
    """Point-in-time stock derived by replaying the transaction log"""
    opening_stock: int = Field(0, description="Opening and positive adjustment quantities")
    purchases: int = Field(0, description="Purchased quantity")
    sales: int = Field(0, description="Sold quantity net of reversals and negative adjustments")
    closing_stock: int = Field(0, description="opening + purchases - sales, floored at zero")


class StockSummaryResponse(StockSummary):
    product_id: int
    as_of_date: date


class StockAddRequest(BaseModel):
    quantity: int = Field(..., gt=0, description="Units received")
    notes: Optional[str] = Field(None, max_length=500)


class StockEditRequest(BaseModel):
    new_quantity: int = Field(..., ge=0, description="Physical count to set the stock to")
    notes: Optional[str] = Field(None, max_length=500)


class StockChangeResponse(BaseModel):
    product_id: int
    current_stock: int
    changed: bool = True


class InventoryReportRow(BaseModel):
    product_id: int
    product_name: str
    company_name: Optional[str] = None
    price: Decimal = Decimal("0.00")
    opening_stock: int = 0
    purchases: int = 0
    sales: int = 0
    adjustments: int = 0
    closing_stock: int = 0
    stock_value: Decimal = Decimal("0.00")


class InventoryReportTotals(BaseModel):
    total_products: int = 0
    total_purchases: int = 0
    total_sales: int = 0
    total_stock_value: Decimal = Decimal("0.00")


class InventoryReportResponse(BaseModel):
    start_date: date
    end_date: date
    rows: List[InventoryReportRow]
    totals: InventoryReportTotals


class StockDivergence(BaseModel):
    product_id: int
    product_name: str
    cached_stock: int
    replayed_stock: int


class StockResyncResponse(BaseModel):
    checked: int
    corrected: List[StockDivergence]
