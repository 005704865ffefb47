from pydantic import BaseModel, Field, ConfigDict
from decimal import Decimal
from datetime import date, datetime
from typing import List, Optional
from enum import Enum


class SourceTypeEnum(str, Enum):
    VISIT = "visit"
    CASH = "cash"


class PaymentMethodEnum(str, Enum):
    CASH = "cash"
    BANK = "bank"
    CHEQUE = "cheque"
    ONLINE = "online"
    UPI = "upi"


class LedgerEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    entry_date: date
    source_type: SourceTypeEnum
    source_id: Optional[int] = None
    description: Optional[str] = None
    debit: Decimal = Decimal("0.00")
    credit: Decimal = Decimal("0.00")
    invoice_number: str
    created_at: datetime


class LedgerEntryWithBalance(LedgerEntryResponse):
    running_balance: Decimal = Field(..., description="Cumulative debit - credit up to and including this entry")


class AccountLedgerResponse(BaseModel):
    doctor_id: int
    doctor_name: str
    balance: Decimal
    entries: List[LedgerEntryWithBalance]


class PaymentCreate(BaseModel):
    doctor_id: int
    amount: Decimal = Field(..., gt=0, description="Amount received")
    entry_date: date
    payment_method: PaymentMethodEnum = PaymentMethodEnum.CASH
    description: Optional[str] = Field(None, max_length=500)


class AdjustmentCreate(BaseModel):
    doctor_id: int
    amount: Decimal = Field(..., gt=0, description="Adjustment amount")
    entry_date: date
    reason: str = Field(..., min_length=1, max_length=300)
    is_debit: bool = Field(True, description="True debits the account, False credits it")


class TrialBalanceRow(BaseModel):
    doctor_id: int
    name: str
    contact_type: Optional[str] = None
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")
    balance: Decimal = Decimal("0.00")


class InvoiceNumberResponse(BaseModel):
    invoice_number: str
