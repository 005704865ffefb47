from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class CashTypeEnum(str, Enum):
    IN_FLOW = "in_flow"
    OUT_FLOW = "out_flow"


class CashFlowTypeEnum(str, Enum):
    SUNDRY = "sundry"
    PERSON = "person"


class CashPurposeEnum(str, Enum):
    EXPENSE = "expense"
    GIFT = "gift"
    PAYMENT = "payment"
    ADVANCE = "advance"
    DEBT_RECOVERY = "debt_recovery"


class CashFlowBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Payee, payer or expense head")
    cash_type: CashTypeEnum = Field(CashTypeEnum.OUT_FLOW, description="Direction of the money")
    type: CashFlowTypeEnum = Field(CashFlowTypeEnum.SUNDRY)
    purpose: Optional[CashPurposeEnum] = None
    amount: Decimal = Field(..., gt=0)
    transaction_date: date
    notes: Optional[str] = None


class CashFlowCreate(CashFlowBase):
    pass


class CashFlowUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    cash_type: Optional[CashTypeEnum] = None
    type: Optional[CashFlowTypeEnum] = None
    purpose: Optional[CashPurposeEnum] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    transaction_date: Optional[date] = None
    notes: Optional[str] = None


class CashFlowResponse(CashFlowBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class CashFlowSummary(BaseModel):
    total_in_flow: Decimal = Decimal("0.00")
    total_out_flow: Decimal = Decimal("0.00")
    net_flow: Decimal = Decimal("0.00")
    entry_count: int = 0
