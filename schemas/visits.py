from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class VisitStatusEnum(str, Enum):
    COMPLETED = "completed"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class VisitSaleCreate(BaseModel):
    product_id: int = Field(..., description="Product sold")
    quantity: int = Field(..., gt=0, description="Units sold")
    unit_price: Decimal = Field(..., ge=0, description="Price per unit")


class VisitSaleResponse(VisitSaleCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    visit_id: int
    total_amount: Decimal


class VisitCreate(BaseModel):
    doctor_id: int = Field(..., description="Doctor or chemist visited")
    visit_date: date
    notes: Optional[str] = None
    status: VisitStatusEnum = VisitStatusEnum.COMPLETED
    sales: List[VisitSaleCreate] = Field(default_factory=list)


class VisitUpdate(BaseModel):
    doctor_id: Optional[int] = None
    visit_date: Optional[date] = None
    notes: Optional[str] = None
    status: Optional[VisitStatusEnum] = None
    # None keeps the current lines; an empty list removes them all
    sales: Optional[List[VisitSaleCreate]] = None


class VisitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    rep_id: Optional[int] = None
    visit_date: date
    notes: Optional[str] = None
    status: VisitStatusEnum
    total_amount: Decimal = Decimal("0.00")
    sales: List[VisitSaleResponse] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
