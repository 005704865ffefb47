from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    company_name: Optional[str] = Field(None, max_length=200, description="Manufacturer")
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Decimal = Field(Decimal("0.00"), ge=0, description="Unit price")


class ProductCreate(ProductBase):
    opening_stock: int = Field(0, ge=0, description="Units on hand when the product is registered")


class ProductUpdate(BaseModel):
    # no current_stock: stock changes only through the stock ledger
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    company_name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0)


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    current_stock: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
