from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from decimal import Decimal


class SalesLineRow(BaseModel):
    sale_id: int
    visit_id: int
    visit_date: date
    doctor_id: int
    doctor_name: str
    product_id: int
    product_name: str
    company_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_amount: Decimal


class CompanySales(BaseModel):
    company: str
    amount: Decimal


class DoctorSales(BaseModel):
    doctor_id: int
    doctor_name: str
    amount: Decimal


class SalesReportResponse(BaseModel):
    """Sale lines for one page, totals over every line matching the filters"""
    lines: List[SalesLineRow]
    total_count: int = Field(..., description="Matching sale lines across all pages")
    total_revenue: Decimal
    total_items: int
    by_company: List[CompanySales]
    top_doctors: List[DoctorSales]


class DashboardCounts(BaseModel):
    total_doctors: int
    total_visits: int
    total_sales: int = Field(..., description="Number of sale lines")
    total_products: int


class RecentVisit(BaseModel):
    visit_id: int
    visit_date: date
    doctor_id: int
    doctor_name: str
    status: str
    total_amount: Decimal


class RecentSale(BaseModel):
    visit_date: date
    product_name: str
    amount: Decimal


class DashboardSummary(BaseModel):
    counts: DashboardCounts
    recent_visits: List[RecentVisit]
    recent_sales: List[RecentSale]
    top_doctors: List[DoctorSales]
