from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
import logging

from database import get_db
from dependencies import get_current_user
from models.user import User
from schemas.reports import SalesReportResponse
from services import reports
from services.errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=SalesReportResponse)
def get_sales(
    start_date: Optional[date] = Query(None, description="Visits on or after this date"),
    end_date: Optional[date] = Query(None, description="Visits on or before this date"),
    doctor_id: Optional[int] = Query(None),
    product_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Sales register built from visit sale lines"""
    try:
        return reports.sales_report(db, start_date, end_date, doctor_id, product_id, skip, limit)
    except LedgerError as e:
        logger.error(f"Error building sales report: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
