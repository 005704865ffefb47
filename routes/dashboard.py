from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from dependencies import get_current_user
from models.user import User
from schemas.reports import DashboardSummary
from services import reports
from services.errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/summary", response_model=DashboardSummary)
def get_dashboard_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Counts, the five latest visits, the ten latest sales and the top five accounts by sales"""
    try:
        return reports.dashboard_summary(db)
    except LedgerError as e:
        logger.error(f"Error building dashboard summary: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
