from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from dependencies import get_current_user
from models.user import User
from schemas.visits import VisitCreate, VisitUpdate, VisitResponse
from services import visits as visit_service
from services.errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=VisitResponse, status_code=201)
def create_visit(
    visit: VisitCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record a visit; sale lines are posted to the stock log and the doctor's account"""
    try:
        db_visit = visit_service.create_visit(db, visit, rep_id=current_user.id)
        db.commit()
        db.refresh(db_visit)
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error creating visit for doctor {visit.doctor_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error creating visit for doctor {visit.doctor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create visit")

    return db_visit


@router.get("/", response_model=List[VisitResponse])
def get_visits(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    doctor_id: Optional[int] = Query(None),
    rep_id: Optional[int] = Query(None, description="Visits recorded by one rep"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return visit_service.list_visits(db, doctor_id, start_date, end_date, skip, limit, rep_id=rep_id)


@router.get("/{visit_id}", response_model=VisitResponse)
def get_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    try:
        return visit_service.get_visit(db, visit_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/{visit_id}", response_model=VisitResponse)
def update_visit(
    visit_id: int,
    visit_update: VisitUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Edit a visit; changed sales are reversed and re-posted rather than overwritten"""
    try:
        db_visit = visit_service.edit_visit(db, visit_id, visit_update)
        db.commit()
        db.refresh(db_visit)
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error editing visit {visit_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error editing visit {visit_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update visit")

    return db_visit


@router.delete("/{visit_id}")
def delete_visit(
    visit_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    try:
        visit_service.delete_visit(db, visit_id)
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error deleting visit {visit_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error deleting visit {visit_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete visit")

    return {"message": "Visit deleted successfully"}
