from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from decimal import Decimal
import logging

from database import get_db
from dependencies import get_current_user
from models.user import User
from models.cash_flow import CashFlow, CashType
from schemas.cash_flow import (
    CashFlowCreate, CashFlowUpdate, CashFlowResponse, CashFlowSummary,
    CashTypeEnum, CashFlowTypeEnum, CashPurposeEnum
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _filtered_query(
    db: Session,
    start_date: Optional[date],
    end_date: Optional[date],
    cash_type: Optional[CashTypeEnum],
    flow_type: Optional[CashFlowTypeEnum],
    purpose: Optional[CashPurposeEnum]
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="End date cannot be before start date")

    query = db.query(CashFlow)
    if start_date:
        query = query.filter(CashFlow.transaction_date >= start_date)
    if end_date:
        query = query.filter(CashFlow.transaction_date <= end_date)
    if cash_type:
        query = query.filter(CashFlow.cash_type == cash_type.value)
    if flow_type:
        query = query.filter(CashFlow.type == flow_type.value)
    if purpose:
        query = query.filter(CashFlow.purpose == purpose.value)
    return query


@router.get("/summary", response_model=CashFlowSummary)
def get_cash_flow_summary(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    cash_type: Optional[CashTypeEnum] = Query(None),
    type: Optional[CashFlowTypeEnum] = Query(None),
    purpose: Optional[CashPurposeEnum] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Totals of money in, money out and the net flow for the filtered period"""
    query = _filtered_query(db, start_date, end_date, cash_type, type, purpose)
    totals = dict(
        query.with_entities(CashFlow.cash_type, func.coalesce(func.sum(CashFlow.amount), 0))
        .group_by(CashFlow.cash_type).all()
    )

    total_in = Decimal(str(totals.get(CashType.IN_FLOW, 0)))
    total_out = Decimal(str(totals.get(CashType.OUT_FLOW, 0)))

    return CashFlowSummary(
        total_in_flow=total_in,
        total_out_flow=total_out,
        net_flow=total_in - total_out,
        entry_count=query.count()
    )


@router.post("/", response_model=CashFlowResponse, status_code=201)
def create_cash_flow(
    record: CashFlowCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    db_record = CashFlow(**record.model_dump(mode="json", exclude={"amount", "transaction_date"}))
    db_record.amount = record.amount
    db_record.transaction_date = record.transaction_date

    db.add(db_record)
    db.commit()
    db.refresh(db_record)

    logger.info(f"Cash {db_record.cash_type} of {db_record.amount} recorded for {db_record.name}")
    return db_record


@router.get("/", response_model=List[CashFlowResponse])
def get_cash_flows(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    cash_type: Optional[CashTypeEnum] = Query(None),
    type: Optional[CashFlowTypeEnum] = Query(None),
    purpose: Optional[CashPurposeEnum] = Query(None),
    search: Optional[str] = Query(None, description="Search by name or notes"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = _filtered_query(db, start_date, end_date, cash_type, type, purpose)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(CashFlow.name.ilike(pattern), CashFlow.notes.ilike(pattern)))

    return query.order_by(
        CashFlow.transaction_date.desc(), CashFlow.id.desc()
    ).offset(skip).limit(limit).all()


@router.get("/{record_id}", response_model=CashFlowResponse)
def get_cash_flow(
    record_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    record = db.query(CashFlow).filter(CashFlow.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Cash flow record not found")
    return record


@router.put("/{record_id}", response_model=CashFlowResponse)
def update_cash_flow(
    record_id: int,
    record_update: CashFlowUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    record = db.query(CashFlow).filter(CashFlow.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Cash flow record not found")

    for field, value in record_update.model_dump(exclude_unset=True).items():
        setattr(record, field, value.value if hasattr(value, "value") else value)

    db.commit()
    db.refresh(record)
    return record


@router.delete("/{record_id}")
def delete_cash_flow(
    record_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    record = db.query(CashFlow).filter(CashFlow.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Cash flow record not found")

    db.delete(record)
    db.commit()

    logger.info(f"Cash flow record {record_id} deleted")
    return {"message": "Cash flow record deleted successfully"}
