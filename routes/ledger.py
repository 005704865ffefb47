from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from dependencies import get_current_user
from models.user import User
from schemas.ledger_entry import (
    LedgerEntryResponse, LedgerEntryWithBalance, PaymentCreate, AdjustmentCreate,
    TrialBalanceRow, InvoiceNumberResponse, SourceTypeEnum
)
from services import account_ledger
from services.errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[LedgerEntryWithBalance])
def get_ledger_entries(
    doctor_id: Optional[int] = Query(None, description="Restrict to one account"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    source_type: Optional[SourceTypeEnum] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Ledger entries in chronological order.

    Running balances are per account and always computed over the account's
    full history before the filters are applied.
    """
    try:
        entries = account_ledger.fetch_ledger_entries(db, account_id=doctor_id)
    except LedgerError as e:
        logger.error(f"Error fetching ledger entries: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    by_account = {}
    for entry in entries:
        by_account.setdefault(entry.doctor_id, []).append(entry)

    rows = []
    for account_id, account_entries in by_account.items():
        rows.extend(account_ledger.calculate_running_balance(account_entries, account_id))

    if start_date:
        rows = [row for row in rows if row["entry_date"] >= start_date]
    if end_date:
        rows = [row for row in rows if row["entry_date"] <= end_date]
    if source_type:
        rows = [row for row in rows if row["source_type"] == source_type.value]

    rows.sort(key=lambda row: (row["entry_date"], row["created_at"], row["id"]))
    return rows


@router.get("/trial-balance", response_model=List[TrialBalanceRow])
def get_trial_balance(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Debit, credit and balance totals for every doctor and chemist"""
    try:
        return account_ledger.trial_balance(db)
    except LedgerError as e:
        logger.error(f"Error building trial balance: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/next-invoice-number", response_model=InvoiceNumberResponse)
def get_next_invoice_number(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Preview the number the next entry would receive; nothing is reserved"""
    return {"invoice_number": account_ledger.generate_invoice_number(db)}


@router.post("/payments", response_model=LedgerEntryResponse, status_code=201)
def record_payment(
    payment: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record money received from a doctor or chemist"""
    try:
        entry = account_ledger.create_payment_entry(
            db,
            payment.doctor_id,
            payment.amount,
            payment.entry_date,
            method=payment.payment_method.value,
            description=payment.description or ""
        )
        db.commit()
        db.refresh(entry)
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error recording payment for doctor {payment.doctor_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error recording payment for doctor {payment.doctor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to record payment")

    return entry


@router.post("/adjustments", response_model=LedgerEntryResponse, status_code=201)
def record_adjustment(
    adjustment: AdjustmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Manual debit or credit correction on an account"""
    try:
        entry = account_ledger.create_adjustment_entry(
            db,
            adjustment.doctor_id,
            adjustment.amount,
            adjustment.entry_date,
            adjustment.reason,
            is_debit=adjustment.is_debit
        )
        db.commit()
        db.refresh(entry)
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error recording adjustment for doctor {adjustment.doctor_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error recording adjustment for doctor {adjustment.doctor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to record adjustment")

    return entry
