from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from dependencies import get_current_user
from models.user import User
from models.doctors import Doctor
from models.ledger_entry import LedgerEntry
from models.visits import Visit
from schemas.doctors import DoctorCreate, DoctorUpdate, DoctorResponse, ContactTypeEnum
from schemas.ledger_entry import AccountLedgerResponse
from services.account_ledger import account_balance, calculate_running_balance, fetch_ledger_entries
from services.errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_doctor_or_404(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return doctor


@router.post("/", response_model=DoctorResponse, status_code=201)
def create_doctor(
    doctor: DoctorCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Register a doctor or chemist"""
    db_doctor = Doctor(**doctor.model_dump(mode="json"))
    db.add(db_doctor)
    db.commit()
    db.refresh(db_doctor)

    logger.info(f"{db_doctor.contact_type.title()} {db_doctor.name} created with ID {db_doctor.id}")
    return db_doctor


@router.get("/", response_model=List[DoctorResponse])
def get_doctors(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    contact_type: Optional[ContactTypeEnum] = Query(None, description="Filter by doctor or chemist"),
    doctor_class: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search by name, hospital or specialization"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List doctors and chemists with filters"""
    query = db.query(Doctor)

    if contact_type:
        query = query.filter(Doctor.contact_type == contact_type.value)
    if doctor_class:
        query = query.filter(Doctor.doctor_class == doctor_class)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Doctor.name.ilike(pattern),
            Doctor.hospital.ilike(pattern),
            Doctor.specialization.ilike(pattern)
        ))

    return query.order_by(Doctor.name.asc()).offset(skip).limit(limit).all()


@router.get("/{doctor_id}", response_model=DoctorResponse)
def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_doctor_or_404(db, doctor_id)


@router.put("/{doctor_id}", response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    doctor_update: DoctorUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    db_doctor = _get_doctor_or_404(db, doctor_id)

    for field, value in doctor_update.model_dump(exclude_unset=True, mode="json").items():
        setattr(db_doctor, field, value)

    db.commit()
    db.refresh(db_doctor)
    return db_doctor


@router.delete("/{doctor_id}")
def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a doctor with no visits and no ledger history"""
    db_doctor = _get_doctor_or_404(db, doctor_id)

    has_visits = db.query(Visit.id).filter(Visit.doctor_id == doctor_id).first()
    has_entries = db.query(LedgerEntry.id).filter(LedgerEntry.doctor_id == doctor_id).first()
    if has_visits or has_entries:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete a doctor with visits or ledger entries"
        )

    db.delete(db_doctor)
    db.commit()

    logger.info(f"Doctor {doctor_id} deleted")
    return {"message": "Doctor deleted successfully"}


@router.get("/{doctor_id}/ledger", response_model=AccountLedgerResponse)
def get_doctor_ledger(
    doctor_id: int,
    start_date: Optional[date] = Query(None, description="Show entries from this date"),
    end_date: Optional[date] = Query(None, description="Show entries up to this date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Account statement with running balance.

    The running balance is computed over the account's full history and the
    date window is applied afterwards, so the first shown row carries the
    balance brought forward.
    """
    doctor = _get_doctor_or_404(db, doctor_id)

    try:
        entries = calculate_running_balance(fetch_ledger_entries(db, account_id=doctor_id), doctor_id)
        balance = account_balance(db, doctor_id)
    except LedgerError as e:
        logger.error(f"Error building ledger for doctor {doctor_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if start_date:
        entries = [entry for entry in entries if entry["entry_date"] >= start_date]
    if end_date:
        entries = [entry for entry in entries if entry["entry_date"] <= end_date]

    return {
        "doctor_id": doctor.id,
        "doctor_name": doctor.name,
        "balance": balance,
        "entries": entries
    }
