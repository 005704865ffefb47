"""
Account ledger engine.

Every ledger entry carries an invoice number of the form INV-YYYY-MM-NNNN,
counted per calendar month. The invoice_number column is UNIQUE, and a
collision on insert is what triggers re-allocation.
"""
import logging
import random
import time
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import settings
from models.doctors import Doctor
from models.ledger_entry import LedgerEntry, SourceType
from services.errors import (
    BalanceComputationFailed, DuplicateInvoiceNumber, FetchFailed, LedgerError, NotFound, ValidationFailed
)
from utils.ordering import chronological_order, parse_day, sort_chronologically

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def invoice_prefix(day: date) -> str:
    return f"INV-{day.year}-{day.month:02d}"


def _fallback_invoice_number() -> str:
    return f"INV-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def generate_invoice_number(
    db: Session,
    today: Optional[date] = None,
    *,
    attempts: Optional[int] = None,
    backoff: Optional[float] = None
) -> str:
    """
    Next sequential invoice number for the current month.

    Lookup failures are retried with a linearly growing pause. Each lookup runs
    in its own savepoint so a failed SELECT does not abort the surrounding
    transaction. When every attempt fails the timestamp-based fallback is
    returned; it does not follow the INV-YYYY-MM-NNNN shape.
    """
    today = today or date.today()
    attempts = attempts or settings.INVOICE_ALLOCATION_ATTEMPTS
    backoff = settings.INVOICE_RETRY_BACKOFF_SECONDS if backoff is None else backoff
    prefix = invoice_prefix(today)

    # Pending entries must be visible to the lookup; flush errors belong to the caller
    db.flush()

    try:
        for attempt in range(1, attempts + 1):
            try:
                with db.begin_nested():
                    # Longer suffixes first, so -10000 ranks above -9999
                    last = db.query(LedgerEntry.invoice_number).filter(
                        LedgerEntry.invoice_number.like(f"{prefix}-%")
                    ).order_by(
                        desc(func.length(LedgerEntry.invoice_number)),
                        desc(LedgerEntry.invoice_number)
                    ).first()
            except SQLAlchemyError as e:
                logger.warning(f"Invoice number lookup failed (attempt {attempt}/{attempts}): {str(e)}")
                if attempt < attempts:
                    time.sleep(backoff * attempt)
                continue

            next_number = 1
            if last and last[0]:
                next_number = int(last[0].rsplit("-", 1)[-1]) + 1
            return f"{prefix}-{next_number:04d}"
    except Exception as e:
        logger.error(f"Error generating invoice number: {str(e)}")

    fallback = _fallback_invoice_number()
    logger.warning(f"Invoice numbering fell back to {fallback}")
    return fallback


def _require_account(db: Session, account_id: int) -> Doctor:
    account = db.query(Doctor).filter(Doctor.id == account_id).first()
    if not account:
        raise NotFound(f"Doctor with ID {account_id} not found")
    return account


def _positive_amount(amount: Any) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationFailed(f"Invalid amount: {amount}")
    if not value.is_finite() or value <= 0:
        raise ValidationFailed("Amount must be greater than zero")
    return value


def create_ledger_entry(
    db: Session,
    *,
    doctor_id: int,
    entry_date: date,
    source_type: str,
    debit: Decimal = ZERO,
    credit: Decimal = ZERO,
    source_id: Optional[int] = None,
    description: Union[str, Callable[[str], str], None] = None,
    today: Optional[date] = None
) -> LedgerEntry:
    """
    Allocate an invoice number and insert one entry inside a savepoint.

    description may be a callable taking the allocated invoice number. A
    UNIQUE violation on the number re-allocates; after the configured number
    of attempts DuplicateInvoiceNumber is raised.
    """
    attempts = settings.INVOICE_ALLOCATION_ATTEMPTS

    for attempt in range(1, attempts + 1):
        invoice_number = generate_invoice_number(db, today)
        entry = LedgerEntry(
            doctor_id=doctor_id,
            entry_date=entry_date,
            source_type=source_type,
            source_id=source_id,
            description=description(invoice_number) if callable(description) else description,
            debit=debit,
            credit=credit,
            invoice_number=invoice_number
        )
        try:
            with db.begin_nested():
                db.add(entry)
        except IntegrityError:
            taken = db.query(LedgerEntry.id).filter(LedgerEntry.invoice_number == invoice_number).first()
            if not taken:
                raise
            logger.warning(
                f"Invoice number {invoice_number} already allocated (attempt {attempt}/{attempts}), reallocating"
            )
            continue

        logger.info(
            f"Ledger entry {invoice_number} created for doctor {doctor_id}: debit {debit}, credit {credit}"
        )
        return entry

    raise DuplicateInvoiceNumber(f"Could not allocate a unique invoice number after {attempts} attempts")


def create_payment_entry(
    db: Session,
    account_id: int,
    amount: Any,
    entry_date: date,
    method: str = "cash",
    description: str = "",
    today: Optional[date] = None
) -> LedgerEntry:
    """Record money received from an account holder as a credit."""
    value = _positive_amount(amount)
    _require_account(db, account_id)

    return create_ledger_entry(
        db,
        doctor_id=account_id,
        entry_date=entry_date,
        source_type=SourceType.CASH,
        debit=ZERO,
        credit=value,
        description=description or (lambda number: f"Payment received via {method} (Receipt: {number})"),
        today=today
    )


def create_adjustment_entry(
    db: Session,
    account_id: int,
    amount: Any,
    entry_date: date,
    reason: str,
    is_debit: bool = True,
    today: Optional[date] = None
) -> LedgerEntry:
    value = _positive_amount(amount)
    _require_account(db, account_id)
    label = "Debit" if is_debit else "Credit"

    return create_ledger_entry(
        db,
        doctor_id=account_id,
        entry_date=entry_date,
        source_type=SourceType.CASH,
        debit=value if is_debit else ZERO,
        credit=ZERO if is_debit else value,
        description=lambda number: f"{label} adjustment: {reason} (Ref: {number})",
        today=today
    )


def _entry_fields(entry: Any) -> Dict[str, Any]:
    if isinstance(entry, Mapping):
        return dict(entry)
    return {column.key: getattr(entry, column.key) for column in entry.__table__.columns}


def _amount_or_none(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return ZERO
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def calculate_running_balance(
    entries: Iterable[Any],
    account_id: Any,
    *,
    degrade_on_error: bool = False
) -> List[Dict[str, Any]]:
    """
    Order one account's entries chronologically and attach running balances.

    Entries belonging to other accounts, without a parseable entry_date, or
    with a negative or unparseable debit/credit are dropped. The caller must
    pass the full candidate set: a balance computed over a filtered subset is
    a partial prefix sum.

    Raises BalanceComputationFailed on an internal failure; degrade_on_error
    instead returns the filtered rows with a zero running balance.
    """
    candidates = []
    for entry in entries:
        row = _entry_fields(entry)
        if row.get("doctor_id") != account_id:
            continue
        if parse_day(row.get("entry_date")) is None:
            continue
        debit = _amount_or_none(row.get("debit"))
        credit = _amount_or_none(row.get("credit"))
        if debit is None or credit is None:
            continue
        row["debit"] = debit
        row["credit"] = credit
        candidates.append(row)

    try:
        ordered = sort_chronologically(
            candidates,
            lambda row: row.get("entry_date"),
            lambda row: row.get("created_at")
        )
        running_balance = ZERO
        result = []
        for row in ordered:
            running_balance += row["debit"] - row["credit"]
            result.append({**row, "running_balance": running_balance})
        return result
    except (TypeError, ValueError, ArithmeticError) as e:
        if not degrade_on_error:
            raise BalanceComputationFailed(f"Running balance for account {account_id} failed: {str(e)}") from e
        logger.warning(f"Running balance for account {account_id} degraded to zero balances: {str(e)}")
        return [{**row, "running_balance": ZERO} for row in candidates]


def fetch_ledger_entries(
    db: Session,
    account_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    source_type: Optional[str] = None
) -> List[LedgerEntry]:
    """Ledger entries in chronological order with optional filters."""
    try:
        db.flush()
        query = db.query(LedgerEntry)
        if account_id is not None:
            query = query.filter(LedgerEntry.doctor_id == account_id)
        if start:
            query = query.filter(LedgerEntry.entry_date >= start)
        if end:
            query = query.filter(LedgerEntry.entry_date <= end)
        if source_type:
            query = query.filter(LedgerEntry.source_type == source_type)
        return query.order_by(*chronological_order(LedgerEntry, LedgerEntry.entry_date)).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching ledger entries: {str(e)}")
        raise FetchFailed("Could not load ledger entries") from e


def account_balance(db: Session, account_id: int, as_of: Optional[date] = None) -> Decimal:
    """Sum of debit - credit for an account, optionally up to a date."""
    try:
        db.flush()
        query = db.query(
            func.coalesce(func.sum(LedgerEntry.debit), 0),
            func.coalesce(func.sum(LedgerEntry.credit), 0)
        ).filter(LedgerEntry.doctor_id == account_id)
        if as_of:
            query = query.filter(LedgerEntry.entry_date <= as_of)
        total_debit, total_credit = query.one()
    except SQLAlchemyError as e:
        logger.error(f"Error computing balance for account {account_id}: {str(e)}")
        raise FetchFailed(f"Could not compute balance for account {account_id}") from e

    return Decimal(str(total_debit)) - Decimal(str(total_credit))


def trial_balance(db: Session) -> List[Dict[str, Any]]:
    """Total debit, total credit and balance per account holder."""
    try:
        db.flush()
        rows = db.query(
            Doctor.id,
            Doctor.name,
            Doctor.contact_type,
            func.coalesce(func.sum(LedgerEntry.debit), 0),
            func.coalesce(func.sum(LedgerEntry.credit), 0)
        ).outerjoin(
            LedgerEntry, LedgerEntry.doctor_id == Doctor.id
        ).group_by(Doctor.id, Doctor.name, Doctor.contact_type).order_by(Doctor.name.asc()).all()
    except SQLAlchemyError as e:
        logger.error(f"Error building trial balance: {str(e)}")
        raise FetchFailed("Could not build trial balance") from e

    report = []
    for doctor_id, name, contact_type, total_debit, total_credit in rows:
        total_debit = Decimal(str(total_debit))
        total_credit = Decimal(str(total_credit))
        report.append({
            "doctor_id": doctor_id,
            "name": name,
            "contact_type": contact_type,
            "total_debit": total_debit,
            "total_credit": total_credit,
            "balance": total_debit - total_credit
        })
    return report


def handle_payment(db: Session, account_id: int, amount: Any, entry_date: date, method: str = "cash") -> bool:
    """Boolean wrapper around create_payment_entry that commits on success."""
    try:
        create_payment_entry(db, account_id, amount, entry_date, method)
        db.commit()
        return True
    except (LedgerError, SQLAlchemyError) as e:
        db.rollback()
        logger.error(f"Error recording payment for doctor {account_id}: {str(e)}")
        return False
