"""
Sale and reversal protocol for visits.

A visit with sale lines drives both ledgers: one sale row per line in the
stock log and one DEBIT for the visit total in the account ledger. Edits and
deletes never rewrite history; they append sale_reversal rows and offsetting
ledger entries. Nothing here commits, the caller owns the transaction.
"""
import logging
from datetime import date
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from models.doctors import Doctor
from models.ledger_entry import LedgerEntry, SourceType
from models.products import Product
from models.stock_ledger import TransactionType
from models.visits import Visit, VisitSale, VisitStatus
from schemas.visits import VisitCreate, VisitSaleCreate, VisitUpdate
from services.account_ledger import create_ledger_entry
from services.errors import NotFound, ValidationFailed
from services.stock_ledger import add_stock_transaction, update_product_stock

logger = logging.getLogger(__name__)

VISIT_REFERENCE = "visit"
EDIT_REVERSAL_REFERENCE = "visit_edit_reversal"
DELETE_REVERSAL_REFERENCE = "visit_delete_reversal"


def _require_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFound(f"Doctor with ID {doctor_id} not found")
    return doctor


def _validate_lines(db: Session, lines: Iterable[VisitSaleCreate]) -> None:
    product_ids = {line.product_id for line in lines}
    if not product_ids:
        return
    found = {row[0] for row in db.query(Product.id).filter(Product.id.in_(product_ids)).all()}
    missing = sorted(product_ids - found)
    if missing:
        raise NotFound(f"Products not found: {', '.join(str(pid) for pid in missing)}")
    for line in lines:
        if line.quantity <= 0:
            raise ValidationFailed("Sale quantity must be greater than zero")
        if line.unit_price < 0:
            raise ValidationFailed("Unit price cannot be negative")


def get_visit(db: Session, visit_id: int) -> Visit:
    visit = db.query(Visit).filter(Visit.id == visit_id).first()
    if not visit:
        raise NotFound(f"Visit with ID {visit_id} not found")
    return visit


def _add_sale_lines(db: Session, visit: Visit, lines: Iterable[VisitSaleCreate]) -> List[VisitSale]:
    created = []
    for line in lines:
        sale = VisitSale(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_amount=line.unit_price * line.quantity
        )
        visit.sales.append(sale)
        created.append(sale)
    db.flush()
    return created


def _record_sales(db: Session, visit: Visit, lines: Iterable[VisitSale]) -> None:
    for line in lines:
        add_stock_transaction(
            db,
            product_id=line.product_id,
            transaction_type=TransactionType.SALE,
            quantity=-line.quantity,
            transaction_date=visit.visit_date,
            reference_type=VISIT_REFERENCE,
            reference_id=visit.id,
            notes=f"Sale during visit #{visit.id}"
        )


def _record_reversals(
    db: Session,
    visit: Visit,
    lines: Iterable[VisitSale],
    reversal_date: date,
    reference_type: str
) -> None:
    for line in lines:
        add_stock_transaction(
            db,
            product_id=line.product_id,
            transaction_type=TransactionType.SALE_REVERSAL,
            quantity=abs(line.quantity),
            transaction_date=reversal_date,
            reference_type=reference_type,
            reference_id=visit.id,
            notes=f"Reversal of visit #{visit.id} sale"
        )


def _refresh_stock(db: Session, product_ids: Set[int], today: Optional[date]) -> None:
    for product_id in sorted(product_ids):
        update_product_stock(db, product_id, today)


def create_visit(
    db: Session,
    payload: VisitCreate,
    today: Optional[date] = None,
    rep_id: Optional[int] = None
) -> Visit:
    """
    Insert a visit with its sale lines and post it to both ledgers.

    Visits without sales write no stock rows and no ledger entry.
    """
    _require_doctor(db, payload.doctor_id)
    _validate_lines(db, payload.sales)

    visit = Visit(
        doctor_id=payload.doctor_id,
        rep_id=rep_id,
        visit_date=payload.visit_date,
        notes=payload.notes,
        status=payload.status.value if payload.status else VisitStatus.COMPLETED
    )
    db.add(visit)
    db.flush()

    # Sale lines and their stock rows
    lines = _add_sale_lines(db, visit, payload.sales)
    _record_sales(db, visit, lines)

    # One DEBIT for the whole visit
    total = visit.total_amount
    if total > 0:
        create_ledger_entry(
            db,
            doctor_id=visit.doctor_id,
            entry_date=visit.visit_date,
            source_type=SourceType.VISIT,
            source_id=visit.id,
            debit=total,
            description=f"Sales from visit on {visit.visit_date.isoformat()}",
            today=today
        )

    _refresh_stock(db, {line.product_id for line in lines}, today)

    logger.info(f"Visit {visit.id} created for doctor {visit.doctor_id} with {len(lines)} sale lines, total {total}")
    return visit


def edit_visit(db: Session, visit_id: int, payload: VisitUpdate, today: Optional[date] = None) -> Visit:
    """
    Replace a visit's details and sale lines.

    The old lines are reversed in the stock log on the new visit date, the old
    total is credited back and the new total debited. Fields left out of the
    payload keep their value. Without sales the existing lines are kept, and
    are re-posted only when the doctor or the visit date changes.
    """
    visit = get_visit(db, visit_id)

    if payload.doctor_id is not None and payload.doctor_id != visit.doctor_id:
        _require_doctor(db, payload.doctor_id)
    sales = payload.sales
    reposting = (
        (payload.doctor_id is not None and payload.doctor_id != visit.doctor_id)
        or (payload.visit_date is not None and payload.visit_date != visit.visit_date)
    )
    if sales is None and reposting:
        sales = [
            VisitSaleCreate(product_id=line.product_id, quantity=line.quantity, unit_price=line.unit_price)
            for line in visit.sales
        ]
    if sales is not None:
        _validate_lines(db, sales)

    old_doctor_id = visit.doctor_id
    old_lines = list(visit.sales)
    old_total = visit.total_amount
    old_products = {line.product_id for line in old_lines}

    # Header fields
    if payload.doctor_id is not None:
        visit.doctor_id = payload.doctor_id
    if payload.visit_date is not None:
        visit.visit_date = payload.visit_date
    if payload.notes is not None:
        visit.notes = payload.notes
    if payload.status is not None:
        visit.status = payload.status.value
    db.flush()

    if sales is None:
        logger.info(f"Visit {visit.id} details updated, sale lines unchanged")
        return visit

    # Stock: reverse the old lines, then post the new ones
    _record_reversals(db, visit, old_lines, visit.visit_date, EDIT_REVERSAL_REFERENCE)
    visit.sales.clear()
    db.flush()

    new_lines = _add_sale_lines(db, visit, sales)
    _record_sales(db, visit, new_lines)

    # Account: credit the old total back, debit the new one
    if old_total > 0:
        create_ledger_entry(
            db,
            doctor_id=old_doctor_id,
            entry_date=visit.visit_date,
            source_type=SourceType.VISIT,
            source_id=visit.id,
            credit=old_total,
            description=f"Reversal of visit sales (edit) from {visit.visit_date.isoformat()}",
            today=today
        )

    new_total = visit.total_amount
    if new_total > 0:
        create_ledger_entry(
            db,
            doctor_id=visit.doctor_id,
            entry_date=visit.visit_date,
            source_type=SourceType.VISIT,
            source_id=visit.id,
            debit=new_total,
            description=f"Sales from visit on {visit.visit_date.isoformat()} (edited)",
            today=today
        )

    _refresh_stock(db, old_products | {line.product_id for line in new_lines}, today)

    logger.info(f"Visit {visit.id} edited: total {old_total} -> {new_total}")
    return visit


def delete_visit(db: Session, visit_id: int, today: Optional[date] = None) -> None:
    """
    Remove a visit and undo its effect on both ledgers.

    The visit's sale rows stay in the stock log and are offset by
    sale_reversal rows. Its ledger entries are kept with source_id cleared and
    offset by one CREDIT for the visit total, so payments recorded against the
    account still net correctly.
    """
    visit = get_visit(db, visit_id)
    lines = list(visit.sales)
    total = visit.total_amount
    product_ids = {line.product_id for line in lines}

    _record_reversals(db, visit, lines, visit.visit_date, DELETE_REVERSAL_REFERENCE)

    # Keep the entries but drop the link to the visit row being removed
    detached = db.query(LedgerEntry).filter(
        LedgerEntry.source_id == visit.id
    ).update({LedgerEntry.source_id: None}, synchronize_session="fetch")

    if total > 0:
        create_ledger_entry(
            db,
            doctor_id=visit.doctor_id,
            entry_date=visit.visit_date,
            source_type=SourceType.VISIT,
            source_id=None,
            credit=total,
            description=f"Reversal of deleted visit #{visit.id} from {visit.visit_date.isoformat()}",
            today=today
        )

    db.delete(visit)
    db.flush()

    _refresh_stock(db, product_ids, today)

    logger.info(f"Visit {visit_id} deleted: {len(lines)} sale lines reversed, {detached} ledger entries detached")


def list_visits(
    db: Session,
    doctor_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    rep_id: Optional[int] = None
) -> List[Visit]:
    query = db.query(Visit)
    if doctor_id:
        query = query.filter(Visit.doctor_id == doctor_id)
    if rep_id:
        query = query.filter(Visit.rep_id == rep_id)
    if start:
        query = query.filter(Visit.visit_date >= start)
    if end:
        query = query.filter(Visit.visit_date <= end)
    return query.order_by(Visit.visit_date.desc(), Visit.id.desc()).offset(skip).limit(limit).all()
