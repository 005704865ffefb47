"""
Read-only reports over visit sales: the sales register, the dashboard
summary and field rep activity.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.doctors import Doctor
from models.products import Product
from models.user import User
from models.visits import Visit, VisitSale
from services.errors import FetchFailed, ValidationFailed

logger = logging.getLogger(__name__)

UNKNOWN_COMPANY = "Other"


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value or 0))


def _sales_query(
    db: Session,
    *columns,
    start: Optional[date] = None,
    end: Optional[date] = None,
    doctor_id: Optional[int] = None,
    product_id: Optional[int] = None
):
    query = db.query(*columns).select_from(VisitSale).join(
        Visit, VisitSale.visit_id == Visit.id
    ).join(
        Doctor, Visit.doctor_id == Doctor.id
    ).join(
        Product, VisitSale.product_id == Product.id
    )
    if start:
        query = query.filter(Visit.visit_date >= start)
    if end:
        query = query.filter(Visit.visit_date <= end)
    if doctor_id:
        query = query.filter(Visit.doctor_id == doctor_id)
    if product_id:
        query = query.filter(VisitSale.product_id == product_id)
    return query


def _top_doctors(db: Session, limit: int, **filters) -> List[Dict[str, Any]]:
    amount = func.coalesce(func.sum(VisitSale.total_amount), 0)
    rows = _sales_query(db, Doctor.id, Doctor.name, amount, **filters).group_by(
        Doctor.id, Doctor.name
    ).order_by(amount.desc(), Doctor.name.asc()).limit(limit).all()
    return [
        {"doctor_id": doctor_id, "doctor_name": name, "amount": _decimal(total)}
        for doctor_id, name, total in rows
    ]


def sales_report(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    doctor_id: Optional[int] = None,
    product_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100
) -> Dict[str, Any]:
    """
    Visit sale lines, newest visit first, with revenue and item totals.

    The page is cut by skip/limit; totals, the per-company breakdown and the
    top ten doctors cover every line matching the filters.
    """
    if start and end and end < start:
        raise ValidationFailed("end_date cannot be before start_date")
    filters = {"start": start, "end": end, "doctor_id": doctor_id, "product_id": product_id}

    try:
        lines = _sales_query(
            db,
            VisitSale.id, Visit.id, Visit.visit_date, Doctor.id, Doctor.name,
            Product.id, Product.name, Product.company_name,
            VisitSale.quantity, VisitSale.unit_price, VisitSale.total_amount,
            **filters
        ).order_by(Visit.visit_date.desc(), VisitSale.id.desc()).offset(skip).limit(limit).all()

        total_count, total_revenue, total_items = _sales_query(
            db,
            func.count(VisitSale.id),
            func.coalesce(func.sum(VisitSale.total_amount), 0),
            func.coalesce(func.sum(VisitSale.quantity), 0),
            **filters
        ).one()

        company_rows = _sales_query(
            db, Product.company_name, func.coalesce(func.sum(VisitSale.total_amount), 0), **filters
        ).group_by(Product.company_name).all()

        top_doctors = _top_doctors(db, 10, **filters)
    except SQLAlchemyError as e:
        logger.error(f"Error building sales report: {str(e)}")
        raise FetchFailed("Could not load sales") from e

    # Products without a company are pooled under one bucket
    by_company: Dict[str, Decimal] = {}
    for company, amount in company_rows:
        key = company or UNKNOWN_COMPANY
        by_company[key] = by_company.get(key, Decimal("0")) + _decimal(amount)

    return {
        "lines": [
            {
                "sale_id": sale_id,
                "visit_id": visit_id,
                "visit_date": visit_date,
                "doctor_id": doc_id,
                "doctor_name": doctor_name,
                "product_id": prod_id,
                "product_name": product_name,
                "company_name": company_name,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_amount": amount
            }
            for (sale_id, visit_id, visit_date, doc_id, doctor_name, prod_id, product_name,
                 company_name, quantity, unit_price, amount) in lines
        ],
        "total_count": total_count,
        "total_revenue": _decimal(total_revenue),
        "total_items": int(total_items or 0),
        "by_company": [
            {"company": company, "amount": amount}
            for company, amount in sorted(by_company.items(), key=lambda item: (-item[1], item[0]))
        ],
        "top_doctors": top_doctors
    }


def dashboard_summary(db: Session, recent_limit: int = 5, top_limit: int = 5) -> Dict[str, Any]:
    """Headline counts, latest visits and sales, and the best-selling accounts."""
    try:
        counts = {
            "total_doctors": db.query(func.count(Doctor.id)).scalar() or 0,
            "total_visits": db.query(func.count(Visit.id)).scalar() or 0,
            "total_sales": db.query(func.count(VisitSale.id)).scalar() or 0,
            "total_products": db.query(func.count(Product.id)).scalar() or 0
        }

        visits = db.query(Visit).order_by(
            Visit.visit_date.desc(), Visit.id.desc()
        ).limit(recent_limit).all()
        recent_visits = [
            {
                "visit_id": visit.id,
                "visit_date": visit.visit_date,
                "doctor_id": visit.doctor_id,
                "doctor_name": visit.doctor.name,
                "status": visit.status,
                "total_amount": visit.total_amount
            }
            for visit in visits
        ]

        recent_sales = [
            {"visit_date": visit_date, "product_name": product_name, "amount": _decimal(amount)}
            for visit_date, product_name, amount in _sales_query(
                db, Visit.visit_date, Product.name, VisitSale.total_amount
            ).order_by(VisitSale.id.desc()).limit(10).all()
        ]

        top_doctors = _top_doctors(db, top_limit)
    except SQLAlchemyError as e:
        logger.error(f"Error building dashboard summary: {str(e)}")
        raise FetchFailed("Could not load dashboard") from e

    return {
        "counts": counts,
        "recent_visits": recent_visits,
        "recent_sales": recent_sales,
        "top_doctors": top_doctors
    }


def rep_activity(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
    """Visit count and sales value per user, including users with no visits."""
    if start and end and end < start:
        raise ValidationFailed("end_date cannot be before start_date")

    try:
        query = db.query(
            Visit.rep_id,
            func.count(func.distinct(Visit.id)),
            func.coalesce(func.sum(VisitSale.total_amount), 0)
        ).outerjoin(
            VisitSale, VisitSale.visit_id == Visit.id
        ).filter(Visit.rep_id.isnot(None))
        if start:
            query = query.filter(Visit.visit_date >= start)
        if end:
            query = query.filter(Visit.visit_date <= end)
        totals = {rep_id: (visits, amount) for rep_id, visits, amount in query.group_by(Visit.rep_id).all()}

        users = db.query(User).order_by(User.id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error building rep activity: {str(e)}")
        raise FetchFailed("Could not load rep activity") from e

    report = []
    for user in users:
        visit_count, sales_total = totals.get(user.id, (0, 0))
        report.append({
            "id": user.id,
            "username": user.username,
            "full_name": user.full_name,
            "territory": user.territory,
            "role": user.role,
            "status": user.status,
            "visit_count": visit_count,
            "sales_total": _decimal(sales_total)
        })
    return report
