from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging

from database import get_db
from dependencies import get_current_user, require_admin
from models.user import User
from models.products import Product
from models.stock_ledger import StockTransaction, TransactionType
from models.visits import VisitSale
from schemas.products import ProductCreate, ProductUpdate, ProductResponse
from schemas.stock_ledger import (
    StockAddRequest, StockEditRequest, StockChangeResponse, StockSummaryResponse,
    StockTransactionResponse, InventoryReportResponse, StockResyncResponse
)
from services import stock_ledger
from services.errors import LedgerError
from utils.ordering import chronological_order

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# Reports and maintenance

@router.get("/reports/inventory", response_model=InventoryReportResponse)
def get_inventory_report(
    start_date: date = Query(..., description="First day of the period"),
    end_date: date = Query(..., description="Last day of the period"),
    product_id: Optional[int] = Query(None),
    company_name: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Opening stock, purchases, sales, adjustments and closing stock per product"""
    try:
        return stock_ledger.inventory_report(db, start_date, end_date, product_id, company_name)
    except LedgerError as e:
        logger.error(f"Error building inventory report: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/reports/low-stock", response_model=List[ProductResponse])
def get_low_stock_products(
    threshold: Optional[int] = Query(None, ge=0, description="Defaults to LOW_STOCK_THRESHOLD"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return stock_ledger.low_stock_products(db, threshold)


@router.post("/stock/resync", response_model=StockResyncResponse)
def resync_stock(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Rebuild every product's cached stock from the stock log"""
    try:
        checked, corrected = stock_ledger.resync_all_stock(db)
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error resyncing stock: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    logger.info(f"Stock resync checked {checked} products, corrected {len(corrected)}")
    return {"checked": checked, "corrected": corrected}


# Product CRUD

@router.post("/", response_model=ProductResponse, status_code=201)
def create_product(
    product: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a product, seeding its stock log with the opening stock"""
    existing = db.query(Product).filter(
        Product.name == product.name,
        Product.company_name == product.company_name
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Product with this name already exists for the company")

    try:
        db_product = Product(**product.model_dump(exclude={"opening_stock"}))
        db.add(db_product)
        db.flush()

        stock_ledger.record_opening_stock(db, db_product.id, product.opening_stock)

        db.commit()
        db.refresh(db_product)
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error creating product {product.name}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    logger.info(f"Product {db_product.name} created with ID {db_product.id}, opening stock {product.opening_stock}")
    return db_product


@router.get("/", response_model=List[ProductResponse])
def get_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    search: Optional[str] = Query(None, description="Search by product or company name"),
    company_name: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(Product)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.company_name.ilike(pattern)))
    if company_name:
        query = query.filter(Product.company_name == company_name)
    if category:
        query = query.filter(Product.category == category)

    return query.order_by(Product.name.asc()).offset(skip).limit(limit).all()


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_product_or_404(db, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    product_update: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    db_product = _get_product_or_404(db, product_id)

    for field, value in product_update.model_dump(exclude_unset=True).items():
        setattr(db_product, field, value)

    db.commit()
    db.refresh(db_product)
    return db_product


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a product that was never sold; its stock log goes with it"""
    db_product = _get_product_or_404(db, product_id)

    if db.query(VisitSale.id).filter(VisitSale.product_id == product_id).first():
        raise HTTPException(status_code=400, detail="Cannot delete a product that appears on visit sales")

    db.delete(db_product)
    db.commit()

    logger.info(f"Product {product_id} deleted")
    return {"message": "Product deleted successfully"}


# Stock operations

@router.post("/{product_id}/stock/add", response_model=StockChangeResponse)
def add_product_stock(
    product_id: int,
    request: StockAddRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Record a purchase of new units"""
    _get_product_or_404(db, product_id)

    try:
        current_stock = stock_ledger.add_stock(db, product_id, request.quantity, request.notes)
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error adding stock to product {product_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error adding stock to product {product_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to add stock")

    return {"product_id": product_id, "current_stock": current_stock, "changed": True}


@router.post("/{product_id}/stock/edit", response_model=StockChangeResponse)
def edit_product_stock(
    product_id: int,
    request: StockEditRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Set stock to a physical count; writes one adjustment for the difference"""
    product = _get_product_or_404(db, product_id)
    previous = int(product.current_stock or 0)

    try:
        current_stock = stock_ledger.edit_stock(db, product_id, request.new_quantity, request.notes)
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.error(f"Error editing stock of product {product_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error editing stock of product {product_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to edit stock")

    return {"product_id": product_id, "current_stock": current_stock, "changed": current_stock != previous}


@router.get("/{product_id}/stock/summary", response_model=StockSummaryResponse)
def get_stock_summary(
    product_id: int,
    as_of: Optional[date] = Query(None, description="Defaults to today"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Stock position replayed from the log as of a date"""
    _get_product_or_404(db, product_id)
    as_of = as_of or date.today()

    try:
        summary = stock_ledger.calculate_stock_summary(db, product_id, as_of)
    except LedgerError as e:
        logger.error(f"Error computing stock summary for product {product_id}: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return StockSummaryResponse(product_id=product_id, as_of_date=as_of, **summary.model_dump())


@router.get("/{product_id}/stock/transactions", response_model=List[StockTransactionResponse])
def get_product_stock_transactions(
    product_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """A product's stock log, oldest first"""
    _get_product_or_404(db, product_id)

    query = db.query(StockTransaction).filter(StockTransaction.product_id == product_id)
    if start_date:
        query = query.filter(StockTransaction.transaction_date >= start_date)
    if end_date:
        query = query.filter(StockTransaction.transaction_date <= end_date)
    if transaction_type:
        query = query.filter(StockTransaction.transaction_type == transaction_type.value)

    return query.order_by(*chronological_order(StockTransaction, StockTransaction.transaction_date)).all()
