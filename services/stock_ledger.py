"""
Stock ledger engine.

The stock_transactions table is an append-only log; Product.current_stock is
a read cache of that log replayed up to today. The cache is valid only
immediately after update_product_stock runs with no intervening writes to
that product's log, so every write path here ends by calling it.
"""
import logging
from collections import defaultdict
from collections.abc import Mapping
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import settings
from models.products import Product
from models.stock_ledger import StockTransaction, TransactionType
from schemas.stock_ledger import (
    StockSummary, InventoryReportRow, InventoryReportTotals, InventoryReportResponse,
    StockDivergence
)
from services.errors import FetchFailed, LedgerError, NotFound, ValidationFailed
from utils.ordering import chronological_order

logger = logging.getLogger(__name__)

MANUAL_ADJUSTMENT = "manual_adjustment"
PRODUCT_OPENING = "product_opening"


def _field(row: Any, name: str, default=None):
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def _type_of(row: Any) -> Optional[str]:
    value = _field(row, "transaction_type")
    return value.value if isinstance(value, TransactionType) else value


def _quantity_of(row: Any) -> int:
    return int(_field(row, "quantity") or 0)


def summarize_transactions(transactions: Iterable[Any]) -> StockSummary:
    """
    Replay stock transactions into opening, purchases, sales and closing stock.

    Opening and adjustment rows share one bucket: positive quantities count as
    opening stock, negative ones are folded into sales. Sale reversals are
    subtracted from sales. Unknown types are ignored.
    """
    opening_stock = 0
    purchases = 0
    sales = 0

    for transaction in transactions:
        kind = _type_of(transaction)
        quantity = _quantity_of(transaction)

        if kind in (TransactionType.OPENING.value, TransactionType.ADJUSTMENT.value):
            if quantity > 0:
                opening_stock += quantity
            else:
                sales += abs(quantity)
        elif kind == TransactionType.PURCHASE.value:
            purchases += abs(quantity)
        elif kind == TransactionType.SALE.value:
            sales += abs(quantity)
        elif kind == TransactionType.SALE_REVERSAL.value:
            sales -= abs(quantity)

    sales = max(0, sales)
    closing_stock = max(0, opening_stock + purchases - sales)

    return StockSummary(
        opening_stock=opening_stock,
        purchases=purchases,
        sales=sales,
        closing_stock=closing_stock
    )


def get_stock_transactions(db: Session, product_id: int, up_to: date) -> List[StockTransaction]:
    """Fetch a product's transactions dated on or before up_to, oldest first."""
    try:
        db.flush()
        return db.query(StockTransaction).filter(
            StockTransaction.product_id == product_id,
            StockTransaction.transaction_date <= up_to
        ).order_by(*chronological_order(StockTransaction, StockTransaction.transaction_date)).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching stock transactions for product {product_id}: {str(e)}")
        raise FetchFailed(f"Could not load stock transactions for product {product_id}") from e


def calculate_stock_summary(
    db: Session,
    product_id: int,
    as_of_date: date,
    *,
    degrade_on_error: bool = False
) -> StockSummary:
    """
    Stock summary for a product as of a date (inclusive).

    Raises FetchFailed when the log cannot be read. With degrade_on_error the
    failure is logged and an empty log is replayed instead, so the result is
    all zeros.
    """
    try:
        transactions = get_stock_transactions(db, product_id, as_of_date)
    except FetchFailed:
        if not degrade_on_error:
            raise
        logger.warning(f"Stock summary for product {product_id} degraded to an empty log")
        transactions = []

    return summarize_transactions(transactions)


def add_stock_transaction(
    db: Session,
    *,
    product_id: int,
    transaction_type: Any,
    quantity: int,
    transaction_date: date,
    reference_type: Optional[str] = None,
    reference_id: Optional[int] = None,
    notes: Optional[str] = None
) -> StockTransaction:
    """Append one immutable row to the stock log. No deduplication is attempted."""
    try:
        kind = TransactionType(transaction_type)
    except ValueError:
        raise ValidationFailed(f"Unknown stock transaction type: {transaction_type}")

    transaction = StockTransaction(
        product_id=product_id,
        transaction_type=kind.value,
        quantity=int(quantity),
        transaction_date=transaction_date,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes
    )
    db.add(transaction)
    db.flush()

    logger.info(
        f"Stock transaction {transaction.id} added: product {product_id}, "
        f"{kind.value} {transaction.quantity} on {transaction_date}"
    )
    return transaction


def _get_product(db: Session, product_id: int, lock: bool = False) -> Product:
    query = db.query(Product).filter(Product.id == product_id)
    if lock:
        query = query.with_for_update()
    product = query.first()
    if not product:
        raise NotFound(f"Product with ID {product_id} not found")
    return product


def get_current_stock(db: Session, product_id: int) -> int:
    """Read the cached stock figure."""
    return int(_get_product(db, product_id).current_stock or 0)


def update_product_stock(db: Session, product_id: int, today: Optional[date] = None) -> int:
    """Replay the log up to today and write the closing stock into the product cache."""
    today = today or date.today()
    # Lock the row so concurrent writers serialise on the cache
    product = _get_product(db, product_id, lock=True)

    summary = calculate_stock_summary(db, product_id, today)
    product.current_stock = summary.closing_stock
    db.flush()

    logger.info(f"Product {product_id} stock updated to {summary.closing_stock}")
    return summary.closing_stock


def _require_int(value: Any, name: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        qualifier = "a positive" if minimum > 0 else "a non-negative"
        raise ValidationFailed(f"{name} must be {qualifier} integer")
    return value


def add_stock(
    db: Session,
    product_id: int,
    quantity: int,
    notes: Optional[str] = None,
    today: Optional[date] = None
) -> int:
    """Record a purchase dated today and refresh the cache. Returns the new stock."""
    _require_int(quantity, "Quantity", 1)
    _get_product(db, product_id)
    today = today or date.today()

    add_stock_transaction(
        db,
        product_id=product_id,
        transaction_type=TransactionType.PURCHASE,
        quantity=quantity,
        transaction_date=today,
        reference_type=MANUAL_ADJUSTMENT,
        notes=notes or "Manual stock addition"
    )
    return update_product_stock(db, product_id, today)


def edit_stock(
    db: Session,
    product_id: int,
    new_quantity: int,
    notes: Optional[str] = None,
    today: Optional[date] = None
) -> int:
    """
    Set stock to a counted quantity by appending one signed adjustment.

    A zero difference writes nothing. Returns the resulting stock.
    """
    _require_int(new_quantity, "New quantity", 0)
    current_stock = get_current_stock(db, product_id)
    # Only the difference goes into the log
    difference = new_quantity - current_stock

    if difference == 0:
        logger.info(f"Product {product_id} stock already at {new_quantity}, no adjustment needed")
        return current_stock

    today = today or date.today()
    sign = "+" if difference > 0 else ""
    add_stock_transaction(
        db,
        product_id=product_id,
        transaction_type=TransactionType.ADJUSTMENT,
        quantity=difference,
        transaction_date=today,
        reference_type=MANUAL_ADJUSTMENT,
        notes=notes or f"Stock adjusted from {current_stock} to {new_quantity} ({sign}{difference})"
    )
    return update_product_stock(db, product_id, today)


def handle_add_stock(db: Session, product_id: int, quantity: int, notes: Optional[str] = None) -> bool:
    """Boolean wrapper around add_stock that commits on success."""
    try:
        add_stock(db, product_id, quantity, notes)
        db.commit()
        return True
    except (LedgerError, SQLAlchemyError) as e:
        db.rollback()
        logger.error(f"Error adding stock to product {product_id}: {str(e)}")
        return False


def handle_edit_stock(db: Session, product_id: int, new_quantity: int, notes: Optional[str] = None) -> bool:
    """Boolean wrapper around edit_stock that commits on success."""
    try:
        edit_stock(db, product_id, new_quantity, notes)
        db.commit()
        return True
    except (LedgerError, SQLAlchemyError) as e:
        db.rollback()
        logger.error(f"Error editing stock of product {product_id}: {str(e)}")
        return False


def record_opening_stock(
    db: Session,
    product_id: int,
    quantity: int,
    day: Optional[date] = None,
    today: Optional[date] = None
) -> int:
    """Seed a product's log with an opening balance."""
    _require_int(quantity, "Opening stock", 0)
    today = today or date.today()
    if quantity > 0:
        add_stock_transaction(
            db,
            product_id=product_id,
            transaction_type=TransactionType.OPENING,
            quantity=quantity,
            transaction_date=day or today,
            reference_type=PRODUCT_OPENING,
            reference_id=product_id,
            notes="Opening stock"
        )
    return update_product_stock(db, product_id, today)


def resync_all_stock(db: Session, today: Optional[date] = None) -> tuple:
    """
    Recompute every product's cache from its log.

    Returns (number of products checked, list of divergences corrected).
    """
    today = today or date.today()
    divergences = []
    products = db.query(Product).order_by(Product.id).all()

    for product in products:
        cached = int(product.current_stock or 0)
        replayed = update_product_stock(db, product.id, today)
        if cached != replayed:
            logger.warning(
                f"Stock cache for product {product.id} had diverged: cached {cached}, log says {replayed}"
            )
            divergences.append(StockDivergence(
                product_id=product.id,
                product_name=product.name,
                cached_stock=cached,
                replayed_stock=replayed
            ))

    return len(products), divergences


def low_stock_products(db: Session, threshold: Optional[int] = None) -> List[Product]:
    """Products whose cached stock is at or below the threshold."""
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    return db.query(Product).filter(
        Product.current_stock <= threshold
    ).order_by(Product.current_stock.asc(), Product.name.asc()).all()


def inventory_report(
    db: Session,
    start: date,
    end: date,
    product_id: Optional[int] = None,
    company_name: Optional[str] = None
) -> InventoryReportResponse:
    """
    Per-product movement between two dates (inclusive).

    Opening stock is the replayed closing stock of the day before start.
    Adjustments are adjustment quantities plus sale reversal magnitudes
    inside the window.
    """
    if start > end:
        raise ValidationFailed("Start date must be on or before end date")

    products_query = db.query(Product)
    if product_id:
        products_query = products_query.filter(Product.id == product_id)
    if company_name:
        products_query = products_query.filter(Product.company_name == company_name)
    products = products_query.order_by(Product.name.asc()).all()

    by_product = defaultdict(list)
    if products:
        try:
            transactions = db.query(StockTransaction).filter(
                StockTransaction.product_id.in_([p.id for p in products]),
                StockTransaction.transaction_date <= end
            ).order_by(*chronological_order(StockTransaction, StockTransaction.transaction_date)).all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching stock transactions for inventory report: {str(e)}")
            raise FetchFailed("Could not load stock transactions for the inventory report") from e

        for transaction in transactions:
            by_product[transaction.product_id].append(transaction)

    day_before = start - timedelta(days=1)
    rows = []
    totals = InventoryReportTotals()

    for product in products:
        history = by_product[product.id]
        window = [t for t in history if t.transaction_date >= start]

        purchases = sum(abs(t.quantity) for t in window if t.transaction_type == TransactionType.PURCHASE.value)
        sales = sum(abs(t.quantity) for t in window if t.transaction_type == TransactionType.SALE.value)
        adjustments = sum(t.quantity for t in window if t.transaction_type == TransactionType.ADJUSTMENT.value)
        adjustments += sum(abs(t.quantity) for t in window if t.transaction_type == TransactionType.SALE_REVERSAL.value)

        opening = summarize_transactions(t for t in history if t.transaction_date <= day_before).closing_stock
        closing = summarize_transactions(history).closing_stock
        price = Decimal(product.price or 0)

        row = InventoryReportRow(
            product_id=product.id,
            product_name=product.name,
            company_name=product.company_name,
            price=price,
            opening_stock=opening,
            purchases=purchases,
            sales=sales,
            adjustments=adjustments,
            closing_stock=closing,
            stock_value=price * closing
        )
        rows.append(row)

        totals.total_products += 1
        totals.total_purchases += purchases
        totals.total_sales += sales
        totals.total_stock_value += row.stock_value

    return InventoryReportResponse(start_date=start, end_date=end, rows=rows, totals=totals)
