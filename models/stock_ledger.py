from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base
import enum


class TransactionType(str, enum.Enum):
    OPENING = "opening"
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    SALE_REVERSAL = "sale_reversal"


class StockTransaction(Base):
    """
    One immutable movement in a product's stock log.

    Quantity is signed: positive raises stock, negative lowers it. Sales are
    stored negative and sale reversals positive.
    """
    __tablename__ = "stock_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False, index=True)  # opening, purchase, sale, adjustment, sale_reversal
    quantity = Column(Integer, nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)

    # Free-form link back to the originating action, no foreign key
    reference_type = Column(String(50), nullable=True)  # visit, visit_edit_reversal, visit_delete_reversal, manual_adjustment
    reference_id = Column(Integer, nullable=True, index=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    product = relationship("Product", back_populates="stock_transactions")

    def __repr__(self):
        return f"<StockTransaction(id={self.id}, product_id={self.product_id}, type='{self.transaction_type}', quantity={self.quantity})>"
