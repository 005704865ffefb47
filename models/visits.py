from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from database import Base


class VisitStatus:
    COMPLETED = "completed"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"


class Visit(Base):
    """Visit to a doctor or chemist, optionally carrying sale lines"""
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    rep_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # rep who recorded it
    visit_date = Column(Date, nullable=False, index=True)
    notes = Column(Text)
    status = Column(String(20), nullable=False, default=VisitStatus.COMPLETED)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    doctor = relationship("Doctor", back_populates="visits")
    rep = relationship("User", back_populates="visits")
    sales = relationship("VisitSale", back_populates="visit", cascade="all, delete-orphan")
    ledger_entries = relationship("LedgerEntry", back_populates="visit")

    @property
    def total_amount(self):
        return sum((line.total_amount for line in self.sales), Decimal("0.00"))


class VisitSale(Base):
    """Sale line recorded during a visit"""
    __tablename__ = "visit_sales"

    id = Column(Integer, primary_key=True, index=True)
    visit_id = Column(Integer, ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)  # quantity * unit_price

    # Relationships
    visit = relationship("Visit", back_populates="sales")
    product = relationship("Product")
