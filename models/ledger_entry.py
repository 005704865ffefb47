from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from database import Base


class SourceType:
    VISIT = "visit"
    CASH = "cash"


class LedgerEntry(Base):
    """
    Financial entry against a doctor or chemist account.

    Debit is money owed to the business, credit is money received from or
    credited to the account holder. Corrections are new offsetting entries.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    entry_date = Column(Date, nullable=False, index=True)

    source_type = Column(String(20), nullable=False, default=SourceType.CASH)  # visit, cash
    source_id = Column(Integer, ForeignKey("visits.id"), nullable=True, index=True)

    description = Column(String(500), nullable=True)
    debit = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    credit = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    invoice_number = Column(String(50), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    doctor = relationship("Doctor", back_populates="ledger_entries")
    visit = relationship("Visit", back_populates="ledger_entries")

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, invoice_number='{self.invoice_number}', debit={self.debit}, credit={self.credit})>"
