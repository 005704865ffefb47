from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text
from datetime import datetime
from database import Base


class CashType:
    IN_FLOW = "in_flow"
    OUT_FLOW = "out_flow"


class CashFlowType:
    SUNDRY = "sundry"
    PERSON = "person"


class CashPurpose:
    EXPENSE = "expense"
    GIFT = "gift"
    PAYMENT = "payment"
    ADVANCE = "advance"
    DEBT_RECOVERY = "debt_recovery"


class CashFlow(Base):
    """Cash register entry, independent of the account ledger"""
    __tablename__ = "cash_flow"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    cash_type = Column(String(20), nullable=False, default=CashType.OUT_FLOW)
    type = Column(String(20), nullable=False, default=CashFlowType.SUNDRY)
    purpose = Column(String(30), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
