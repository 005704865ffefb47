from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base


class ContactType:
    DOCTOR = "doctor"
    CHEMIST = "chemist"


class Doctor(Base):
    """Account holder: a doctor or a chemist, modeled identically."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    contact_type = Column(String(20), nullable=False, default=ContactType.DOCTOR)  # doctor, chemist
    specialization = Column(String(150))
    hospital = Column(String(200))
    contact_number = Column(String(20))
    email = Column(String(120))
    address = Column(Text)
    doctor_class = Column(String(20))  # A, B, C
    doctor_type = Column(String(50))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    visits = relationship("Visit", back_populates="doctor")
    ledger_entries = relationship("LedgerEntry", back_populates="doctor")

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}', contact_type='{self.contact_type}')>"
