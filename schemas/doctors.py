from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ContactTypeEnum(str, Enum):
    DOCTOR = "doctor"
    CHEMIST = "chemist"


class DoctorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Doctor or chemist name")
    contact_type: ContactTypeEnum = Field(ContactTypeEnum.DOCTOR, description="Kind of account holder")
    specialization: Optional[str] = Field(None, max_length=150)
    hospital: Optional[str] = Field(None, max_length=200, description="Hospital or shop name")
    contact_number: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = None
    doctor_class: Optional[str] = Field(None, max_length=20, description="Classification such as A, B or C")
    doctor_type: Optional[str] = Field(None, max_length=50)

    @field_validator('contact_number')
    @classmethod
    def validate_contact_number(cls, v):
        if v and not v.replace('+', '').replace('-', '').replace(' ', '').isdigit():
            raise ValueError('Contact number must contain only digits, +, -, and spaces')
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v and '@' not in v:
            raise ValueError('Invalid email address')
        return v


class DoctorCreate(DoctorBase):
    pass


class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_type: Optional[ContactTypeEnum] = None
    specialization: Optional[str] = Field(None, max_length=150)
    hospital: Optional[str] = Field(None, max_length=200)
    contact_number: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=120)
    address: Optional[str] = None
    doctor_class: Optional[str] = Field(None, max_length=20)
    doctor_type: Optional[str] = Field(None, max_length=50)


class DoctorResponse(DoctorBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class DoctorWithBalanceResponse(DoctorResponse):
    balance: Decimal = Decimal("0.00")
