from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from decimal import Decimal
from models.user import UserRole, UserStatus

# Request schemas
class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    full_name: Optional[str] = Field(None, max_length=150)
    territory: Optional[str] = Field(None, max_length=100, description="Area the rep covers")
    role: UserRole = UserRole.USER

class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=150)
    territory: Optional[str] = Field(None, max_length=100)
    password: Optional[str] = Field(None, min_length=6)

class UserStatusUpdate(BaseModel):
    status: UserStatus

class UserLogin(BaseModel):
    username: str
    password: str

# Response schemas
class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    full_name: Optional[str] = None
    territory: Optional[str] = None
    role: UserRole
    status: UserStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class RepActivity(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    territory: Optional[str] = None
    role: UserRole
    status: UserStatus
    visit_count: int
    sales_total: Decimal

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
