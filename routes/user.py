from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date, timedelta
import logging

from database import get_db
from dependencies import get_current_user, require_admin
from models.user import User, UserRole, UserStatus
from schemas.user import UserCreate, UserUpdate, UserStatusUpdate, UserResponse, RepActivity, UserLogin, Token
from schemas.visits import VisitResponse
from auth import authenticate_user, create_access_token, get_password_hash, ACCESS_TOKEN_EXPIRE_MINUTES
from services import reports
from services import visits as visit_service
from services.errors import LedgerError

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPERADMIN)


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _require_self_or_admin(current_user: User, user: User) -> None:
    """Reps manage their own profile; admins manage reps; only superadmins manage admins."""
    if current_user.id == user.id or current_user.role == UserRole.SUPERADMIN:
        return
    if current_user.role == UserRole.ADMIN and user.role not in ADMIN_ROLES:
        return
    raise HTTPException(status_code=403, detail="Insufficient permissions")


# Authentication endpoints
@router.post("/auth/login", response_model=Token)
def login(user_credentials: UserLogin, db: Session = Depends(get_db)):
    """Exchange username and password for a bearer token"""
    user = authenticate_user(db, user_credentials.username, user_credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.status != UserStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"User account is not active. Status: {user.status.value}"
        )

    expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    logger.info(f"User {user.username} logged in")
    return {
        "access_token": create_access_token(user, expires),
        "token_type": "bearer",
        "expires_in": int(expires.total_seconds())
    }


@router.get("/auth/me", response_model=UserResponse)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user


# Field reps
@router.get("/users", response_model=List[RepActivity])
def get_reps(
    start_date: Optional[date] = Query(None, description="Count visits from this date"),
    end_date: Optional[date] = Query(None, description="Count visits up to this date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Every user with the number of visits recorded and the sales value they carried"""
    try:
        return reports.rep_activity(db, start_date, end_date)
    except LedgerError as e:
        logger.error(f"Error building rep activity: {str(e)}")
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/users", response_model=UserResponse, status_code=201)
def create_rep(
    user: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Register a field rep; admin accounts can only be created by a superadmin"""
    if db.query(User).filter(User.username == user.username).first():
        raise HTTPException(status_code=400, detail="Username already registered")

    if user.role in ADMIN_ROLES and current_user.role != UserRole.SUPERADMIN:
        raise HTTPException(status_code=403, detail="Insufficient permissions to create admin users")

    db_user = User(
        username=user.username,
        password=get_password_hash(user.password),
        full_name=user.full_name,
        territory=user.territory,
        role=user.role,
        status=UserStatus.ACTIVE
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info(f"User {db_user.username} ({db_user.territory or 'no territory'}) created by {current_user.username}")
    return db_user


@router.put("/users/{user_id}", response_model=UserResponse)
def update_rep(
    user_id: int,
    user_update: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Change a rep's name, territory or password"""
    user = _get_user_or_404(db, user_id)
    _require_self_or_admin(current_user, user)

    update_data = user_update.model_dump(exclude_unset=True)
    if "password" in update_data:
        password = update_data.pop("password")
        if password:
            user.password = get_password_hash(password)
    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user


@router.patch("/users/{user_id}/status", response_model=UserResponse)
def set_rep_status(
    user_id: int,
    status_update: UserStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Activate or suspend an account.

    Users are never deleted: visits keep pointing at the rep who recorded them.
    """
    user = _get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot change the status of your own account")
    _require_self_or_admin(current_user, user)

    user.status = status_update.status
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.username} set to {user.status.value} by {current_user.username}")
    return user


@router.get("/users/{user_id}/visits", response_model=List[VisitResponse])
def get_rep_visits(
    user_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Visits recorded by one rep, newest first"""
    user = _get_user_or_404(db, user_id)
    _require_self_or_admin(current_user, user)
    return visit_service.list_visits(db, None, start_date, end_date, skip, limit, rep_id=user.id)
