import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("INVOICE_RETRY_BACKOFF_SECONDS", "0")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from auth import get_password_hash
from database import Base, get_db
from dependencies import get_current_user
from main import app
from models.doctors import Doctor
from models.user import User, UserRole, UserStatus
from services.stock_ledger import record_opening_stock


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite opens transactions lazily and breaks SAVEPOINT; take over BEGIN ourselves
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_user(db):
    user = User(
        username="admin",
        password=get_password_hash("secret123"),
        role=UserRole.SUPERADMIN,
        status=UserStatus.ACTIVE
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def anon_client(db):
    """Client that goes through real JWT authentication."""
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def client(db, admin_user):
    """Client authenticated as a superadmin."""
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: admin_user
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def doctor(db):
    doctor = Doctor(name="Dr. Mehta", contact_type="doctor", specialization="Cardiology")
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


@pytest.fixture
def make_product(db):
    from models.products import Product

    def _make(name="Paracetamol 500", opening_stock=100, price="12.50"):
        product = Product(name=name, company_name="Acme Pharma", price=Decimal(price))
        db.add(product)
        db.flush()
        record_opening_stock(db, product.id, opening_stock, day=date.today())
        db.commit()
        db.refresh(product)
        return product

    return _make
