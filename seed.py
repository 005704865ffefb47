from database import SessionLocal, engine, Base
import models  # noqa: F401  registers every table on Base.metadata
from models.user import User, UserRole, UserStatus
from auth import get_password_hash
from config.settings import settings
from services.stock_ledger import resync_all_stock
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


def create_superadmin():
    """Create superadmin user if none exists and a bootstrap password is configured."""
    db = SessionLocal()
    try:
        existing_superadmin = db.query(User).filter(
            User.role == UserRole.SUPERADMIN
        ).first()

        if existing_superadmin:
            logger.info("Superadmin already exists")
            return existing_superadmin

        if not settings.DEFAULT_ADMIN_PASSWORD:
            logger.warning("No superadmin exists and DEFAULT_ADMIN_PASSWORD is not set; skipping bootstrap user")
            return None

        superadmin = User(
            username=settings.DEFAULT_ADMIN_USERNAME,
            password=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
            role=UserRole.SUPERADMIN,
            status=UserStatus.ACTIVE
        )

        db.add(superadmin)
        db.commit()
        db.refresh(superadmin)

        logger.info(f"Superadmin user {superadmin.username} created successfully")
        return superadmin

    except SQLAlchemyError as e:
        logger.error(f"Error creating superadmin: {e}")
        db.rollback()
        return None
    finally:
        db.close()


def resync_stock_cache():
    """Rebuild cached product stock from the stock log; stale caches are logged and fixed."""
    db = SessionLocal()
    try:
        checked, corrected = resync_all_stock(db)
        db.commit()
        logger.info(f"Stock cache verified for {checked} products, {len(corrected)} corrected")
    except Exception as e:
        logger.error(f"Error resyncing stock cache: {e}")
        db.rollback()
    finally:
        db.close()


def init_database():
    """Initialize database with tables and seed data."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")

        create_superadmin()

        resync_stock_cache()

    except SQLAlchemyError as e:
        logger.error(f"Error initializing database: {e}")


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    init_database()
