from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
import logging

from app.config import settings

logger = logging.getLogger(__name__)

# Database configuration
DATABASE_URL = settings.DATABASE_URL
if not DATABASE_URL:
    DATABASE_URL = "sqlite:///./expense_approval.db"
    logger.warning("No DATABASE_URL found, using SQLite fallback")


def build_engine(database_url: str):
    """Create an engine tuned for the configured backend"""
    if database_url.startswith("postgresql"):
        engine_kwargs = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 1800,  # Recycle connections every 30 minutes
            "pool_pre_ping": True,  # Validate connections before use
            "echo": False,
            "connect_args": {
                "connect_timeout": 10,
                "application_name": "expense_approval_api"
            }
        }
        logger.info("Creating PostgreSQL engine")
        return create_engine(database_url, **engine_kwargs)

    # SQLite: sessions are handed across request threads
    logger.info("Using SQLite database")
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=False
    )


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Test database connection
def test_connection():
    """Test database connection on startup"""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            connection.commit()
        logger.info("Database connection test successful")
        return True
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        return False
