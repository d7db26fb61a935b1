from sqlalchemy import text, inspect
from app.database.database import engine as default_engine, Base
# Imported so every table is registered on Base.metadata
from app.database.models.users import User, Company, ExpenseCategory  # noqa: F401
from app.database.models.expense import Expense, ExpenseLineItem, ApprovalRequest  # noqa: F401
from app.database.models.approval import ApprovalRule, ApprovalRuleStep  # noqa: F401
from app.database.models.audit import AuditLog  # noqa: F401
import logging

logger = logging.getLogger(__name__)

# Columns added after the first release; older databases get them on startup
EXPECTED_COLUMNS = {
    "users": {
        "is_active": "BOOLEAN NOT NULL DEFAULT TRUE",
        "updated_at": "TIMESTAMP",
    },
    "companies": {
        "updated_at": "TIMESTAMP",
    },
    "expenses": {
        "current_approval_step": "INTEGER NOT NULL DEFAULT 1",
        "total_approval_steps": "INTEGER NOT NULL DEFAULT 0",
        "final_approved_at": "TIMESTAMP",
        "final_approved_by": "INTEGER",
        "director_override": "BOOLEAN NOT NULL DEFAULT FALSE",
        "version": "INTEGER NOT NULL DEFAULT 0",
    },
}


def has_column(table_name: str, column_name: str, engine=None) -> bool:
    """Check if a table has a specific column"""
    inspector = inspect(engine or default_engine)
    if not inspector.has_table(table_name):
        return False
    return column_name in [col["name"] for col in inspector.get_columns(table_name)]


def add_column_if_not_exists(table_name: str, column_name: str, column_type: str, engine=None):
    """Add a column to a table if it doesn't exist"""
    engine = engine or default_engine
    if has_column(table_name, column_name, engine):
        return False
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {column_type}"))
    logger.info(f"Added column {column_name} to {table_name} table")
    return True


def check_and_add_missing_columns(engine=None):
    """Check for missing columns and add them if necessary"""
    logger.info("Checking for missing database columns...")
    for table_name, columns in EXPECTED_COLUMNS.items():
        for col_name, col_type in columns.items():
            add_column_if_not_exists(table_name, col_name, col_type, engine)
    logger.info("Column verification completed")


def create_tables_if_not_exist(engine=None):
    """Create tables if they don't exist"""
    Base.metadata.create_all(bind=engine or default_engine)
    logger.info("Database tables created/verified")


def run_migration(engine=None):
    """Run complete database migration"""
    logger.info("Starting database migration...")

    # Create tables first
    create_tables_if_not_exist(engine)

    # Then add missing columns
    check_and_add_missing_columns(engine)

    logger.info("Database migration completed!")
