from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime
import logging

from app.database.models.audit import AuditLog

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Append-only audit trail of workflow transitions"""

    @staticmethod
    def record(
        db: Session,
        company_id: int,
        actor_id: Optional[int],
        action: str,
        details: Optional[Dict[str, Any]] = None,
        expense_id: Optional[int] = None
    ) -> AuditLog:
        """Add an audit entry to the caller's transaction"""
        entry = AuditLog(
            company_id=company_id,
            user_id=actor_id,
            expense_id=expense_id,
            action=action,
            details=details or {},
            created_at=datetime.utcnow()
        )
        db.add(entry)
        return entry

    @staticmethod
    def record_best_effort(
        db: Session,
        company_id: int,
        actor_id: Optional[int],
        action: str,
        details: Optional[Dict[str, Any]] = None,
        expense_id: Optional[int] = None
    ) -> bool:
        """Write an audit entry in its own transaction; failures are logged, not raised"""
        try:
            AuditRecorder.record(db, company_id, actor_id, action, details, expense_id)
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to record audit entry {action} for expense {expense_id}: {e}")
            return False
