from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from app.database.models.users import User
from app.logic.principal import UserRole


class SqlRoleDirectory:
    """Role lookups backed by the users table"""

    def __init__(self, db: Session):
        self.db = db

    def find_manager_of(self, employee_id: int) -> Optional[int]:
        """Return the manager assigned to the employee, if any"""
        row = self.db.query(User.manager_id).filter(User.id == employee_id).first()
        return row.manager_id if row else None

    def find_active_holder_of_role(self, company_id: int, role: UserRole) -> Optional[int]:
        """Return the lowest-id active user holding ``role`` in the company"""
        row = self.db.query(User.id).filter(
            and_(
                User.company_id == company_id,
                User.role == UserRole(role).value,
                User.is_active.is_(True)
            )
        ).order_by(User.id).first()
        return row.id if row else None
