from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    FINANCE = "finance"
    DIRECTOR = "director"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a request."""
    user_id: int
    company_id: int
    role: UserRole

    @property
    def is_director(self) -> bool:
        return self.role == UserRole.DIRECTOR
