"""Construction of the approval chain an expense must traverse.

The chain is fixed by organisational hierarchy and functional roles:
the employee's manager, then the company's finance, director and admin
users. Any stage that cannot be resolved is skipped, and step orders stay
contiguous over the stages that are present.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol
import logging

from app.logic.principal import UserRole

logger = logging.getLogger(__name__)

# Functional stages appended after the manager, in order
CHAIN_ROLES = (UserRole.FINANCE, UserRole.DIRECTOR, UserRole.ADMIN)


@dataclass(frozen=True)
class ApprovalChainEntry:
    approver_id: int
    step_order: int


class RoleDirectory(Protocol):
    """Resolves who currently holds each approval role."""

    def find_manager_of(self, employee_id: int) -> Optional[int]:
        ...

    def find_active_holder_of_role(self, company_id: int, role: UserRole) -> Optional[int]:
        ...


class ApprovalChainBuilder:

    def __init__(self, role_directory: RoleDirectory):
        self.role_directory = role_directory

    def build_chain(self, company_id: int, employee_id: int) -> List[ApprovalChainEntry]:
        """Return the ordered approvers for a new expense of ``employee_id``."""
        approver_ids = []

        manager_id = self.role_directory.find_manager_of(employee_id)
        if manager_id is not None:
            approver_ids.append(manager_id)

        for role in CHAIN_ROLES:
            holder_id = self.role_directory.find_active_holder_of_role(company_id, role)
            if holder_id is not None:
                approver_ids.append(holder_id)

        chain = [
            ApprovalChainEntry(approver_id=approver_id, step_order=index)
            for index, approver_id in enumerate(approver_ids, start=1)
        ]
        logger.debug(f"Built approval chain for employee {employee_id}: {chain}")
        return chain
