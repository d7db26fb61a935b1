"""Approval actions: the state machine that moves an expense towards a final decision.

Every action runs in one transaction that first takes a write lock on the
expense row, so two approvers acting on the same expense are serialized and
the aggregate "all steps approved" check never interleaves with another
writer. The acted-on request is transitioned with a compare-and-set on
``status = 'pending'``, which makes a repeated or racing action fail cleanly
instead of overwriting a decision.
"""
from typing import Optional, Tuple
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import and_, case, func
from datetime import datetime
import logging

from app.database.models.expense import Expense, ApprovalRequest
from app.database.models.users import User
from app.database.services.audit_service import AuditRecorder
from app.database.services.expense_service import ExpenseService
from app.integrations.email_service import EmailNotifier, APPROVAL_DECISION
from app.logic.principal import Principal
from app.ReqResModels.approvalmodels import (
    ApprovalAction,
    ApprovalOutcome,
    ApprovalActionResponse,
    PendingApprovalResponse,
    PendingApprovalListResponse,
)
from app.logic.exceptions import (
    NotFoundOrUnauthorizedError,
    InvalidActionStateError,
    DatabaseError
)

logger = logging.getLogger(__name__)

DIRECTOR_OVERRIDE_COMMENT = "Auto-approved via Director override"

PAST_TENSE = {
    ApprovalAction.APPROVE: "approved",
    ApprovalAction.REJECT: "rejected",
}


class ApprovalActionService:

    @staticmethod
    def act(
        db: Session,
        principal: Principal,
        approval_request_id: int,
        action: ApprovalAction,
        comments: Optional[str],
        notifier: EmailNotifier
    ) -> ApprovalActionResponse:
        """Apply an approve or reject decision from the request's own approver"""
        approval = db.query(ApprovalRequest).join(
            Expense, ApprovalRequest.expense_id == Expense.id
        ).filter(
            and_(
                ApprovalRequest.id == approval_request_id,
                ApprovalRequest.approver_id == principal.user_id,
                Expense.company_id == principal.company_id
            )
        ).first()

        if not approval:
            raise NotFoundOrUnauthorizedError("Approval request not found or not authorized")

        expense_id = approval.expense_id
        step_order = approval.step_order

        try:
            expense = ApprovalActionService._lock_expense(db, expense_id)
            if expense.status != "pending":
                raise InvalidActionStateError(f"Expense {expense_id} is already {expense.status}")

            now = datetime.utcnow()
            ApprovalActionService._transition_request(db, approval_request_id, action, comments, now)

            if action == ApprovalAction.REJECT:
                outcome = ApprovalActionService._reject(db, expense, now)
            elif principal.is_director:
                outcome = ApprovalActionService._director_override(db, expense, principal.user_id, now)
            else:
                outcome = ApprovalActionService._approve_step(db, expense, principal.user_id, now)

            db.commit()
            db.refresh(expense)

        except InvalidActionStateError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            raise DatabaseError(f"Failed to process approval: {str(e)}")

        logger.info(
            f"Approval request {approval_request_id} {PAST_TENSE[action]} by user {principal.user_id} "
            f"({principal.role.value}); expense {expense_id} {outcome.value}, "
            f"step {expense.current_approval_step}/{expense.total_approval_steps}"
        )

        AuditRecorder.record_best_effort(
            db,
            company_id=principal.company_id,
            actor_id=principal.user_id,
            expense_id=expense_id,
            action="EXPENSE_APPROVED" if action == ApprovalAction.APPROVE else "EXPENSE_REJECTED",
            details={
                "comments": comments,
                "step": step_order,
                "role": principal.role.value,
                "outcome": outcome.value
            }
        )
        ApprovalActionService._notify_decision(db, notifier, expense, principal, action, comments)

        return ApprovalActionResponse(
            message=f"Expense {PAST_TENSE[action]} successfully",
            expense_id=expense.id,
            approval_request_id=approval_request_id,
            outcome=outcome,
            expense_status=expense.status,
            current_approval_step=expense.current_approval_step,
            total_approval_steps=expense.total_approval_steps,
            director_override=bool(expense.director_override)
        )

    @staticmethod
    def _lock_expense(db: Session, expense_id: int) -> Expense:
        """Take the expense row's write lock and return a fresh copy of it"""
        # The version bump is the first write of the transaction, so it holds the
        # row lock (or SQLite's database write lock) until commit or rollback.
        db.query(Expense).filter(Expense.id == expense_id).update(
            {Expense.version: Expense.version + 1},
            synchronize_session=False
        )
        return db.query(Expense).filter(
            Expense.id == expense_id
        ).populate_existing().with_for_update().one()

    @staticmethod
    def _transition_request(
        db: Session,
        approval_request_id: int,
        action: ApprovalAction,
        comments: Optional[str],
        now: datetime
    ) -> None:
        updated = db.query(ApprovalRequest).filter(
            and_(
                ApprovalRequest.id == approval_request_id,
                ApprovalRequest.status == "pending"
            )
        ).update(
            {
                ApprovalRequest.status: "approved" if action == ApprovalAction.APPROVE else "rejected",
                ApprovalRequest.comments: comments,
                ApprovalRequest.approved_at: now
            },
            synchronize_session=False
        )
        if updated != 1:
            raise InvalidActionStateError(f"Approval request {approval_request_id} has already been processed")

    @staticmethod
    def _reject(db: Session, expense: Expense, now: datetime) -> ApprovalOutcome:
        expense.status = "rejected"
        expense.updated_at = now

        # Close every other open step without approver attribution
        db.query(ApprovalRequest).filter(
            and_(
                ApprovalRequest.expense_id == expense.id,
                ApprovalRequest.status == "pending"
            )
        ).update({ApprovalRequest.status: "rejected"}, synchronize_session=False)
        return ApprovalOutcome.REJECTED

    @staticmethod
    def _director_override(db: Session, expense: Expense, director_id: int, now: datetime) -> ApprovalOutcome:
        ApprovalActionService._finalize(expense, director_id, now)
        expense.director_override = True

        db.query(ApprovalRequest).filter(
            and_(
                ApprovalRequest.expense_id == expense.id,
                ApprovalRequest.status == "pending"
            )
        ).update(
            {
                ApprovalRequest.status: "approved",
                ApprovalRequest.comments: DIRECTOR_OVERRIDE_COMMENT,
                ApprovalRequest.approved_at: now
            },
            synchronize_session=False
        )
        return ApprovalOutcome.OVERRIDDEN

    @staticmethod
    def _approve_step(db: Session, expense: Expense, approver_id: int, now: datetime) -> ApprovalOutcome:
        total, approved, pending = ApprovalActionService._count_requests(db, expense.id)

        if pending == 0 and approved == total:
            ApprovalActionService._finalize(expense, approver_id, now)
            return ApprovalOutcome.FINALIZED

        # Advances the shared counter, independent of which step was just approved
        if expense.current_approval_step < expense.total_approval_steps:
            expense.current_approval_step = expense.current_approval_step + 1
            expense.updated_at = now
            return ApprovalOutcome.ADVANCED

        return ApprovalOutcome.UNCHANGED

    @staticmethod
    def _finalize(expense: Expense, approver_id: int, now: datetime) -> None:
        expense.status = "approved"
        expense.final_approved_at = now
        expense.final_approved_by = approver_id
        expense.current_approval_step = expense.total_approval_steps
        expense.updated_at = now

    @staticmethod
    def _count_requests(db: Session, expense_id: int) -> Tuple[int, int, int]:
        """Return (total, approved, pending) over the expense's approval requests"""
        row = db.query(
            func.count(ApprovalRequest.id),
            func.coalesce(func.sum(case((ApprovalRequest.status == "approved", 1), else_=0)), 0),
            func.coalesce(func.sum(case((ApprovalRequest.status == "pending", 1), else_=0)), 0)
        ).filter(ApprovalRequest.expense_id == expense_id).one()
        return int(row[0]), int(row[1]), int(row[2])

    @staticmethod
    def _notify_decision(
        db: Session,
        notifier: EmailNotifier,
        expense: Expense,
        principal: Principal,
        action: ApprovalAction,
        comments: Optional[str]
    ) -> None:
        try:
            employee = db.query(User).filter(User.id == expense.employee_id).first()
            approver = db.query(User).filter(User.id == principal.user_id).first()
            if not employee:
                return
            notifier.notify(employee.email, APPROVAL_DECISION, {
                "employee_name": employee.name,
                "approver_name": approver.name if approver else "An approver",
                "approver_role": principal.role.value,
                "action": action.value,
                "comments": comments,
                "expense_status": expense.status,
                "expense_id": expense.id,
            })
        except Exception as e:
            logger.error(f"Error sending approval notification for expense {expense.id}: {e}")

    @staticmethod
    def get_pending_approvals(db: Session, principal: Principal) -> PendingApprovalListResponse:
        """Requests the caller can act on now, newest first"""
        approvals = ExpenseService.pending_approvals_query(db, principal.user_id).options(
            joinedload(ApprovalRequest.expense).joinedload(Expense.employee),
            joinedload(ApprovalRequest.expense).joinedload(Expense.category)
        ).filter(
            Expense.company_id == principal.company_id
        ).order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()).all()

        pending = []
        for approval in approvals:
            expense = approval.expense
            pending.append(PendingApprovalResponse(
                approval_request_id=approval.id,
                expense_id=expense.id,
                step_order=approval.step_order,
                employee_id=expense.employee_id,
                employee_name=expense.employee.name,
                employee_email=expense.employee.email,
                category_name=expense.category.name if expense.category else None,
                amount=expense.amount,
                currency=expense.currency,
                converted_amount=expense.converted_amount,
                description=expense.description,
                expense_date=expense.expense_date,
                current_approval_step=expense.current_approval_step,
                total_approval_steps=expense.total_approval_steps,
                created_at=approval.created_at
            ))

        return PendingApprovalListResponse(pending_approvals=pending, total_count=len(pending))
