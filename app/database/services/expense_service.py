from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import and_, or_, func, select
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
import logging

from app.database.models.expense import Expense, ExpenseLineItem, ApprovalRequest
from app.database.models.users import User, Company, ExpenseCategory
from app.database.services.audit_service import AuditRecorder
from app.database.services.role_directory import SqlRoleDirectory
from app.integrations.currency_service import CurrencyConverter
from app.integrations.email_service import EmailNotifier, SUBMISSION_CONFIRMATION, APPROVER_ALERT
from app.logic.approval_chain import ApprovalChainBuilder, ApprovalChainEntry, RoleDirectory
from app.logic.principal import Principal, UserRole
from app.ReqResModels.expensemodels import (
    ExpenseSubmitRequest,
    ExpenseSubmitResponse,
    ExpenseResponse,
    ExpenseDetailResponse,
    ExpenseListResponse,
    ExpenseLineItemResponse,
    CategoryResponse,
    DashboardStatsResponse,
    MAX_AMOUNT,
)
from app.ReqResModels.approvalmodels import ApprovalRequestResponse
from app.logic.exceptions import (
    ValidationError,
    NotFoundOrUnauthorizedError,
    DatabaseError
)

logger = logging.getLogger(__name__)

REVIEWER_ROLES = (UserRole.MANAGER, UserRole.FINANCE, UserRole.DIRECTOR)
RECENT_EXPENSES_LIMIT = 5


class ExpenseService:
    """Service class for handling expense-related operations"""

    @staticmethod
    def submit_expense(
        db: Session,
        principal: Principal,
        request: ExpenseSubmitRequest,
        currency_converter: CurrencyConverter,
        notifier: EmailNotifier,
        role_directory: Optional[RoleDirectory] = None
    ) -> ExpenseSubmitResponse:
        """Create an expense and its approval requests in one transaction"""
        employee = db.query(User).filter(
            and_(User.id == principal.user_id, User.company_id == principal.company_id)
        ).first()
        if not employee:
            raise ValidationError(f"User {principal.user_id} does not belong to company {principal.company_id}")

        company = db.query(Company).filter(Company.id == principal.company_id).first()
        if not company:
            raise ValidationError(f"Company with ID {principal.company_id} not found")

        category = db.query(ExpenseCategory).filter(
            and_(
                ExpenseCategory.id == request.category_id,
                ExpenseCategory.company_id == principal.company_id,
                ExpenseCategory.is_active.is_(True)
            )
        ).first()
        if not category:
            raise ValidationError(f"Category with ID {request.category_id} is not available")

        # Best effort: the converter hands back the original amount when no rate is known
        converted_amount = currency_converter.convert(request.amount, request.currency, company.default_currency)
        if converted_amount > MAX_AMOUNT:
            raise ValidationError(
                f"Amount {request.amount} {request.currency} exceeds the maximum in {company.default_currency}"
            )

        try:
            now = datetime.utcnow()
            expense = Expense(
                company_id=principal.company_id,
                employee_id=principal.user_id,
                category_id=category.id,
                amount=request.amount,
                currency=request.currency,
                converted_amount=converted_amount,
                description=request.description,
                expense_date=request.expense_date,
                merchant_name=request.merchant_name,
                status="pending",
                current_approval_step=1,
                total_approval_steps=0,
                director_override=False,
                version=0,
                created_at=now
            )
            db.add(expense)
            db.flush()  # Get the ID

            for item in request.line_items:
                db.add(ExpenseLineItem(
                    expense_id=expense.id,
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    amount=item.amount
                ))

            builder = ApprovalChainBuilder(role_directory or SqlRoleDirectory(db))
            chain = builder.build_chain(principal.company_id, principal.user_id)
            expense.total_approval_steps = len(chain)

            for entry in chain:
                db.add(ApprovalRequest(
                    expense_id=expense.id,
                    approver_id=entry.approver_id,
                    step_order=entry.step_order,
                    status="pending",
                    created_at=now
                ))

            AuditRecorder.record(
                db,
                company_id=principal.company_id,
                actor_id=principal.user_id,
                expense_id=expense.id,
                action="EXPENSE_SUBMITTED",
                details={
                    "amount": str(request.amount),
                    "currency": request.currency,
                    "category_id": category.id,
                    "steps": len(chain)
                }
            )

            db.commit()
            db.refresh(expense)

        except Exception as e:
            db.rollback()
            raise DatabaseError(f"Failed to submit expense: {str(e)}")

        if not chain:
            logger.warning(
                f"Expense {expense.id} has no approvers; it stays pending until the company "
                f"assigns a manager or a finance, director or admin user"
            )
        logger.info(f"Expense {expense.id} submitted by user {principal.user_id} with {len(chain)} approval steps")

        ExpenseService._notify_submission(db, notifier, expense, employee, category, chain)

        return ExpenseSubmitResponse(
            expense_id=expense.id,
            message="Expense submitted successfully",
            status=expense.status,
            approval_steps=len(chain),
            converted_amount=expense.converted_amount,
            created_at=expense.created_at
        )

    @staticmethod
    def _notify_submission(
        db: Session,
        notifier: EmailNotifier,
        expense: Expense,
        employee: User,
        category: ExpenseCategory,
        chain: List[ApprovalChainEntry]
    ) -> None:
        """Tell the employee and the first approver; failures never reach the caller"""
        context = {
            "employee_name": employee.name,
            "amount": expense.amount,
            "currency": expense.currency,
            "category_name": category.name,
            "approval_steps": len(chain),
            "expense_id": expense.id,
        }
        try:
            notifier.notify(employee.email, SUBMISSION_CONFIRMATION, context)

            if chain:
                approver = db.query(User).filter(User.id == chain[0].approver_id).first()
                if approver:
                    notifier.notify(approver.email, APPROVER_ALERT, {**context, "approver_name": approver.name})
        except Exception as e:
            logger.error(f"Error sending expense submission email for expense {expense.id}: {e}")

    @staticmethod
    def get_expense_detail(db: Session, principal: Principal, expense_id: int) -> ExpenseDetailResponse:
        """Get an expense of the caller's company with approvals and line items"""
        expense = db.query(Expense).options(
            joinedload(Expense.employee),
            joinedload(Expense.category),
            selectinload(Expense.line_items),
            selectinload(Expense.approval_requests).joinedload(ApprovalRequest.approver)
        ).filter(
            and_(Expense.id == expense_id, Expense.company_id == principal.company_id)
        ).first()

        if not expense:
            raise NotFoundOrUnauthorizedError(f"Expense with ID {expense_id} not found")

        return ExpenseDetailResponse(
            expense=ExpenseService._build_expense_response(expense, principal.user_id),
            approvals=[ExpenseService.build_approval_response(a) for a in expense.approval_requests],
            line_items=[ExpenseLineItemResponse.model_validate(item) for item in expense.line_items]
        )

    @staticmethod
    def _scoped_query(db: Session, principal: Principal):
        """Expenses visible to the caller: all for admins, own and reviewed for approvers, own otherwise"""
        query = db.query(Expense).options(
            joinedload(Expense.employee),
            joinedload(Expense.category),
            selectinload(Expense.approval_requests)
        ).filter(Expense.company_id == principal.company_id)

        if principal.role == UserRole.ADMIN:
            return query

        if principal.role in REVIEWER_ROLES:
            reviewed_ids = select(ApprovalRequest.expense_id).where(
                ApprovalRequest.approver_id == principal.user_id
            )
            report_ids = select(User.id).where(User.manager_id == principal.user_id)
            return query.filter(
                or_(
                    Expense.employee_id == principal.user_id,
                    Expense.employee_id.in_(report_ids),
                    Expense.id.in_(reviewed_ids)
                )
            )

        return query.filter(Expense.employee_id == principal.user_id)

    @staticmethod
    def list_expenses(db: Session, principal: Principal, status: Optional[str] = None) -> ExpenseListResponse:
        """List the caller's visible expenses, newest first"""
        query = ExpenseService._scoped_query(db, principal)
        if status:
            query = query.filter(Expense.status == status)

        expenses = query.order_by(Expense.created_at.desc(), Expense.id.desc()).all()
        return ExpenseListResponse(
            expenses=[ExpenseService._build_expense_response(e, principal.user_id) for e in expenses],
            total_count=len(expenses)
        )

    @staticmethod
    def get_recent_expenses(db: Session, principal: Principal) -> ExpenseListResponse:
        expenses = ExpenseService._scoped_query(db, principal).order_by(
            Expense.created_at.desc(), Expense.id.desc()
        ).limit(RECENT_EXPENSES_LIMIT).all()
        return ExpenseListResponse(
            expenses=[ExpenseService._build_expense_response(e, principal.user_id) for e in expenses],
            total_count=len(expenses)
        )

    @staticmethod
    def get_dashboard_stats(db: Session, principal: Principal) -> DashboardStatsResponse:
        """Get statistics relevant to the caller's role"""
        if principal.role == UserRole.ADMIN:
            query = db.query(Expense).filter(Expense.company_id == principal.company_id)
            approved = query.filter(Expense.status == "approved")
            return DashboardStatsResponse(
                total_expenses=query.count(),
                total_amount=query.with_entities(func.sum(Expense.converted_amount)).scalar() or Decimal("0"),
                pending_expenses=query.filter(Expense.status == "pending").count(),
                approved_expenses=approved.count(),
                approved_amount=approved.with_entities(func.sum(Expense.converted_amount)).scalar() or Decimal("0")
            )

        if principal.role in REVIEWER_ROLES:
            pending_approvals = ExpenseService.pending_approvals_query(db, principal.user_id).count()
            return DashboardStatsResponse(pending_approvals=pending_approvals)

        query = db.query(Expense).filter(Expense.employee_id == principal.user_id)
        return DashboardStatsResponse(
            my_expenses=query.count(),
            my_total=query.with_entities(func.sum(Expense.amount)).scalar() or Decimal("0"),
            my_pending=query.filter(Expense.status == "pending").count(),
            my_approved=query.filter(Expense.status == "approved").count()
        )

    @staticmethod
    def pending_approvals_query(db: Session, approver_id: int):
        """Requests awaiting ``approver_id`` whose step is the expense's current step"""
        return db.query(ApprovalRequest).join(
            Expense, ApprovalRequest.expense_id == Expense.id
        ).filter(
            and_(
                ApprovalRequest.approver_id == approver_id,
                ApprovalRequest.status == "pending",
                Expense.status == "pending",
                ApprovalRequest.step_order == Expense.current_approval_step
            )
        )

    @staticmethod
    def list_categories(db: Session, company_id: int) -> List[CategoryResponse]:
        categories = db.query(ExpenseCategory).filter(
            and_(ExpenseCategory.company_id == company_id, ExpenseCategory.is_active.is_(True))
        ).order_by(ExpenseCategory.name).all()
        return [CategoryResponse.model_validate(c) for c in categories]

    @staticmethod
    def build_approval_response(approval: ApprovalRequest) -> ApprovalRequestResponse:
        approver = approval.approver
        return ApprovalRequestResponse(
            id=approval.id,
            expense_id=approval.expense_id,
            approver_id=approval.approver_id,
            approver_name=approver.name if approver else None,
            approver_email=approver.email if approver else None,
            approver_role=approver.role if approver else None,
            step_order=approval.step_order,
            status=approval.status,
            comments=approval.comments,
            approved_at=approval.approved_at,
            created_at=approval.created_at
        )

    @staticmethod
    def _build_expense_response(expense: Expense, viewer_id: Optional[int] = None) -> ExpenseResponse:
        """Build expense response from database model"""
        approvals = expense.approval_requests or []
        mine = next((a for a in approvals if a.approver_id == viewer_id), None)

        return ExpenseResponse(
            id=expense.id,
            company_id=expense.company_id,
            employee_id=expense.employee_id,
            employee_name=expense.employee.name if expense.employee else None,
            category_id=expense.category_id,
            category_name=expense.category.name if expense.category else None,
            amount=expense.amount,
            currency=expense.currency,
            converted_amount=expense.converted_amount,
            description=expense.description,
            expense_date=expense.expense_date,
            merchant_name=expense.merchant_name,
            status=expense.status,
            current_approval_step=expense.current_approval_step,
            total_approval_steps=expense.total_approval_steps,
            approved_count=sum(1 for a in approvals if a.status == "approved"),
            my_approval_status=mine.status if mine else None,
            final_approved_at=expense.final_approved_at,
            final_approved_by=expense.final_approved_by,
            director_override=bool(expense.director_override),
            created_at=expense.created_at,
            updated_at=expense.updated_at
        )
