from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_principal
from app.database.database import get_db
from app.database.services.expense_service import ExpenseService
from app.logic.principal import Principal
from app.ReqResModels.expensemodels import DashboardStatsResponse, ExpenseListResponse

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"]
)

@router.get(
    "/stats",
    response_model=DashboardStatsResponse,
    response_model_exclude_none=True,
    summary="Get dashboard statistics",
    description="Company totals for admins, actionable approvals for approvers, own totals for employees"
)
def get_dashboard_stats(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return ExpenseService.get_dashboard_stats(db, principal)

@router.get(
    "/recent-expenses",
    response_model=ExpenseListResponse,
    summary="Get recent expenses",
    description="The five most recent expenses visible to the caller"
)
def get_recent_expenses(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return ExpenseService.get_recent_expenses(db, principal)
