from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status
from sqlalchemy.orm import Session
from typing import Optional

from app.api.dependencies import get_current_principal
from app.database.database import get_db
from app.database.services.expense_service import ExpenseService
from app.integrations.currency_service import CurrencyConverter, get_currency_converter
from app.integrations.email_service import EmailNotifier, get_notifier
from app.logic.principal import Principal
from app.ReqResModels.expensemodels import (
    ExpenseSubmitRequest,
    ExpenseSubmitResponse,
    ExpenseDetailResponse,
    ExpenseListResponse,
    ExpenseErrorResponse
)
from app.logic.exceptions import (
    ValidationError,
    NotFoundOrUnauthorizedError,
    DatabaseError
)

router = APIRouter(
    prefix="/expenses",
    tags=["expenses"],
    responses={
        404: {"model": ExpenseErrorResponse, "description": "Expense not found"},
        400: {"model": ExpenseErrorResponse, "description": "Bad request"},
        500: {"model": ExpenseErrorResponse, "description": "Internal server error"}
    }
)

@router.post(
    "/",
    response_model=ExpenseSubmitResponse,
    status_code=http_status.HTTP_201_CREATED,
    summary="Submit a new expense",
    description="Submit an expense; its approval chain is built from the org chart at submission time"
)
def submit_expense(
    request: ExpenseSubmitRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    currency_converter: CurrencyConverter = Depends(get_currency_converter),
    notifier: EmailNotifier = Depends(get_notifier)
):
    """Submit a new expense"""
    try:
        return ExpenseService.submit_expense(db, principal, request, currency_converter, notifier)
    except ValidationError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail=e.message
        )
    except DatabaseError as e:
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message
        )

@router.get(
    "/",
    response_model=ExpenseListResponse,
    summary="List expenses",
    description="Admins see every company expense, approvers see their own, their reports' and the ones they review"
)
def get_expenses(
    status: Optional[str] = Query(None, description="Filter by expense status"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """List expenses visible to the caller"""
    return ExpenseService.list_expenses(db, principal, status)

@router.get(
    "/{expense_id}",
    response_model=ExpenseDetailResponse,
    summary="Get expense by ID",
    description="Retrieve an expense with its approval requests and line items"
)
def get_expense(
    expense_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Get expense by ID"""
    try:
        return ExpenseService.get_expense_detail(db, principal, expense_id)
    except NotFoundOrUnauthorizedError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
