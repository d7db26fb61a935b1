from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.api.dependencies import get_current_principal
from app.database.database import get_db
from app.database.services.expense_service import ExpenseService
from app.integrations.currency_service import list_currencies
from app.logic.principal import Principal
from app.ReqResModels.expensemodels import CategoryResponse

router = APIRouter(tags=["reference"])

@router.get(
    "/categories",
    response_model=List[CategoryResponse],
    summary="List expense categories",
    description="Active expense categories of the caller's company"
)
def get_categories(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    return ExpenseService.list_categories(db, principal.company_id)

@router.get(
    "/currencies",
    response_model=List[str],
    summary="List currency codes",
    description="Currency codes in use worldwide, with a short fallback list when the lookup fails"
)
def get_currencies():
    return list_currencies()
