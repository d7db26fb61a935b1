from fastapi import APIRouter, Depends, HTTPException, status as http_status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_principal
from app.database.database import get_db
from app.database.services.company_service import CompanyService
from app.logic.principal import Principal
from app.ReqResModels.companymodels import (
    CreateCompanyRequest,
    CreateCompanyResponse,
    CompanyResponse,
    ErrorResponse,
)
from app.logic.exceptions import (
    CompanyNotFoundError,
    CompanyAlreadyExistsError,
    UserAlreadyExistsError,
    DatabaseError
)

router = APIRouter(
    prefix="/companies",
    tags=["companies"],
    responses={
        404: {"model": ErrorResponse, "description": "Company not found"},
        400: {"model": ErrorResponse, "description": "Bad request"},
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)

@router.post(
    "/",
    response_model=CreateCompanyResponse,
    status_code=http_status.HTTP_201_CREATED,
    summary="Create a new company",
    description="Create a company together with its first administrator and default expense categories"
)
def create_company(
    request: CreateCompanyRequest,
    db: Session = Depends(get_db)
):
    """Create a new company"""
    try:
        return CompanyService.create_company(db, request)
    except (CompanyAlreadyExistsError, UserAlreadyExistsError) as e:
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
    "/me",
    response_model=CompanyResponse,
    summary="Get the caller's company",
    description="Retrieve the company the authenticated user belongs to"
)
def get_my_company(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Get the caller's company"""
    try:
        return CompanyService.get_company_by_id(db, principal.company_id)
    except CompanyNotFoundError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
