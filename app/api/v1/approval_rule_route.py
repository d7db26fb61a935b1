from fastapi import APIRouter, Depends, HTTPException, status as http_status
from sqlalchemy.orm import Session
from typing import List

from app.api.dependencies import require_roles
from app.database.database import get_db
from app.database.services.approval_rule_service import ApprovalRuleService
from app.logic.principal import Principal, UserRole
from app.ReqResModels.approvalmodels import (
    CreateApprovalRuleRequest,
    CreateApprovalRuleResponse,
    ApprovalRuleResponse,
    ApprovalErrorResponse
)
from app.logic.exceptions import (
    ValidationError,
    DatabaseError
)

router = APIRouter(
    prefix="/approval-rules",
    tags=["approval-rules"],
    responses={
        400: {"model": ApprovalErrorResponse, "description": "Bad request"},
        500: {"model": ApprovalErrorResponse, "description": "Internal server error"}
    }
)

@router.post(
    "/",
    response_model=CreateApprovalRuleResponse,
    status_code=http_status.HTTP_201_CREATED,
    summary="Create a new approval rule",
    description="Store an approval rule with its ordered approvers"
)
def create_approval_rule(
    request: CreateApprovalRuleRequest,
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Create a new approval rule"""
    try:
        return ApprovalRuleService.create_approval_rule(db, principal, request)
    except ValidationError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail=f"Validation error: {e.message}"
        )
    except DatabaseError as e:
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {e.message}"
        )

@router.get(
    "/",
    response_model=List[ApprovalRuleResponse],
    summary="List approval rules",
    description="List the company's approval rules ordered by minimum amount"
)
def get_approval_rules(
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """List approval rules"""
    return ApprovalRuleService.get_approval_rules(db, principal)
