from fastapi import APIRouter, Depends, HTTPException, status as http_status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_principal
from app.database.database import get_db
from app.database.services.approval_action_service import ApprovalActionService
from app.integrations.email_service import EmailNotifier, get_notifier
from app.logic.principal import Principal
from app.ReqResModels.approvalmodels import (
    ApprovalActionRequest,
    ApprovalActionResponse,
    PendingApprovalListResponse,
    ApprovalErrorResponse
)
from app.logic.exceptions import (
    NotFoundOrUnauthorizedError,
    InvalidActionStateError,
    DatabaseError
)

router = APIRouter(
    prefix="/approvals",
    tags=["approvals"],
    responses={
        404: {"model": ApprovalErrorResponse, "description": "Approval request not found or not authorized"},
        409: {"model": ApprovalErrorResponse, "description": "Approval request already processed"},
        500: {"model": ApprovalErrorResponse, "description": "Internal server error"}
    }
)

@router.get(
    "/pending",
    response_model=PendingApprovalListResponse,
    summary="Get pending approvals",
    description="Approval requests assigned to the caller whose step is the expense's current step"
)
def get_pending_approvals(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Get the caller's actionable approval requests"""
    return ApprovalActionService.get_pending_approvals(db, principal)

@router.post(
    "/{approval_request_id}/action",
    response_model=ApprovalActionResponse,
    summary="Approve or reject",
    description="Approve or reject an approval request; a director's approval finalizes the expense immediately"
)
def act_on_approval(
    approval_request_id: int,
    request: ApprovalActionRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier)
):
    """Apply an approval decision"""
    try:
        return ApprovalActionService.act(
            db, principal, approval_request_id, request.action, request.comments, notifier
        )
    except NotFoundOrUnauthorizedError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
    except InvalidActionStateError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail=e.message
        )
    except DatabaseError as e:
        raise HTTPException(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message
        )
