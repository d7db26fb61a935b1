from fastapi import APIRouter, Depends, HTTPException, status as http_status
from sqlalchemy.orm import Session

from app.api.dependencies import require_roles
from app.database.database import get_db
from app.database.services.user_service import UserService
from app.logic.principal import Principal, UserRole
from app.ReqResModels.usermodels import (
    CreateUserRequest,
    UpdateUserRequest,
    CreateUserResponse,
    UpdateUserResponse,
    UserListResponse,
    UserErrorResponse,
)
from app.logic.exceptions import (
    UserNotFoundError,
    UserAlreadyExistsError,
    ValidationError,
    DatabaseError
)

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={
        404: {"model": UserErrorResponse, "description": "User not found"},
        400: {"model": UserErrorResponse, "description": "Bad request"},
        500: {"model": UserErrorResponse, "description": "Internal server error"}
    }
)

@router.post(
    "/",
    response_model=CreateUserResponse,
    status_code=http_status.HTTP_201_CREATED,
    summary="Create a new user",
    description="Create a user in the administrator's company"
)
def create_user(
    request: CreateUserRequest,
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Create a new user"""
    try:
        return UserService.create_user(db, principal, request)
    except (UserAlreadyExistsError, ValidationError) as e:
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
    response_model=UserListResponse,
    summary="List company users",
    description="List every user of the caller's company with their manager"
)
def get_users(
    principal: Principal = Depends(
        require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.FINANCE, UserRole.DIRECTOR)
    ),
    db: Session = Depends(get_db)
):
    """List company users"""
    return UserService.get_users(db, principal)

@router.put(
    "/{user_id}",
    response_model=UpdateUserResponse,
    summary="Update user",
    description="Change a user's role, manager, name or active flag"
)
def update_user(
    user_id: int,
    request: UpdateUserRequest,
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """Update user information"""
    try:
        return UserService.update_user(db, principal, user_id, request)
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail=e.message
        )
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
