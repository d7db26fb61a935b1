from typing import Callable, Optional
from fastapi import Depends, Header, HTTPException, status as http_status
from sqlalchemy.orm import Session
from sqlalchemy import and_

from app.database.database import get_db
from app.database.models.users import User
from app.logic.exceptions import AuthenticationError, AuthorizationError
from app.logic.principal import Principal, UserRole


def resolve_principal(
    db: Session,
    user_id: Optional[int],
    company_id: Optional[int],
    role_name: Optional[str]
) -> Principal:
    """Check the forwarded identity against the users table"""
    if user_id is None or company_id is None or not role_name:
        raise AuthenticationError("Missing X-User-Id, X-Company-Id or X-Role header")

    try:
        role = UserRole(role_name.lower())
    except ValueError:
        raise AuthenticationError(f"Unknown role '{role_name}'")

    user = db.query(User).filter(
        and_(User.id == user_id, User.company_id == company_id)
    ).first()
    if not user or not user.is_active or user.role != role.value:
        raise AuthenticationError("Invalid or inactive principal")

    return Principal(user_id=user.id, company_id=user.company_id, role=role)


def get_current_principal(
    x_user_id: Optional[int] = Header(None),
    x_company_id: Optional[int] = Header(None),
    x_role: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> Principal:
    """Resolve the authenticated caller forwarded by the identity layer"""
    try:
        return resolve_principal(db, x_user_id, x_company_id, x_role)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=http_status.HTTP_401_UNAUTHORIZED,
            detail=e.message
        )


def check_role(principal: Principal, roles) -> None:
    if principal.role not in roles:
        raise AuthorizationError(
            f"Role '{principal.role.value}' may not perform this operation"
        )


def require_roles(*roles: UserRole) -> Callable[..., Principal]:
    """Dependency that only admits callers holding one of ``roles``"""
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        try:
            check_role(principal, roles)
        except AuthorizationError as e:
            raise HTTPException(
                status_code=http_status.HTTP_403_FORBIDDEN,
                detail=e.message
            )
        return principal
    return dependency
