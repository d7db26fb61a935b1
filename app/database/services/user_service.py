from typing import Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import and_
from datetime import datetime
import logging

from app.database.models.users import User
from app.database.services.audit_service import AuditRecorder
from app.logic.principal import Principal
from app.ReqResModels.usermodels import (
    CreateUserRequest,
    UpdateUserRequest,
    UserResponse,
    CreateUserResponse,
    UpdateUserResponse,
    UserListResponse
)
from app.logic.exceptions import (
    UserNotFoundError,
    UserAlreadyExistsError,
    ValidationError,
    DatabaseError
)

logger = logging.getLogger(__name__)


class UserService:

    @staticmethod
    def create_user(db: Session, principal: Principal, request: CreateUserRequest) -> CreateUserResponse:
        """Create a new user in the caller's company"""
        existing_user = db.query(User).filter(User.email == request.email).first()
        if existing_user:
            raise UserAlreadyExistsError(f"User with email '{request.email}' already exists")

        if request.manager_id:
            UserService._require_company_user(db, principal.company_id, request.manager_id, "Manager")

        try:
            db_user = User(
                company_id=principal.company_id,
                name=request.name,
                email=request.email,
                role=request.role.value,
                manager_id=request.manager_id,
                is_active=True,
                created_at=datetime.utcnow()
            )
            db.add(db_user)
            db.flush()

            AuditRecorder.record(
                db,
                company_id=principal.company_id,
                actor_id=principal.user_id,
                action="USER_CREATED",
                details={"user_id": db_user.id, "email": request.email, "role": request.role.value}
            )

            db.commit()
            db.refresh(db_user)

        except Exception as e:
            db.rollback()
            raise DatabaseError(f"Failed to create user: {str(e)}")

        logger.info(f"User {db_user.id} created in company {principal.company_id} as {db_user.role}")
        return UserService._model_to_response(db_user, CreateUserResponse)

    @staticmethod
    def get_users(db: Session, principal: Principal) -> UserListResponse:
        """List users of the caller's company, newest first"""
        users = db.query(User).options(joinedload(User.manager)).filter(
            User.company_id == principal.company_id
        ).order_by(User.created_at.desc(), User.id.desc()).all()

        return UserListResponse(
            users=[UserService._model_to_response(u, UserResponse) for u in users],
            total=len(users)
        )

    @staticmethod
    def update_user(db: Session, principal: Principal, user_id: int, request: UpdateUserRequest) -> UpdateUserResponse:
        """Update role, manager, name or active flag of a company user"""
        user = UserService._require_company_user(db, principal.company_id, user_id, "User")

        update_data = request.model_dump(exclude_unset=True)
        if update_data.get("manager_id"):
            if update_data["manager_id"] == user_id:
                raise ValidationError("A user cannot be their own manager")
            UserService._require_company_user(db, principal.company_id, update_data["manager_id"], "Manager")

        try:
            for field, value in update_data.items():
                if field == "role" and value is not None:
                    value = value.value
                setattr(user, field, value)
            user.updated_at = datetime.utcnow()

            AuditRecorder.record(
                db,
                company_id=principal.company_id,
                actor_id=principal.user_id,
                action="USER_UPDATED",
                details={
                    "user_id": user_id,
                    "role": user.role,
                    "manager_id": user.manager_id,
                    "is_active": user.is_active
                }
            )

            db.commit()
            db.refresh(user)

        except Exception as e:
            db.rollback()
            raise DatabaseError(f"Failed to update user: {str(e)}")

        return UserService._model_to_response(user, UpdateUserResponse)

    @staticmethod
    def _require_company_user(db: Session, company_id: int, user_id: int, label: str) -> User:
        user = db.query(User).filter(
            and_(User.id == user_id, User.company_id == company_id)
        ).first()
        if not user:
            if label == "User":
                raise UserNotFoundError(f"User with ID {user_id} not found")
            raise ValidationError(f"{label} with ID {user_id} not found in the same company")
        return user

    @staticmethod
    def _model_to_response(user: User, response_type, manager_name: Optional[str] = None):
        """Convert SQLAlchemy model to Pydantic response model"""
        if manager_name is None and user.manager is not None:
            manager_name = user.manager.name

        return response_type(
            id=user.id,
            company_id=user.company_id,
            name=user.name,
            email=user.email,
            role=user.role,
            manager_id=user.manager_id,
            manager_name=manager_name,
            is_active=bool(user.is_active),
            created_at=user.created_at.isoformat(),
            updated_at=user.updated_at.isoformat() if user.updated_at else None
        )
