from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import Optional, List

from app.logic.principal import UserRole

# Request Models
class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="User full name")
    email: EmailStr = Field(..., description="User email address")
    role: UserRole = Field(default=UserRole.EMPLOYEE, description="User role")
    manager_id: Optional[int] = Field(None, gt=0, description="Manager ID (optional)")

class UpdateUserRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    manager_id: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None

# Response Models
class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    name: str
    email: str
    role: str
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None
    is_active: bool
    created_at: str
    updated_at: Optional[str] = None

class CreateUserResponse(UserResponse):
    pass

class UpdateUserResponse(UserResponse):
    pass

class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int

# Error Response Models
class UserErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[dict] = None
