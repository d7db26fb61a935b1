from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Optional
from app.config import settings

# Request Models
class CreateCompanyRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Company name")
    country: Optional[str] = Field(None, min_length=2, max_length=100, description="Country name")
    default_currency: str = Field(default=settings.DEFAULT_CURRENCY, validate_default=True, min_length=3, max_length=3, description="Currency code (ISO 4217)")
    admin_name: str = Field(..., min_length=1, max_length=255, description="Name of the first administrator")
    admin_email: EmailStr = Field(..., description="Email of the first administrator")

    @field_validator('default_currency')
    @classmethod
    def upper_currency(cls, v):
        return v.upper()

class CompanyResponse(BaseModel):
    id: int
    name: str
    country: Optional[str] = None
    default_currency: str
    created_at: str
    updated_at: Optional[str] = None
    user_count: int = 0

class CreateCompanyResponse(CompanyResponse):
    admin_user_id: int

# Error Response Models
class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[dict] = None
