from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

# Largest value a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")
CENTS = Decimal("0.01")

# Request Models
class ExpenseLineItemRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=255, description="Line item description")
    quantity: Decimal = Field(default=Decimal("1"), gt=0, max_digits=10, decimal_places=2, description="Quantity")
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Price per unit")
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2, description="Line total, defaults to quantity x unit price")

    @model_validator(mode='after')
    def fill_line_total(self):
        if self.amount is None:
            self.amount = (self.quantity * self.unit_price).quantize(CENTS)
        if self.amount > MAX_AMOUNT:
            raise ValueError('Line total exceeds the maximum amount')
        return self

class ExpenseSubmitRequest(BaseModel):
    category_id: int = Field(..., gt=0, description="Expense category ID")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount of the expense")
    currency: str = Field(..., min_length=3, max_length=3, description="Currency code (ISO 4217)")
    description: Optional[str] = Field(None, max_length=2000, description="Expense description")
    expense_date: date = Field(..., description="Date when the expense occurred")
    merchant_name: Optional[str] = Field(None, max_length=255, description="Merchant name")
    line_items: List[ExpenseLineItemRequest] = Field(default_factory=list)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        if not v.isalpha():
            raise ValueError('Currency must be a 3-letter ISO code')
        return v.upper()

    @field_validator('expense_date')
    @classmethod
    def validate_expense_date(cls, v):
        if v > date.today():
            raise ValueError('Expense date cannot be in the future')
        return v

# Response Models
class ExpenseLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal

class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    employee_id: int
    employee_name: Optional[str] = None
    category_id: int
    category_name: Optional[str] = None
    amount: Decimal
    currency: str
    converted_amount: Decimal
    description: Optional[str] = None
    expense_date: date
    merchant_name: Optional[str] = None
    status: str
    current_approval_step: int
    total_approval_steps: int
    approved_count: int = 0
    my_approval_status: Optional[str] = None
    final_approved_at: Optional[datetime] = None
    final_approved_by: Optional[int] = None
    director_override: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

class ExpenseDetailResponse(BaseModel):
    """Expense with its approval trail and line items"""
    expense: ExpenseResponse
    approvals: List["ApprovalRequestResponse"] = []
    line_items: List[ExpenseLineItemResponse] = []

class ExpenseListResponse(BaseModel):
    expenses: List[ExpenseResponse]
    total_count: int

class ExpenseSubmitResponse(BaseModel):
    expense_id: int
    message: str
    status: str
    approval_steps: int
    converted_amount: Decimal
    created_at: datetime

class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None

class DashboardStatsResponse(BaseModel):
    """Role-scoped statistics; only the fields relevant to the caller are set"""
    total_expenses: Optional[int] = None
    total_amount: Optional[Decimal] = None
    pending_expenses: Optional[int] = None
    approved_expenses: Optional[int] = None
    approved_amount: Optional[Decimal] = None
    pending_approvals: Optional[int] = None
    my_expenses: Optional[int] = None
    my_total: Optional[Decimal] = None
    my_pending: Optional[int] = None
    my_approved: Optional[int] = None

# Error Response
class ExpenseErrorResponse(BaseModel):
    error: str
    detail: str
    expense_id: Optional[int] = None

# Import the approval models to avoid circular imports
from app.ReqResModels.approvalmodels import ApprovalRequestResponse  # noqa: E402

# Update forward references
ExpenseDetailResponse.model_rebuild()
