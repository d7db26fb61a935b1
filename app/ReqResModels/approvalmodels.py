from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from enum import Enum

class ApprovalAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

class ApprovalOutcome(str, Enum):
    REJECTED = "rejected"
    OVERRIDDEN = "overridden"
    FINALIZED = "finalized"
    ADVANCED = "advanced"
    UNCHANGED = "unchanged"

class ApprovalRuleType(str, Enum):
    SEQUENTIAL = "sequential"
    PERCENTAGE = "percentage"
    SPECIFIC = "specific"
    HYBRID = "hybrid"

# Request Models
class ApprovalActionRequest(BaseModel):
    action: ApprovalAction = Field(..., description="approve or reject")
    comments: Optional[str] = Field(None, max_length=1000, description="Optional comments")

    @field_validator('action', mode='before')
    @classmethod
    def parse_action(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

class CreateRuleStepRequest(BaseModel):
    approver_id: int = Field(..., gt=0, description="Approver user ID")
    approver_role: str = Field(default="specific_user", max_length=50, description="Role the approver acts as")

class CreateApprovalRuleRequest(BaseModel):
    rule_name: str = Field(..., min_length=1, max_length=255, description="Rule name")
    is_manager_approver: bool = Field(default=False, description="Whether the manager approves first")
    approval_type: ApprovalRuleType = Field(default=ApprovalRuleType.SEQUENTIAL)
    percentage_threshold: Optional[Decimal] = Field(None, ge=0, le=100, max_digits=5, decimal_places=2, description="Approval percentage required")
    specific_approver_id: Optional[int] = Field(None, gt=0, description="Approver whose decision is decisive")
    min_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    max_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    approval_steps: List[CreateRuleStepRequest] = Field(default_factory=list)

    @field_validator('approval_type', mode='before')
    @classmethod
    def parse_approval_type(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @model_validator(mode='after')
    def check_ranges(self):
        if self.min_amount is not None and self.max_amount is not None and self.min_amount > self.max_amount:
            raise ValueError('min_amount cannot exceed max_amount')
        if self.approval_type in (ApprovalRuleType.PERCENTAGE, ApprovalRuleType.HYBRID) and self.percentage_threshold is None:
            raise ValueError('percentage_threshold is required for percentage and hybrid rules')
        if self.approval_type in (ApprovalRuleType.SPECIFIC, ApprovalRuleType.HYBRID) and self.specific_approver_id is None:
            raise ValueError('specific_approver_id is required for specific and hybrid rules')
        return self

# Response Models
class ApprovalRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    expense_id: int
    approver_id: int
    approver_name: Optional[str] = None
    approver_email: Optional[str] = None
    approver_role: Optional[str] = None
    step_order: int
    status: str
    comments: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

class ApprovalActionResponse(BaseModel):
    message: str
    expense_id: int
    approval_request_id: int
    outcome: ApprovalOutcome
    expense_status: str
    current_approval_step: int
    total_approval_steps: int
    director_override: bool

class PendingApprovalResponse(BaseModel):
    """Approval request the caller can act on now"""
    approval_request_id: int
    expense_id: int
    step_order: int
    employee_id: int
    employee_name: str
    employee_email: str
    category_name: Optional[str] = None
    amount: Decimal
    currency: str
    converted_amount: Decimal
    description: Optional[str] = None
    expense_date: date
    current_approval_step: int
    total_approval_steps: int
    created_at: datetime

class PendingApprovalListResponse(BaseModel):
    pending_approvals: List[PendingApprovalResponse]
    total_count: int

class RuleStepResponse(BaseModel):
    id: int
    step_order: int
    approver_id: int
    approver_name: Optional[str] = None
    approver_role: str

class ApprovalRuleResponse(BaseModel):
    id: int
    company_id: int
    rule_name: str
    is_manager_approver: bool
    approval_type: str
    percentage_threshold: Optional[Decimal] = None
    specific_approver_id: Optional[int] = None
    specific_approver_name: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    created_at: datetime
    steps: List[RuleStepResponse]

class CreateApprovalRuleResponse(BaseModel):
    message: str
    rule_id: int

# Error Response Models
class ApprovalErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[dict] = None
