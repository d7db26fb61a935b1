from sqlalchemy import Column, Integer, Numeric, String, ForeignKey, Boolean, TIMESTAMP
from sqlalchemy.orm import relationship
from app.database.database import Base
from datetime import datetime

class ApprovalRule(Base):
    """Company approval policy. Stored for administrators, not used to build chains."""
    __tablename__ = "approval_rules"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    rule_name = Column(String(255), nullable=False)
    is_manager_approver = Column(Boolean, default=False)
    approval_type = Column(String(50), nullable=False, default="sequential")  # sequential, percentage, specific, hybrid
    percentage_threshold = Column(Numeric(5, 2), nullable=True)
    specific_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    min_amount = Column(Numeric(12, 2), nullable=True)
    max_amount = Column(Numeric(12, 2), nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=True)

    specific_approver = relationship("User", foreign_keys=[specific_approver_id])
    steps = relationship(
        "ApprovalRuleStep",
        back_populates="approval_rule",
        cascade="all, delete-orphan",
        order_by="ApprovalRuleStep.step_order"
    )


class ApprovalRuleStep(Base):
    __tablename__ = "approval_rule_steps"
    id = Column(Integer, primary_key=True, index=True)
    step_order = Column(Integer, nullable=False) # 1, 2, 3 if sequential

    approval_rule_id = Column(Integer, ForeignKey("approval_rules.id", ondelete="CASCADE"), nullable=False)
    approval_rule = relationship("ApprovalRule", back_populates="steps")

    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False) # user who approves in this step
    approver = relationship("User")

    approver_role = Column(String(50), nullable=False, default="specific_user")
