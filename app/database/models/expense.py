from sqlalchemy import Column, Integer, Numeric, String, ForeignKey, Text, Date, Boolean, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database.database import Base
from datetime import datetime

class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("expense_categories.id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    converted_amount = Column(Numeric(12, 2), nullable=False)  # in the company default currency
    description = Column(Text)
    expense_date = Column(Date, nullable=False)
    merchant_name = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default="pending")  # pending, approved, rejected
    current_approval_step = Column(Integer, nullable=False, default=1)
    total_approval_steps = Column(Integer, nullable=False, default=0)
    final_approved_at = Column(TIMESTAMP, nullable=True)
    final_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    director_override = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=True)

    # Relationships
    employee = relationship("User", foreign_keys=[employee_id])
    category = relationship("ExpenseCategory")
    line_items = relationship("ExpenseLineItem", back_populates="expense", cascade="all, delete-orphan")
    approval_requests = relationship(
        "ApprovalRequest",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ApprovalRequest.step_order"
    )


class ExpenseLineItem(Base):
    __tablename__ = "expense_line_items"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    expense = relationship("Expense", back_populates="line_items")


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"
    __table_args__ = (
        UniqueConstraint("expense_id", "step_order", name="uq_approval_requests_expense_step"),
    )

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    step_order = Column(Integer, nullable=False)
    status = Column(String(50), nullable=False, default="pending")  # pending, approved, rejected
    comments = Column(Text, nullable=True)
    approved_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    expense = relationship("Expense", back_populates="approval_requests")
    approver = relationship("User")
