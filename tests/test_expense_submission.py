from decimal import Decimal

import pytest
import requests
from unittest.mock import patch

from app.database.models.audit import AuditLog
from app.database.models.expense import Expense, ApprovalRequest, ExpenseLineItem
from app.database.models.users import ExpenseCategory
from app.database.services.expense_service import ExpenseService
from app.integrations.currency_service import CurrencyConverter
from app.integrations.email_service import SUBMISSION_CONFIRMATION, APPROVER_ALERT
from app.logic.exceptions import DatabaseError, NotFoundOrUnauthorizedError, ValidationError
from factories import (
    FixedRateConverter,
    RecordingNotifier,
    expense_request,
    seed_org,
)


class BrokenRoleDirectory:

    def find_manager_of(self, employee_id):
        return None

    def find_active_holder_of_role(self, company_id, role):
        raise RuntimeError("directory unavailable")


def test_submission_creates_one_request_per_chain_step(db, notifier, converter):
    org = seed_org(db)

    response = ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )

    expense = db.query(Expense).filter(Expense.id == response.expense_id).one()
    approvals = db.query(ApprovalRequest).filter(
        ApprovalRequest.expense_id == expense.id
    ).order_by(ApprovalRequest.step_order).all()

    assert response.status == "pending"
    assert response.approval_steps == 4
    assert expense.total_approval_steps == len(approvals) == 4
    assert expense.current_approval_step == 1
    assert [a.step_order for a in approvals] == [1, 2, 3, 4]
    assert [a.approver_id for a in approvals] == [
        org.manager.user_id, org.finance.user_id, org.director.user_id, org.admin.user_id
    ]
    assert all(a.status == "pending" for a in approvals)


def test_submission_records_audit_entry(db, notifier, converter):
    org = seed_org(db)

    response = ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )

    entry = db.query(AuditLog).filter(AuditLog.expense_id == response.expense_id).one()
    assert entry.action == "EXPENSE_SUBMITTED"
    assert entry.user_id == org.employee.user_id
    assert entry.details["steps"] == 4


def test_submission_notifies_employee_and_first_approver(db, notifier, converter):
    org = seed_org(db)

    ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )

    assert notifier.kinds() == [SUBMISSION_CONFIRMATION, APPROVER_ALERT]
    assert notifier.sent[0][0].startswith("employee.acme")
    assert notifier.sent[1][0].startswith("manager.acme")


def test_zero_step_chain_stays_pending(db, notifier, converter):
    org = seed_org(db, roles=())

    response = ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )

    expense = db.query(Expense).filter(Expense.id == response.expense_id).one()
    assert response.approval_steps == 0
    assert expense.status == "pending"
    assert expense.total_approval_steps == 0
    assert expense.current_approval_step == 1
    assert db.query(ApprovalRequest).count() == 0
    assert notifier.kinds() == [SUBMISSION_CONFIRMATION]


def test_failure_while_building_chain_rolls_back_everything(db, notifier, converter):
    org = seed_org(db)

    with pytest.raises(DatabaseError):
        ExpenseService.submit_expense(
            db, org.employee, expense_request(category_id=org.category_id), converter, notifier,
            role_directory=BrokenRoleDirectory()
        )

    assert db.query(Expense).count() == 0
    assert db.query(ApprovalRequest).count() == 0
    assert db.query(AuditLog).count() == 0
    assert notifier.sent == []


def test_notification_failure_does_not_fail_submission(db, converter):
    org = seed_org(db)

    response = ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter,
        RecordingNotifier(fail=True)
    )

    assert response.status == "pending"
    assert db.query(Expense).filter(Expense.id == response.expense_id).count() == 1


def test_amount_is_converted_to_company_currency(db, notifier):
    org = seed_org(db, currency="USD")

    response = ExpenseService.submit_expense(
        db, org.employee,
        expense_request(category_id=org.category_id, amount=Decimal("50.00"), currency="EUR"),
        FixedRateConverter(), notifier
    )

    assert response.converted_amount == Decimal("100.00")


def test_unavailable_rates_fall_back_to_original_amount(db, notifier):
    org = seed_org(db, currency="USD")
    converter = CurrencyConverter()

    with patch("app.integrations.currency_service.requests.get",
               side_effect=requests.ConnectionError("offline")):
        response = ExpenseService.submit_expense(
            db, org.employee,
            expense_request(category_id=org.category_id, amount=Decimal("75.00"), currency="EUR"),
            converter, notifier
        )

    assert response.converted_amount == Decimal("75.00")
    assert response.status == "pending"


def test_line_items_default_to_quantity_times_price(db, notifier, converter):
    org = seed_org(db)

    response = ExpenseService.submit_expense(
        db, org.employee,
        expense_request(
            category_id=org.category_id,
            line_items=[
                {"description": "Taxi", "quantity": "2", "unit_price": "15.50"},
                {"description": "Tip", "unit_price": "5", "amount": "4"},
            ],
        ),
        converter, notifier
    )

    items = db.query(ExpenseLineItem).filter(
        ExpenseLineItem.expense_id == response.expense_id
    ).order_by(ExpenseLineItem.id).all()
    assert [item.amount for item in items] == [Decimal("31.00"), Decimal("4.00")]


def test_category_from_another_company_is_rejected(db, notifier, converter):
    org = seed_org(db, name="Acme")
    other = seed_org(db, name="Globex")

    with pytest.raises(ValidationError):
        ExpenseService.submit_expense(
            db, org.employee, expense_request(category_id=other.category_id), converter, notifier
        )

    assert db.query(Expense).count() == 0


def test_inactive_category_is_rejected(db, notifier, converter):
    org = seed_org(db)
    category = db.query(ExpenseCategory).filter(ExpenseCategory.id == org.category_id).one()
    category.is_active = False
    db.commit()

    with pytest.raises(ValidationError):
        ExpenseService.submit_expense(
            db, org.employee, expense_request(category_id=org.category_id), converter, notifier
        )


def test_expense_detail_is_company_scoped(db, notifier, converter):
    org = seed_org(db, name="Acme")
    other = seed_org(db, name="Globex")
    response = ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )

    detail = ExpenseService.get_expense_detail(db, org.manager, response.expense_id)
    assert detail.expense.id == response.expense_id
    assert [a.step_order for a in detail.approvals] == [1, 2, 3, 4]

    with pytest.raises(NotFoundOrUnauthorizedError):
        ExpenseService.get_expense_detail(db, other.admin, response.expense_id)


def test_listing_is_scoped_by_role(db, notifier, converter):
    org = seed_org(db)
    ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )
    ExpenseService.submit_expense(
        db, org.manager, expense_request(category_id=org.category_id, amount=Decimal("10")), converter, notifier
    )

    assert ExpenseService.list_expenses(db, org.admin).total_count == 2
    assert ExpenseService.list_expenses(db, org.manager).total_count == 2
    assert ExpenseService.list_expenses(db, org.employee).total_count == 1
    assert ExpenseService.list_expenses(db, org.employee, status="approved").total_count == 0


def test_computed_line_total_is_rounded_to_cents(db, notifier, converter):
    org = seed_org(db)

    response = ExpenseService.submit_expense(
        db, org.employee,
        expense_request(
            category_id=org.category_id,
            line_items=[{"description": "Parking", "quantity": "2.5", "unit_price": "1.25"}],
        ),
        converter, notifier
    )

    item = db.query(ExpenseLineItem).filter(ExpenseLineItem.expense_id == response.expense_id).one()
    assert item.amount == Decimal("3.13")


def test_converted_amount_overflow_is_a_validation_error(db, notifier, converter):
    org = seed_org(db, currency="INR")

    with pytest.raises(ValidationError):
        ExpenseService.submit_expense(
            db, org.employee,
            expense_request(category_id=org.category_id, amount=Decimal("9999999999.99"), currency="USD"),
            converter, notifier
        )

    assert db.query(Expense).count() == 0
