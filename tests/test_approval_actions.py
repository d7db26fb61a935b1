import pytest

from app.database.models.audit import AuditLog
from app.database.models.expense import Expense, ApprovalRequest
from app.database.services.approval_action_service import (
    ApprovalActionService,
    DIRECTOR_OVERRIDE_COMMENT,
)
from app.database.services.expense_service import ExpenseService
from app.integrations.email_service import APPROVAL_DECISION
from app.logic.exceptions import InvalidActionStateError, NotFoundOrUnauthorizedError
from app.ReqResModels.approvalmodels import ApprovalAction, ApprovalOutcome
from factories import RecordingNotifier, expense_request, seed_org


def submit(db, org, converter, notifier):
    response = ExpenseService.submit_expense(
        db, org.employee, expense_request(category_id=org.category_id), converter, notifier
    )
    return response.expense_id


def approvals_for(db, expense_id):
    db.expire_all()
    return db.query(ApprovalRequest).filter(
        ApprovalRequest.expense_id == expense_id
    ).order_by(ApprovalRequest.step_order).all()


def load_expense(db, expense_id):
    db.expire_all()
    return db.query(Expense).filter(Expense.id == expense_id).one()


def test_two_step_chain_advances_then_finalizes(db, converter, notifier):
    org = seed_org(db, roles=("manager", "finance"))
    expense_id = submit(db, org, converter, notifier)
    step1, step2 = approvals_for(db, expense_id)

    first = ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.APPROVE, "ok", notifier)
    assert first.outcome == ApprovalOutcome.ADVANCED
    assert first.expense_status == "pending"
    assert first.current_approval_step == 2

    pending = ApprovalActionService.get_pending_approvals(db, org.finance)
    assert [p.approval_request_id for p in pending.pending_approvals] == [step2.id]

    second = ApprovalActionService.act(db, org.finance, step2.id, ApprovalAction.APPROVE, None, notifier)
    assert second.outcome == ApprovalOutcome.FINALIZED
    assert second.expense_status == "approved"
    assert second.current_approval_step == 2
    assert second.director_override is False

    expense = load_expense(db, expense_id)
    assert expense.final_approved_by == org.finance.user_id
    assert expense.final_approved_at is not None
    assert [a.status for a in approvals_for(db, expense_id)] == ["approved", "approved"]


def test_pending_list_only_shows_current_step(db, converter, notifier):
    org = seed_org(db, roles=("manager", "finance"))
    expense_id = submit(db, org, converter, notifier)

    assert ApprovalActionService.get_pending_approvals(db, org.finance).total_count == 0
    manager_pending = ApprovalActionService.get_pending_approvals(db, org.manager)
    assert manager_pending.total_count == 1
    assert manager_pending.pending_approvals[0].expense_id == expense_id


def test_repeated_action_is_rejected_without_changing_state(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step1 = approvals_for(db, expense_id)[0]

    ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.APPROVE, "first", notifier)
    before = load_expense(db, expense_id)
    version_before = before.version

    with pytest.raises(InvalidActionStateError):
        ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.REJECT, "second", notifier)

    after = load_expense(db, expense_id)
    assert after.status == "pending"
    assert after.current_approval_step == 2
    assert after.version == version_before
    refreshed = approvals_for(db, expense_id)[0]
    assert refreshed.status == "approved"
    assert refreshed.comments == "first"


def test_rejection_at_step_two_closes_remaining_steps(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step1, step2, _, _ = approvals_for(db, expense_id)

    ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.APPROVE, None, notifier)
    result = ApprovalActionService.act(db, org.finance, step2.id, ApprovalAction.REJECT, "missing receipt", notifier)

    assert result.outcome == ApprovalOutcome.REJECTED
    assert result.expense_status == "rejected"
    assert result.current_approval_step == 2

    approvals = approvals_for(db, expense_id)
    assert [a.status for a in approvals] == ["approved", "rejected", "rejected", "rejected"]
    assert approvals[1].comments == "missing receipt"
    assert approvals[1].approved_at is not None
    assert approvals[2].comments is None and approvals[2].approved_at is None
    assert approvals[3].comments is None and approvals[3].approved_at is None


def test_action_on_decided_expense_is_invalid(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step1, step2, _, step4 = approvals_for(db, expense_id)

    ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.REJECT, None, notifier)

    with pytest.raises(InvalidActionStateError):
        ApprovalActionService.act(db, org.admin, step4.id, ApprovalAction.APPROVE, None, notifier)


def test_director_approval_overrides_remaining_steps(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step1, _, step3, _ = approvals_for(db, expense_id)

    ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.APPROVE, "fine", notifier)
    result = ApprovalActionService.act(db, org.director, step3.id, ApprovalAction.APPROVE, "go ahead", notifier)

    assert result.outcome == ApprovalOutcome.OVERRIDDEN
    assert result.expense_status == "approved"
    assert result.director_override is True
    assert result.current_approval_step == result.total_approval_steps == 4

    approvals = approvals_for(db, expense_id)
    assert all(a.status == "approved" for a in approvals)
    assert [a.comments for a in approvals] == [
        "fine", DIRECTOR_OVERRIDE_COMMENT, "go ahead", DIRECTOR_OVERRIDE_COMMENT
    ]
    expense = load_expense(db, expense_id)
    assert expense.final_approved_by == org.director.user_id


def test_director_rejection_is_an_ordinary_rejection(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step3 = approvals_for(db, expense_id)[2]

    result = ApprovalActionService.act(db, org.director, step3.id, ApprovalAction.REJECT, None, notifier)

    assert result.outcome == ApprovalOutcome.REJECTED
    assert result.director_override is False


def test_out_of_order_approval_advances_shared_counter(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step2 = approvals_for(db, expense_id)[1]

    result = ApprovalActionService.act(db, org.finance, step2.id, ApprovalAction.APPROVE, None, notifier)

    assert result.outcome == ApprovalOutcome.ADVANCED
    assert result.current_approval_step == 2
    assert [a.status for a in approvals_for(db, expense_id)] == ["pending", "approved", "pending", "pending"]


def test_only_assigned_approver_may_act(db, converter, notifier):
    org = seed_org(db, name="Acme")
    other = seed_org(db, name="Globex")
    expense_id = submit(db, org, converter, notifier)
    step1 = approvals_for(db, expense_id)[0]

    with pytest.raises(NotFoundOrUnauthorizedError):
        ApprovalActionService.act(db, org.finance, step1.id, ApprovalAction.APPROVE, None, notifier)
    with pytest.raises(NotFoundOrUnauthorizedError):
        ApprovalActionService.act(db, other.manager, step1.id, ApprovalAction.APPROVE, None, notifier)
    with pytest.raises(NotFoundOrUnauthorizedError):
        ApprovalActionService.act(db, org.manager, 9999, ApprovalAction.APPROVE, None, notifier)

    assert approvals_for(db, expense_id)[0].status == "pending"


def test_actions_are_audited_and_notified(db, converter, notifier):
    org = seed_org(db)
    expense_id = submit(db, org, converter, notifier)
    step1, step2, _, _ = approvals_for(db, expense_id)

    ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.APPROVE, "ok", notifier)
    ApprovalActionService.act(db, org.finance, step2.id, ApprovalAction.REJECT, "no", notifier)

    entries = db.query(AuditLog).filter(
        AuditLog.expense_id == expense_id
    ).order_by(AuditLog.id).all()
    assert [e.action for e in entries] == ["EXPENSE_SUBMITTED", "EXPENSE_APPROVED", "EXPENSE_REJECTED"]
    assert entries[1].details["outcome"] == "advanced"
    assert entries[2].details == {"comments": "no", "step": 2, "role": "finance", "outcome": "rejected"}

    decisions = [(to, ctx) for to, kind, ctx in notifier.sent if kind == APPROVAL_DECISION]
    assert len(decisions) == 2
    assert decisions[-1][1]["expense_status"] == "rejected"
    assert decisions[-1][1]["action"] == "reject"


def test_notification_failure_does_not_undo_decision(db, converter, notifier):
    org = seed_org(db, roles=("manager",))
    expense_id = submit(db, org, converter, notifier)
    step1 = approvals_for(db, expense_id)[0]

    result = ApprovalActionService.act(
        db, org.manager, step1.id, ApprovalAction.APPROVE, None, RecordingNotifier(fail=True)
    )

    assert result.outcome == ApprovalOutcome.FINALIZED
    assert load_expense(db, expense_id).status == "approved"


def test_reject_before_approve_on_another_step_blocks_the_approve(db, converter, notifier):
    org = seed_org(db, roles=("manager", "finance"))
    expense_id = submit(db, org, converter, notifier)
    step1, step2 = approvals_for(db, expense_id)

    rejected = ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.REJECT, None, notifier)
    with pytest.raises(InvalidActionStateError):
        ApprovalActionService.act(db, org.finance, step2.id, ApprovalAction.APPROVE, None, notifier)

    assert rejected.message == "Expense rejected successfully"
    assert load_expense(db, expense_id).status == "rejected"
    assert [a.status for a in approvals_for(db, expense_id)] == ["rejected", "rejected"]


def test_approve_before_reject_on_another_step_ends_rejected(db, converter, notifier):
    org = seed_org(db, roles=("manager", "finance"))
    expense_id = submit(db, org, converter, notifier)
    step1, step2 = approvals_for(db, expense_id)

    approved = ApprovalActionService.act(db, org.finance, step2.id, ApprovalAction.APPROVE, None, notifier)
    rejected = ApprovalActionService.act(db, org.manager, step1.id, ApprovalAction.REJECT, None, notifier)

    assert approved.outcome == ApprovalOutcome.ADVANCED
    assert approved.message == "Expense approved successfully"
    assert rejected.outcome == ApprovalOutcome.REJECTED
    assert load_expense(db, expense_id).status == "rejected"
    assert [a.status for a in approvals_for(db, expense_id)] == ["rejected", "approved"]
