from typing import List
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy import and_
from datetime import datetime
import logging

from app.database.models.approval import ApprovalRule, ApprovalRuleStep
from app.database.models.users import User
from app.logic.principal import Principal
from app.ReqResModels.approvalmodels import (
    CreateApprovalRuleRequest,
    CreateApprovalRuleResponse,
    ApprovalRuleResponse,
    RuleStepResponse
)
from app.logic.exceptions import (
    ValidationError,
    DatabaseError
)

logger = logging.getLogger(__name__)


class ApprovalRuleService:
    """Approval rule configuration. Rules are stored for administrators only;
    the approval chain of an expense is always derived from the org chart."""

    @staticmethod
    def create_approval_rule(db: Session, principal: Principal, request: CreateApprovalRuleRequest) -> CreateApprovalRuleResponse:
        """Create a new approval rule with its ordered steps"""
        referenced_ids = {step.approver_id for step in request.approval_steps}
        if request.specific_approver_id:
            referenced_ids.add(request.specific_approver_id)

        if referenced_ids:
            found = db.query(User.id).filter(
                and_(User.id.in_(referenced_ids), User.company_id == principal.company_id)
            ).all()
            missing_ids = referenced_ids - {row.id for row in found}
            if missing_ids:
                raise ValidationError(f"Approvers with IDs {sorted(missing_ids)} not found in your company")

        try:
            db_rule = ApprovalRule(
                company_id=principal.company_id,
                rule_name=request.rule_name,
                is_manager_approver=request.is_manager_approver,
                approval_type=request.approval_type.value,
                percentage_threshold=request.percentage_threshold,
                specific_approver_id=request.specific_approver_id,
                min_amount=request.min_amount,
                max_amount=request.max_amount,
                created_at=datetime.utcnow()
            )
            db.add(db_rule)
            db.flush()  # Get the ID

            for index, step in enumerate(request.approval_steps, start=1):
                db.add(ApprovalRuleStep(
                    approval_rule_id=db_rule.id,
                    step_order=index,
                    approver_id=step.approver_id,
                    approver_role=step.approver_role
                ))

            db.commit()

        except Exception as e:
            db.rollback()
            raise DatabaseError(f"Failed to create approval rule: {str(e)}")

        logger.info(f"Approval rule {db_rule.id} created for company {principal.company_id}")
        return CreateApprovalRuleResponse(message="Approval rule created successfully", rule_id=db_rule.id)

    @staticmethod
    def get_approval_rules(db: Session, principal: Principal) -> List[ApprovalRuleResponse]:
        """List the company's rules ordered by their minimum amount"""
        rules = db.query(ApprovalRule).options(
            joinedload(ApprovalRule.specific_approver),
            selectinload(ApprovalRule.steps).joinedload(ApprovalRuleStep.approver)
        ).filter(
            ApprovalRule.company_id == principal.company_id
        ).order_by(ApprovalRule.min_amount, ApprovalRule.id).all()

        return [ApprovalRuleService._model_to_response(rule) for rule in rules]

    @staticmethod
    def _model_to_response(rule: ApprovalRule) -> ApprovalRuleResponse:
        return ApprovalRuleResponse(
            id=rule.id,
            company_id=rule.company_id,
            rule_name=rule.rule_name,
            is_manager_approver=bool(rule.is_manager_approver),
            approval_type=rule.approval_type,
            percentage_threshold=rule.percentage_threshold,
            specific_approver_id=rule.specific_approver_id,
            specific_approver_name=rule.specific_approver.name if rule.specific_approver else None,
            min_amount=rule.min_amount,
            max_amount=rule.max_amount,
            created_at=rule.created_at,
            steps=[
                RuleStepResponse(
                    id=step.id,
                    step_order=step.step_order,
                    approver_id=step.approver_id,
                    approver_name=step.approver.name if step.approver else None,
                    approver_role=step.approver_role
                )
                for step in rule.steps
            ]
        )
