"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Budget proposal approval and promotion of approved
             proposal items into allocations.
-------------------------------------------------------------------------
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from django.db import transaction
from django.utils import timezone

from apps.budgeting.models import Allocation, BudgetProposal, ProposalStatus
from apps.budgeting.services import insert_allocation
from apps.core.exceptions import (
    CBMSException,
    NotFoundException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.models import AuditEventType
from apps.core.services import AuditLogService
from apps.users.permissions import can_approve_proposals

logger = logging.getLogger(__name__)

ALREADY_EXISTS = 'Allocation already exists'


@dataclass
class PromotionResult:
    """Outcome of promoting a proposal's items into allocations."""

    created: List[Allocation] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allocations_created': self.created_count,
            'allocation_ids': [allocation.pk for allocation in self.created],
            'skipped': self.skipped,
            'errors': self.errors,
        }


def promote_proposal(proposal: BudgetProposal, actor) -> PromotionResult:
    """
    Create one allocation per proposal item that has none yet.

    Items whose (year, department, head) already has an allocation are
    skipped, so running this twice creates nothing the second time.
    Each item runs in its own savepoint; an item failure is collected
    and the remaining items still proceed.

    Args:
        proposal: An approved BudgetProposal.
        actor: User approving the proposal.

    Returns:
        PromotionResult with created allocations, skipped items and errors.
    """
    result = PromotionResult()

    for item in proposal.items.select_related('budget_head').all():
        exists = Allocation.objects.filter(
            financial_year=proposal.financial_year,
            department_id=proposal.department_id,
            budget_head_id=item.budget_head_id,
        ).exists()
        if exists:
            result.skipped.append({'budget_head': item.budget_head_id, 'reason': ALREADY_EXISTS})
            continue

        try:
            with transaction.atomic():
                allocation = insert_allocation(
                    financial_year=proposal.financial_year,
                    department=proposal.department,
                    budget_head=item.budget_head,
                    allocated_amount=item.proposed_amount,
                    actor=actor,
                    remarks=item.justification or 'Created from approved budget proposal',
                    source_proposal=proposal,
                    reason=f"Auto-created from approved budget proposal #{proposal.pk}",
                )
            result.created.append(allocation)
        except CBMSException as e:
            logger.warning(
                f"Could not create allocation for budget head {item.budget_head.code} "
                f"from proposal #{proposal.pk}: {e.message}",
                extra={'proposal_id': proposal.pk, 'budget_head_id': item.budget_head_id}
            )
            result.errors.append({'budget_head': item.budget_head_id, 'error': e.message})

    logger.info(
        f"Proposal #{proposal.pk} promoted: {result.created_count} created, "
        f"{len(result.skipped)} skipped, {len(result.errors)} failed",
        extra={'proposal_id': proposal.pk}
    )
    return result


@transaction.atomic
def approve_budget_proposal(proposal_id: int, actor, notes: str = '', request=None) -> PromotionResult:
    """
    Approve a submitted or verified proposal and promote its items.

    Raises:
        UnauthorizedRoleException: If actor cannot approve proposals.
        NotFoundException: If the proposal does not exist.
        WorkflowTransitionException: If the proposal is not submitted or verified.
    """
    if not can_approve_proposals(actor):
        raise UnauthorizedRoleException("You are not authorized to approve budget proposals.")

    try:
        proposal = BudgetProposal.objects.select_for_update().get(pk=proposal_id)
    except BudgetProposal.DoesNotExist:
        raise NotFoundException(f"Budget proposal #{proposal_id} not found.")

    if proposal.status not in (ProposalStatus.SUBMITTED, ProposalStatus.VERIFIED):
        raise WorkflowTransitionException(
            "Only submitted or verified proposals can be approved.",
            details={'status': proposal.status}
        )

    proposal.status = ProposalStatus.APPROVED
    proposal.approved_at = timezone.now()
    proposal.approved_by = actor
    if notes:
        proposal.notes = notes
    proposal.save_with_user(actor)

    result = promote_proposal(proposal, actor)

    AuditLogService.record(
        AuditEventType.BUDGET_PROPOSAL_APPROVED,
        actor=actor,
        target=proposal,
        details={'notes': notes, **result.to_dict()},
        request=request,
    )
    return result
