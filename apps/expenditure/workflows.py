"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Workflow state machine for expenditure approval.
             pending -> verified -> approved -> finalized, with
             rejection possible until finalization.
-------------------------------------------------------------------------
"""
from typing import Optional, Tuple

from django.conf import settings

from apps.core.exceptions import (
    ThresholdExceededException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.expenditure.models import ApprovalDecision, ExpenditureStatus
from apps.users import permissions
from apps.users.models import RoleCode


# Define valid state transitions
EXPENDITURE_TRANSITIONS = {
    ExpenditureStatus.PENDING: [ExpenditureStatus.VERIFIED, ExpenditureStatus.APPROVED, ExpenditureStatus.REJECTED],
    ExpenditureStatus.VERIFIED: [ExpenditureStatus.APPROVED, ExpenditureStatus.REJECTED],
    ExpenditureStatus.APPROVED: [ExpenditureStatus.FINALIZED, ExpenditureStatus.REJECTED],
    ExpenditureStatus.FINALIZED: [],
    ExpenditureStatus.REJECTED: [],
}

DECISION_TARGETS = {
    ApprovalDecision.VERIFY: ExpenditureStatus.VERIFIED,
    ApprovalDecision.APPROVE: ExpenditureStatus.APPROVED,
    ApprovalDecision.REJECT: ExpenditureStatus.REJECTED,
    ApprovalDecision.FINALIZE: ExpenditureStatus.FINALIZED,
}


def can_transition(current_status: str, target_status: str) -> bool:
    return target_status in EXPENDITURE_TRANSITIONS.get(current_status, [])


def _check_role(expenditure, decision: str, user) -> Tuple[bool, Optional[str]]:
    department_id = expenditure.department_id

    if decision == ApprovalDecision.VERIFY:
        if not permissions.can_verify(user, department_id):
            return False, "Only the HOD of this department or the office can verify expenditures."

    elif decision == ApprovalDecision.APPROVE:
        if not permissions.can_approve(user):
            return False, "Only the office, Vice Principal or Principal can approve expenditures."

    elif decision == ApprovalDecision.REJECT:
        if not permissions.can_reject(user, department_id):
            return False, "You are not authorized to reject this expenditure."

    elif decision == ApprovalDecision.FINALIZE:
        if not permissions.can_finalize(user):
            return False, "Only the office can finalize expenditures."

    return True, None


def assert_transition(expenditure, decision: str, user) -> str:
    """
    Raise the matching workflow error if a decision is not allowed.

    Returns:
        The target status for the decision.

    Raises:
        WorkflowTransitionException: If the current status does not allow it.
        UnauthorizedRoleException: If the user's role does not allow it.
    """
    target_status = DECISION_TARGETS.get(decision)
    if target_status is None or not can_transition(expenditure.status, target_status):
        raise WorkflowTransitionException(
            f"Cannot {decision} an expenditure that is {expenditure.status}.",
            details={'status': expenditure.status, 'decision': decision}
        )

    is_valid, error = _check_role(expenditure, decision, user)
    if not is_valid:
        raise UnauthorizedRoleException(
            error,
            details={'role': getattr(user, 'role', None), 'decision': decision}
        )
    return target_status


def check_approval_limit(expenditure, user) -> None:
    """
    Enforce the Vice Principal's per-bill approval ceiling.

    Raises:
        ThresholdExceededException: If a Vice Principal approves a bill
            above CBMS_VICE_PRINCIPAL_APPROVAL_LIMIT.
    """
    limit = settings.CBMS_VICE_PRINCIPAL_APPROVAL_LIMIT
    if user.role == RoleCode.VICE_PRINCIPAL and expenditure.bill_amount > limit:
        raise ThresholdExceededException(
            f"Vice Principal can only approve expenditures up to Rs {limit:,.0f}. "
            f"This bill requires Principal approval.",
            details={'limit': str(limit), 'bill_amount': str(expenditure.bill_amount)}
        )
