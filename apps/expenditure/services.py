"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Expenditure workflow services. Each operation runs in a
             single transaction; approval charges the allocation via
             the atomic spend increment and rolls back on any failure.
-------------------------------------------------------------------------
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Max, Q, QuerySet, Sum

from apps.budgeting.models import (
    Allocation, BudgetHead, Department, ZERO, financial_year_for_date,
)
from apps.budgeting.services import apply_approval, enforce_overspend_policy, to_amount
from apps.core.exceptions import (
    DuplicateBillNumberException,
    LedgerValidationException,
    MissingAllocationException,
    NotFoundException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.logging import LedgerLogger
from apps.core.models import AuditEventType
from apps.core.services import AuditLogService, get_overspend_policy
from apps.expenditure.models import (
    ApprovalDecision, ApprovalStep, Expenditure, ExpenditureStatus,
)
from apps.expenditure.notifications import ExpenditureNotifications
from apps.expenditure.workflows import assert_transition, check_approval_limit
from apps.users import permissions
from apps.users.models import RoleCode

logger = logging.getLogger(__name__)


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise LedgerValidationException('bill_date is required.', details={'field': 'bill_date'})
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise LedgerValidationException('bill_date must be a date (YYYY-MM-DD).', details={'field': 'bill_date'})


def _get_instance(model, value, label: str):
    if isinstance(value, model):
        return value
    if value in (None, ''):
        raise LedgerValidationException(f"{label} is required.", details={'field': label})
    try:
        return model.objects.get(pk=value)
    except (model.DoesNotExist, ValueError):
        raise NotFoundException(f"{label} '{value}' not found.", details={'field': label})


def _lock_expenditure(expenditure_id: int) -> Expenditure:
    try:
        return Expenditure.objects.select_for_update().select_related(
            'department', 'budget_head'
        ).get(pk=expenditure_id)
    except Expenditure.DoesNotExist:
        raise NotFoundException(f"Expenditure #{expenditure_id} not found.")


def _append_step(expenditure: Expenditure, actor, decision: str, remarks: str) -> ApprovalStep:
    last = expenditure.approval_steps.aggregate(last=Max('sequence'))['last'] or 0
    return ApprovalStep.objects.create(
        expenditure=expenditure,
        sequence=last + 1,
        approver=actor,
        role=actor.role,
        decision=decision,
        remarks=remarks or '',
    )


def _actor_name(actor) -> str:
    return actor.get_full_name() or actor.email


def _create_expenditure(
    *,
    department: Department,
    budget_head: BudgetHead,
    bill_number: str,
    bill_date,
    bill_amount,
    party_name: str,
    expense_details: str,
    attachments: Optional[List[Any]],
    reference_budget_register_no: str,
    actor,
    original: Optional[Expenditure] = None,
) -> Expenditure:
    bill_number = (bill_number or '').strip()
    party_name = (party_name or '').strip()
    expense_details = (expense_details or '').strip()
    missing = [
        name for name, value in (
            ('bill_number', bill_number),
            ('party_name', party_name),
            ('expense_details', expense_details),
        ) if not value
    ]
    if missing:
        raise LedgerValidationException(
            f"Missing required fields: {', '.join(missing)}.",
            details={'fields': missing}
        )

    bill_date = _parse_date(bill_date)
    amount = to_amount(bill_amount, 'bill_amount', allow_zero=False)
    financial_year = financial_year_for_date(bill_date)

    allocation = Allocation.objects.filter(
        financial_year=financial_year,
        department=department,
        budget_head=budget_head,
    ).first()
    if allocation is None:
        raise MissingAllocationException(
            f"No budget allocation found for {department.name} / {budget_head.name} "
            f"in financial year {financial_year}.",
            details={
                'financial_year': financial_year,
                'department': department.pk,
                'budget_head': budget_head.pk,
            }
        )

    duplicate = Expenditure.objects.filter(
        department=department,
        financial_year=financial_year,
        bill_number=bill_number,
    ).exclude(status=ExpenditureStatus.REJECTED).exists()
    if duplicate:
        raise DuplicateBillNumberException(
            f"Bill number {bill_number} already exists for this department in {financial_year}.",
            details={'bill_number': bill_number, 'financial_year': financial_year}
        )

    warning = enforce_overspend_policy(allocation, amount, get_overspend_policy())

    expenditure = Expenditure(
        department=department,
        budget_head=budget_head,
        allocation=allocation,
        bill_number=bill_number,
        bill_date=bill_date,
        bill_amount=amount,
        party_name=party_name,
        expense_details=expense_details,
        attachments=list(attachments or []),
        reference_budget_register_no=reference_budget_register_no or '',
        submitted_by=actor,
        status=ExpenditureStatus.PENDING,
        is_resubmission=original is not None,
        original_expenditure=original,
    )
    try:
        with transaction.atomic():
            expenditure.save()
    except IntegrityError:
        raise DuplicateBillNumberException(
            f"Bill number {bill_number} already exists for this department in {financial_year}.",
            details={'bill_number': bill_number, 'financial_year': financial_year}
        )

    expenditure.overspend_warning = warning
    return expenditure


# =============================================================================
# Workflow operations
# =============================================================================

@transaction.atomic
def submit_expenditure(
    department,
    budget_head,
    bill_number: str,
    bill_date,
    bill_amount,
    party_name: str,
    expense_details: str,
    actor,
    attachments: Optional[List[Any]] = None,
    reference_budget_register_no: str = '',
    request=None
) -> Expenditure:
    """
    Submit a bill against an existing allocation.

    Args:
        department: Department instance or id.
        budget_head: BudgetHead instance or id.
        bill_number: Bill number, unique within the department and year.
        bill_date: Date of the bill; determines the financial year.
        bill_amount: Positive amount.
        party_name: Payee.
        expense_details: Description of the expense.
        actor: Submitting department user or HOD.
        attachments: Opaque descriptors from the file service.

    Returns:
        The pending Expenditure. overspend_warning is set when the
        'warn' policy let an over-budget bill through.

    Raises:
        UnauthorizedRoleException: If actor cannot submit for the department.
        MissingAllocationException: If no allocation exists for the bill.
        DuplicateBillNumberException: If the bill number is already in use.
        BudgetExceededException: If the bill exceeds the remaining budget
            under the 'disallow' policy.
    """
    department = _get_instance(Department, department, 'department')
    budget_head = _get_instance(BudgetHead, budget_head, 'budget_head')

    if not permissions.can_submit_expenditure(actor, department.pk):
        raise UnauthorizedRoleException(
            "Only department users can submit expenditures for their own department."
        )

    expenditure = _create_expenditure(
        department=department,
        budget_head=budget_head,
        bill_number=bill_number,
        bill_date=bill_date,
        bill_amount=bill_amount,
        party_name=party_name,
        expense_details=expense_details,
        attachments=attachments,
        reference_budget_register_no=reference_budget_register_no,
        actor=actor,
    )

    details: Dict[str, Any] = {
        'bill_number': expenditure.bill_number,
        'bill_amount': str(expenditure.bill_amount),
        'financial_year': expenditure.financial_year,
    }
    if expenditure.overspend_warning:
        details['overspend_warning'] = expenditure.overspend_warning
    AuditLogService.record(
        AuditEventType.EXPENDITURE_SUBMITTED,
        actor=actor,
        target=expenditure,
        details=details,
        request=request,
    )
    LedgerLogger.log_expenditure_transition(expenditure, actor, 'submitted')

    expenditure_id = expenditure.pk
    transaction.on_commit(lambda: ExpenditureNotifications.notify_submitted(expenditure_id))
    return expenditure


@transaction.atomic
def verify_expenditure(expenditure_id: int, actor, remarks: str = '', request=None) -> Expenditure:
    """
    Move a pending bill to verified.

    Raises:
        NotFoundException: If the expenditure does not exist.
        WorkflowTransitionException: If the bill is not pending.
        UnauthorizedRoleException: If actor is not the department's HOD or office.
    """
    expenditure = _lock_expenditure(expenditure_id)
    target_status = assert_transition(expenditure, ApprovalDecision.VERIFY, actor)

    expenditure.status = target_status
    expenditure.save(update_fields=['status', 'updated_at'])
    _append_step(expenditure, actor, ApprovalDecision.VERIFY, remarks)

    AuditLogService.record(
        AuditEventType.EXPENDITURE_VERIFIED,
        actor=actor,
        target=expenditure,
        details={'remarks': remarks},
        previous_values={'status': ExpenditureStatus.PENDING},
        new_values={'status': expenditure.status},
        request=request,
    )
    LedgerLogger.log_expenditure_transition(expenditure, actor, 'verified')
    return expenditure


@transaction.atomic
def approve_expenditure(expenditure_id: int, actor, remarks: str = '', request=None) -> Expenditure:
    """
    Approve a bill and charge its allocation.

    Checks run in this order: status, role, approval limit, allocation,
    overspend policy. The spend increment then re-checks the budget
    atomically; if it fails the whole approval is rolled back.

    Raises:
        NotFoundException: If the expenditure does not exist.
        WorkflowTransitionException: If the bill is not pending or verified.
        UnauthorizedRoleException: If actor cannot approve.
        ThresholdExceededException: If a Vice Principal exceeds the limit.
        MissingAllocationException: If the allocation has gone.
        BudgetExceededException: If the overspend policy blocks the bill.
        ConcurrentBudgetExceededException: If a concurrent approval used
            up the remaining budget first.
    """
    expenditure = _lock_expenditure(expenditure_id)
    previous_status = expenditure.status
    target_status = assert_transition(expenditure, ApprovalDecision.APPROVE, actor)
    check_approval_limit(expenditure, actor)

    allocation = Allocation.objects.filter(pk=expenditure.allocation_id).first()
    if allocation is None:
        raise MissingAllocationException(details={'expenditure_id': expenditure.pk})

    policy = get_overspend_policy()
    warning = enforce_overspend_policy(allocation, expenditure.bill_amount, policy)
    allocation = apply_approval(allocation.pk, expenditure.bill_amount, policy)

    expenditure.status = target_status
    expenditure.save(update_fields=['status', 'updated_at'])
    _append_step(expenditure, actor, ApprovalDecision.APPROVE, remarks)
    expenditure.overspend_warning = warning

    details: Dict[str, Any] = {
        'remarks': remarks,
        'bill_amount': str(expenditure.bill_amount),
        'allocation_id': allocation.pk,
        'spent_amount': str(allocation.spent_amount),
        'remaining_amount': str(allocation.remaining_amount),
    }
    if warning:
        details['overspend_warning'] = warning
    AuditLogService.record(
        AuditEventType.EXPENDITURE_APPROVED,
        actor=actor,
        target=expenditure,
        details=details,
        previous_values={'status': previous_status},
        new_values={'status': expenditure.status},
        request=request,
    )
    LedgerLogger.log_expenditure_transition(expenditure, actor, 'approved')

    approver_name = _actor_name(actor)
    transaction.on_commit(lambda: ExpenditureNotifications.notify_approved(expenditure_id, approver_name))
    return expenditure


@transaction.atomic
def reject_expenditure(expenditure_id: int, actor, remarks: str, request=None) -> Expenditure:
    """
    Reject a bill. The allocation is never touched, including for a
    bill that was already approved.

    Raises:
        NotFoundException: If the expenditure does not exist.
        WorkflowTransitionException: If the bill is finalized or already rejected.
        UnauthorizedRoleException: If actor cannot reject this bill.
        LedgerValidationException: If remarks are empty.
    """
    expenditure = _lock_expenditure(expenditure_id)
    previous_status = expenditure.status
    target_status = assert_transition(expenditure, ApprovalDecision.REJECT, actor)

    remarks = (remarks or '').strip()
    if not remarks:
        raise LedgerValidationException('Remarks are required for rejection.', details={'field': 'remarks'})

    expenditure.status = target_status
    expenditure.save(update_fields=['status', 'updated_at'])
    _append_step(expenditure, actor, ApprovalDecision.REJECT, remarks)

    AuditLogService.record(
        AuditEventType.EXPENDITURE_REJECTED,
        actor=actor,
        target=expenditure,
        details={'remarks': remarks},
        previous_values={'status': previous_status},
        new_values={'status': expenditure.status},
        request=request,
    )
    LedgerLogger.log_expenditure_transition(expenditure, actor, 'rejected')

    approver_name = _actor_name(actor)
    transaction.on_commit(
        lambda: ExpenditureNotifications.notify_rejected(expenditure_id, approver_name, remarks)
    )
    return expenditure


@transaction.atomic
def finalize_expenditure(expenditure_id: int, actor, remarks: str = '', request=None) -> Expenditure:
    """
    Close out an approved bill.

    Raises:
        NotFoundException: If the expenditure does not exist.
        WorkflowTransitionException: If the bill is not approved.
        UnauthorizedRoleException: If actor is not office.
    """
    expenditure = _lock_expenditure(expenditure_id)
    target_status = assert_transition(expenditure, ApprovalDecision.FINALIZE, actor)

    expenditure.status = target_status
    expenditure.save(update_fields=['status', 'updated_at'])
    _append_step(expenditure, actor, ApprovalDecision.FINALIZE, remarks)

    AuditLogService.record(
        AuditEventType.EXPENDITURE_FINALIZED,
        actor=actor,
        target=expenditure,
        details={'remarks': remarks},
        previous_values={'status': ExpenditureStatus.APPROVED},
        new_values={'status': expenditure.status},
        request=request,
    )
    LedgerLogger.log_expenditure_transition(expenditure, actor, 'finalized')
    return expenditure


RESUBMIT_FIELDS = (
    'bill_number', 'bill_date', 'bill_amount', 'party_name',
    'expense_details', 'attachments', 'reference_budget_register_no',
)


@transaction.atomic
def resubmit_expenditure(
    original_id: int,
    actor,
    overrides: Optional[Dict[str, Any]] = None,
    request=None
) -> Expenditure:
    """
    Create a new pending bill from a rejected one.

    The rejected original is left unchanged. Fields not given in
    overrides are copied from it. The financial year, allocation,
    bill number and overspend checks are run again for the new bill.

    Raises:
        NotFoundException: If the original does not exist.
        UnauthorizedRoleException: If actor did not submit the original.
        WorkflowTransitionException: If the original is not rejected.
    """
    try:
        original = Expenditure.objects.select_for_update().select_related(
            'department', 'budget_head'
        ).get(pk=original_id)
    except Expenditure.DoesNotExist:
        raise NotFoundException(f"Expenditure #{original_id} not found.")

    if not permissions.can_resubmit(actor, original):
        raise UnauthorizedRoleException("You can only resubmit your own expenditures.")
    if original.status != ExpenditureStatus.REJECTED:
        raise WorkflowTransitionException(
            "Only rejected expenditures can be resubmitted.",
            details={'status': original.status}
        )

    overrides = {key: value for key, value in (overrides or {}).items() if key in RESUBMIT_FIELDS}
    values = {
        name: overrides[name] if name in overrides else getattr(original, name)
        for name in RESUBMIT_FIELDS
    }

    expenditure = _create_expenditure(
        department=original.department,
        budget_head=original.budget_head,
        actor=actor,
        original=original,
        **values,
    )

    details: Dict[str, Any] = {
        'original_expenditure_id': original.pk,
        'bill_number': expenditure.bill_number,
        'bill_amount': str(expenditure.bill_amount),
    }
    if expenditure.overspend_warning:
        details['overspend_warning'] = expenditure.overspend_warning
    AuditLogService.record(
        AuditEventType.EXPENDITURE_RESUBMITTED,
        actor=actor,
        target=expenditure,
        details=details,
        request=request,
    )
    LedgerLogger.log_expenditure_transition(expenditure, actor, 'resubmitted')

    expenditure_id = expenditure.pk
    transaction.on_commit(lambda: ExpenditureNotifications.notify_submitted(expenditure_id))
    return expenditure


# =============================================================================
# Queries
# =============================================================================

def visible_expenditures(actor) -> QuerySet:
    """Expenditures the actor may see: own department for department staff and HODs."""
    queryset = Expenditure.objects.select_related('department', 'budget_head', 'submitted_by')
    if actor.role in (RoleCode.DEPARTMENT, RoleCode.HOD):
        return queryset.filter(department_id=actor.department_id)
    return queryset


def get_expenditure(expenditure_id: int, actor) -> Expenditure:
    try:
        return visible_expenditures(actor).prefetch_related('approval_steps').get(pk=expenditure_id)
    except Expenditure.DoesNotExist:
        raise NotFoundException(f"Expenditure #{expenditure_id} not found.")


def get_approval_queue(actor) -> QuerySet:
    """
    Bills waiting on the actor's decision.

    HOD: pending bills of their department. Office: pending and
    verified bills. Vice Principal and Principal: verified bills.
    Any other role gets an empty queue.
    """
    queryset = Expenditure.objects.select_related(
        'department', 'budget_head', 'submitted_by'
    ).order_by('created_at')

    if actor.role == RoleCode.HOD:
        return queryset.filter(status=ExpenditureStatus.PENDING, department_id=actor.department_id)
    if actor.role == RoleCode.OFFICE:
        return queryset.filter(status__in=[ExpenditureStatus.PENDING, ExpenditureStatus.VERIFIED])
    if actor.role in (RoleCode.VICE_PRINCIPAL, RoleCode.PRINCIPAL):
        return queryset.filter(status=ExpenditureStatus.VERIFIED)
    return queryset.none()


def get_expenditure_summary(
    actor,
    financial_year: Optional[str] = None,
    department_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Counts and amounts by status, scoped to the actor's visibility.

    Returns:
        Dict with 'by_status' and 'summary' keys.
    """
    queryset = visible_expenditures(actor)
    if financial_year:
        queryset = queryset.filter(financial_year=financial_year)
    if department_id and actor.role not in (RoleCode.DEPARTMENT, RoleCode.HOD):
        queryset = queryset.filter(department_id=department_id)

    by_status = {
        row['status']: {'count': row['count'], 'total_amount': row['total_amount']}
        for row in queryset.values('status').annotate(
            count=Count('id'), total_amount=Sum('bill_amount')
        ).order_by('status')
    }

    totals = queryset.aggregate(
        total_expenditures=Count('id'),
        total_amount=Sum('bill_amount'),
        pending_amount=Sum('bill_amount', filter=Q(status=ExpenditureStatus.PENDING)),
        approved_amount=Sum('bill_amount', filter=Q(status=ExpenditureStatus.APPROVED)),
    )
    return {
        'by_status': by_status,
        'summary': {
            'total_expenditures': totals['total_expenditures'],
            'total_amount': totals['total_amount'] or ZERO,
            'pending_amount': totals['pending_amount'] or ZERO,
            'approved_amount': totals['approved_amount'] or ZERO,
        },
    }
