"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Allocation services: overspend policy evaluation, the
             atomic spend increment used by approvals, allocation
             create/update/delete, bulk creation and summaries.
-------------------------------------------------------------------------
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, F, Sum
from django.utils import timezone

from apps.budgeting.models import (
    Allocation, BudgetHead, Department, FinancialYear, HistoryChangeType,
    ZERO, financial_year_validator,
)
from apps.budgeting.notifications import BudgetNotifications
from apps.budgeting.services_history import record_version
from apps.core.exceptions import (
    AllocationInUseException,
    AmountBelowSpentException,
    BudgetExceededException,
    CBMSException,
    ConcurrentBudgetExceededException,
    DuplicateAllocationException,
    LedgerValidationException,
    MissingAllocationException,
    NotFoundException,
    UnauthorizedRoleException,
)
from apps.core.logging import LedgerLogger
from apps.core.models import AuditEventType
from apps.core.services import AuditLogService
from apps.users.permissions import can_manage_allocations

logger = logging.getLogger(__name__)


class OverspendDecision(str, Enum):
    ALLOW = 'allow'
    WARN = 'warn'
    BLOCK = 'block'


def to_amount(value: Any, field_name: str = 'amount', allow_zero: bool = True) -> Decimal:
    """
    Parse a monetary value into a 2-place Decimal.

    Raises:
        LedgerValidationException: If the value is missing, not numeric or negative.
    """
    if value is None or value == '':
        raise LedgerValidationException(f"{field_name} is required.", details={'field': field_name})
    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        raise LedgerValidationException(f"{field_name} must be a number.", details={'field': field_name})
    if amount < ZERO or (not allow_zero and amount == ZERO):
        raise LedgerValidationException(
            f"{field_name} must be {'non-negative' if allow_zero else 'greater than zero'}.",
            details={'field': field_name}
        )
    return amount


def _require_manager(actor) -> None:
    if not can_manage_allocations(actor):
        raise UnauthorizedRoleException("Only admin or office users can manage allocations.")


def _validate_financial_year(value: str) -> str:
    try:
        financial_year_validator(value or '')
    except ValidationError:
        raise LedgerValidationException(
            'Financial year must be in format YYYY-YYYY',
            details={'field': 'financial_year'}
        )
    return value


def _resolve(model, value, label: str):
    """Accept an instance, a primary key or a code."""
    if isinstance(value, model):
        return value
    if value in (None, ''):
        raise LedgerValidationException(f"{label} is required.", details={'field': label})
    lookup = {'pk': value} if str(value).isdigit() else {'code': value}
    try:
        return model.objects.get(**lookup)
    except model.DoesNotExist:
        raise NotFoundException(f"{label} '{value}' not found.", details={'field': label})


# =============================================================================
# Overspend policy
# =============================================================================

def check_overspend(allocation: Allocation, requested_amount: Decimal, policy: str) -> OverspendDecision:
    """
    Evaluate a requested spend against the allocation's remaining budget.

    Args:
        allocation: Allocation being charged (values as last read).
        requested_amount: Amount of the bill.
        policy: 'disallow', 'warn' or 'allow'. Anything else is treated
            as 'disallow'.

    Returns:
        OverspendDecision.ALLOW when the amount fits or policy permits,
        WARN when it does not fit under 'warn', BLOCK under 'disallow'.
    """
    remaining = allocation.allocated_amount - allocation.spent_amount
    if requested_amount <= remaining:
        return OverspendDecision.ALLOW
    if policy == 'allow':
        return OverspendDecision.ALLOW
    if policy == 'warn':
        return OverspendDecision.WARN
    return OverspendDecision.BLOCK


def enforce_overspend_policy(allocation: Allocation, requested_amount: Decimal, policy: str) -> Optional[str]:
    """
    Apply check_overspend and translate the decision for callers.

    Returns:
        A warning message under WARN, otherwise None.

    Raises:
        BudgetExceededException: When the decision is BLOCK.
    """
    decision = check_overspend(allocation, requested_amount, policy)
    remaining = allocation.allocated_amount - allocation.spent_amount
    if decision == OverspendDecision.BLOCK:
        raise BudgetExceededException(
            f"Insufficient budget. Remaining budget: Rs {remaining:,.2f}, requested: Rs {requested_amount:,.2f}.",
            details={
                'remaining_budget': str(remaining),
                'requested_amount': str(requested_amount),
                'allocation_id': allocation.pk,
            }
        )
    if decision == OverspendDecision.WARN:
        LedgerLogger.log_overspend_warning(allocation, requested_amount, remaining)
        return (
            f"Bill amount Rs {requested_amount:,.2f} exceeds the remaining budget "
            f"Rs {remaining:,.2f}."
        )
    return None


# =============================================================================
# Allocation update engine
# =============================================================================

def apply_approval(allocation_id: int, amount: Decimal, policy: str) -> Allocation:
    """
    Atomically add an approved amount to an allocation's spent_amount.

    Under 'disallow' the increment is a single conditional UPDATE that
    only matches while spent_amount + amount still fits inside
    allocated_amount, so two concurrent approvals can never push the
    allocation past its ceiling. Must be called inside the caller's
    transaction so a failure rolls back the expenditure change too.

    Args:
        allocation_id: Allocation to charge.
        amount: Positive amount being approved.
        policy: Overspend policy in force.

    Returns:
        The refreshed Allocation.

    Raises:
        MissingAllocationException: If the allocation no longer exists.
        ConcurrentBudgetExceededException: If the conditional update
            matched no row because the budget is no longer sufficient.
    """
    amount = to_amount(amount, allow_zero=False)

    queryset = Allocation.objects.filter(pk=allocation_id)
    if policy not in ('warn', 'allow'):
        queryset = queryset.filter(spent_amount__lte=F('allocated_amount') - amount)

    updated = queryset.update(
        spent_amount=F('spent_amount') + amount,
        updated_at=timezone.now()
    )

    if updated == 0:
        current = Allocation.objects.filter(pk=allocation_id).first()
        if current is None:
            raise MissingAllocationException(
                f"Allocation #{allocation_id} no longer exists.",
                details={'allocation_id': allocation_id}
            )
        remaining = current.remaining_amount
        raise ConcurrentBudgetExceededException(
            f"Insufficient budget at approval. Remaining budget: Rs {remaining:,.2f}, "
            f"requested: Rs {amount:,.2f}.",
            details={
                'allocation_id': allocation_id,
                'allocated_amount': str(current.allocated_amount),
                'spent_amount': str(current.spent_amount),
                'remaining_budget': str(remaining),
                'requested_amount': str(amount),
            }
        )

    allocation = Allocation.objects.select_related('department', 'budget_head').get(pk=allocation_id)
    LedgerLogger.log_spend_applied(allocation, amount)

    transaction.on_commit(lambda: BudgetNotifications.notify_budget_exhaustion(allocation_id))
    return allocation


# =============================================================================
# Allocation CRUD
# =============================================================================

@transaction.atomic
def create_allocation(
    financial_year: str,
    department,
    budget_head,
    allocated_amount,
    actor,
    remarks: str = '',
    reason: str = 'Initial allocation created',
    request=None
) -> Allocation:
    """
    Create an allocation and its first history version.

    Raises:
        UnauthorizedRoleException: If actor is not admin or office.
        FinancialYearClosedException: If the year is locked or closed.
        DuplicateAllocationException: If the (year, department, head) exists.
    """
    _require_manager(actor)
    return insert_allocation(
        financial_year, department, budget_head, allocated_amount, actor,
        remarks=remarks, reason=reason, request=request
    )


def insert_allocation(
    financial_year: str,
    department,
    budget_head,
    allocated_amount,
    actor,
    remarks: str = '',
    source_proposal=None,
    reason: str = 'Initial allocation created',
    request=None
) -> Allocation:
    """Create an allocation without a role check. Callers authorize first."""
    financial_year = _validate_financial_year(financial_year)
    department = _resolve(Department, department, 'department')
    budget_head = _resolve(BudgetHead, budget_head, 'budget_head')
    amount = to_amount(allocated_amount, 'allocated_amount')

    FinancialYear.ensure_open(financial_year)

    if Allocation.objects.filter(
        financial_year=financial_year, department=department, budget_head=budget_head
    ).exists():
        raise DuplicateAllocationException(
            details={
                'financial_year': financial_year,
                'department': department.pk,
                'budget_head': budget_head.pk,
            }
        )

    allocation = Allocation(
        financial_year=financial_year,
        department=department,
        budget_head=budget_head,
        allocated_amount=amount,
        remarks=remarks or '',
        source_proposal=source_proposal,
    )
    try:
        with transaction.atomic():
            allocation.save_with_user(actor)
    except IntegrityError:
        raise DuplicateAllocationException(
            details={
                'financial_year': financial_year,
                'department': department.pk,
                'budget_head': budget_head.pk,
            }
        )

    record_version(allocation, HistoryChangeType.CREATED, {}, reason, actor)

    AuditLogService.record(
        AuditEventType.ALLOCATION_CREATED,
        actor=actor,
        target=allocation,
        details={'source_proposal': getattr(source_proposal, 'pk', None)},
        new_values=allocation.to_snapshot(),
        request=request,
    )
    LedgerLogger.log_allocation_changed(allocation, actor, 'created')
    return allocation


@transaction.atomic
def update_allocation(
    allocation_id: int,
    actor,
    allocated_amount=None,
    remarks: Optional[str] = None,
    reason: str = '',
    request=None
) -> Allocation:
    """
    Change an allocation's amount and/or remarks, recording a new version.

    The row is locked for the duration so the spent_amount comparison
    is made against the committed value.

    Raises:
        NotFoundException: If the allocation does not exist.
        FinancialYearClosedException: If the year is locked or closed.
        AmountBelowSpentException: If the new amount is below spent_amount.
    """
    _require_manager(actor)
    try:
        allocation = Allocation.objects.select_for_update().get(pk=allocation_id)
    except Allocation.DoesNotExist:
        raise NotFoundException(f"Allocation #{allocation_id} not found.")

    FinancialYear.ensure_open(allocation.financial_year)

    previous = allocation.to_snapshot()
    changes: Dict[str, Dict[str, Any]] = {}

    if allocated_amount is not None:
        amount = to_amount(allocated_amount, 'allocated_amount')
        if amount < allocation.spent_amount:
            raise AmountBelowSpentException(
                f"Allocated amount cannot be less than spent amount (Rs {allocation.spent_amount:,.2f}).",
                details={
                    'spent_amount': str(allocation.spent_amount),
                    'requested_amount': str(amount),
                }
            )
        if amount != allocation.allocated_amount:
            changes['allocated_amount'] = {'old': str(allocation.allocated_amount), 'new': str(amount)}
            allocation.allocated_amount = amount

    if remarks is not None and remarks != allocation.remarks:
        changes['remarks'] = {'old': allocation.remarks, 'new': remarks}
        allocation.remarks = remarks

    if not changes:
        return allocation

    allocation.save_with_user(actor)
    record_version(allocation, HistoryChangeType.UPDATED, changes, reason or 'Allocation updated', actor)

    AuditLogService.record(
        AuditEventType.ALLOCATION_UPDATED,
        actor=actor,
        target=allocation,
        details={'reason': reason},
        previous_values=previous,
        new_values=allocation.to_snapshot(),
        request=request,
    )
    LedgerLogger.log_allocation_changed(allocation, actor, 'updated')
    return allocation


@transaction.atomic
def delete_allocation(allocation_id: int, actor, request=None) -> None:
    """
    Delete an allocation that has never been charged.

    Raises:
        NotFoundException: If the allocation does not exist.
        FinancialYearClosedException: If the year is locked or closed.
        AllocationInUseException: If any expenditure references it or
            spent_amount is non-zero.
    """
    _require_manager(actor)
    try:
        allocation = Allocation.objects.select_for_update().get(pk=allocation_id)
    except Allocation.DoesNotExist:
        raise NotFoundException(f"Allocation #{allocation_id} not found.")

    FinancialYear.ensure_open(allocation.financial_year)

    if allocation.spent_amount > ZERO or allocation.expenditures.exists():
        raise AllocationInUseException(details={'allocation_id': allocation.pk})

    snapshot = allocation.to_snapshot()
    allocation.delete()

    AuditLogService.record(
        AuditEventType.ALLOCATION_DELETED,
        actor=actor,
        target_entity='Allocation',
        target_id=allocation_id,
        previous_values=snapshot,
        request=request,
    )
    logger.info(
        f"Allocation #{allocation_id} deleted by {actor}",
        extra={'allocation_id': allocation_id}
    )


@dataclass
class BulkAllocationResult:
    created: List[Allocation] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)


def bulk_create_allocations(rows: Iterable[Dict[str, Any]], actor) -> BulkAllocationResult:
    """
    Create many allocations from already-parsed rows.

    Each row is created in its own savepoint; a failing row is reported
    as "Row N: reason" and does not affect the others.

    Args:
        rows: Dicts with financial_year, department, budget_head,
            allocated_amount and optional remarks.
        actor: Admin or office user.

    Returns:
        BulkAllocationResult with created allocations and row errors.
    """
    _require_manager(actor)
    rows = list(rows or [])
    if not rows:
        raise LedgerValidationException('Allocations list is required.')

    result = BulkAllocationResult(total=len(rows))
    with transaction.atomic():
        for index, row in enumerate(rows, start=1):
            missing = [
                key for key in ('financial_year', 'department', 'budget_head', 'allocated_amount')
                if row.get(key) in (None, '')
            ]
            if missing:
                result.errors.append(f"Row {index}: Missing required fields ({', '.join(missing)})")
                continue
            try:
                with transaction.atomic():
                    allocation = create_allocation(
                        financial_year=row['financial_year'],
                        department=row['department'],
                        budget_head=row['budget_head'],
                        allocated_amount=row['allocated_amount'],
                        remarks=row.get('remarks', ''),
                        actor=actor,
                        reason='Created by bulk upload',
                    )
                result.created.append(allocation)
            except DuplicateAllocationException:
                result.errors.append(f"Row {index}: Allocation already exists for this combination")
            except CBMSException as e:
                result.errors.append(f"Row {index}: {e.message}")

    logger.info(
        f"Bulk allocation upload: {result.created_count} of {result.total} created",
        extra={'created': result.created_count, 'total': result.total, 'errors': len(result.errors)}
    )
    return result


# =============================================================================
# Summaries
# =============================================================================

def _utilization(spent: Decimal, allocated: Decimal) -> Decimal:
    if not allocated:
        return ZERO
    return (spent / allocated * 100).quantize(Decimal('0.01'))


def get_allocation_summary(financial_year: Optional[str] = None) -> Dict[str, Any]:
    """
    Totals and per-department utilization for allocations.

    Args:
        financial_year: Optional YYYY-YYYY filter.

    Returns:
        Dict with 'summary' and 'department_breakdown' keys.
    """
    queryset = Allocation.objects.all()
    if financial_year:
        queryset = queryset.filter(financial_year=financial_year)

    totals = queryset.aggregate(
        total_allocated=Sum('allocated_amount'),
        total_spent=Sum('spent_amount'),
        total_allocations=Count('id'),
    )
    total_allocated = totals['total_allocated'] or ZERO
    total_spent = totals['total_spent'] or ZERO

    breakdown = []
    rows = queryset.values('department_id', 'department__name').annotate(
        total_allocated=Sum('allocated_amount'),
        total_spent=Sum('spent_amount'),
    ).order_by('department__name')
    for row in rows:
        breakdown.append({
            'department_id': row['department_id'],
            'department_name': row['department__name'],
            'total_allocated': row['total_allocated'],
            'total_spent': row['total_spent'],
            'remaining': row['total_allocated'] - row['total_spent'],
            'utilization_percentage': _utilization(row['total_spent'], row['total_allocated']),
        })

    return {
        'summary': {
            'total_allocated': total_allocated,
            'total_spent': total_spent,
            'total_allocations': totals['total_allocations'],
            'remaining': total_allocated - total_spent,
            'utilization_percentage': _utilization(total_spent, total_allocated),
        },
        'department_breakdown': breakdown,
    }
