"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Allocation versioning. Every create, update and rollback
             appends an immutable AllocationHistory row; rollback
             restores an earlier version as a new version.
-------------------------------------------------------------------------
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.core.paginator import Page, Paginator
from django.db import transaction
from django.db.models import Max

from apps.budgeting.models import (
    Allocation, AllocationHistory, FinancialYear, HistoryChangeType,
)
from apps.core.exceptions import (
    InvalidRollbackException,
    LedgerValidationException,
    NotFoundException,
    UnauthorizedRoleException,
)
from apps.core.logging import LedgerLogger
from apps.core.models import AuditEventType
from apps.core.services import AuditLogService
from apps.users.permissions import can_manage_allocations

logger = logging.getLogger(__name__)


def record_version(
    allocation: Allocation,
    change_type: str,
    changes: Optional[Dict[str, Any]],
    reason: str,
    actor
) -> AllocationHistory:
    """
    Append the next history version for an allocation.

    Must run inside the transaction that changed the allocation. The
    (allocation, version) unique constraint rejects a concurrent
    writer that computed the same version number.

    Args:
        allocation: Allocation after the change was applied.
        change_type: HistoryChangeType value.
        changes: Mapping of field name to {'old': ..., 'new': ...}.
        reason: Free-text reason for the change.
        actor: User responsible for the change.

    Returns:
        The new AllocationHistory row.
    """
    last_version = AllocationHistory.objects.filter(
        allocation=allocation
    ).aggregate(last=Max('version'))['last'] or 0

    return AllocationHistory.objects.create(
        allocation=allocation,
        version=last_version + 1,
        change_type=change_type,
        snapshot=allocation.to_snapshot(),
        changes=changes or {},
        change_reason=reason or '',
        changed_by=actor,
    )


def _get_allocation(allocation_id: int) -> Allocation:
    try:
        return Allocation.objects.get(pk=allocation_id)
    except Allocation.DoesNotExist:
        raise NotFoundException(f"Allocation #{allocation_id} not found.")


def get_allocation_history(allocation_id: int, page: int = 1, limit: int = 20) -> Page:
    """
    Return one page of an allocation's history, newest version first.

    Raises:
        NotFoundException: If the allocation does not exist.
    """
    allocation = _get_allocation(allocation_id)
    queryset = AllocationHistory.objects.filter(
        allocation=allocation
    ).select_related('changed_by').order_by('-version')
    paginator = Paginator(queryset, max(1, int(limit)))
    return paginator.get_page(page)


def get_allocation_version(allocation_id: int, version: int) -> AllocationHistory:
    """
    Fetch a single history version.

    Raises:
        NotFoundException: If the allocation or version does not exist.
    """
    allocation = _get_allocation(allocation_id)
    try:
        return AllocationHistory.objects.select_related('changed_by').get(
            allocation=allocation, version=version
        )
    except AllocationHistory.DoesNotExist:
        raise NotFoundException(
            f"Version {version} not found for allocation #{allocation_id}.",
            details={'allocation_id': allocation_id, 'version': version}
        )


@transaction.atomic
def rollback_allocation(
    allocation_id: int,
    target_version: int,
    actor,
    reason: str = '',
    request=None
) -> Allocation:
    """
    Restore the allocated amount and remarks of an earlier version.

    The restore is itself recorded as a new 'rollback' version; the
    target version is left untouched. spent_amount is never restored.

    Args:
        allocation_id: Allocation to roll back.
        target_version: Version whose values should become current.
        actor: Admin or office user.
        reason: Optional reason; defaults to "Rolled back to version N".

    Returns:
        The updated Allocation.

    Raises:
        NotFoundException: If the allocation or version does not exist.
        FinancialYearClosedException: If the year is locked or closed.
        InvalidRollbackException: If the target amount is below what has
            already been spent.
    """
    if not can_manage_allocations(actor):
        raise UnauthorizedRoleException("Only admin or office users can roll back allocations.")

    try:
        allocation = Allocation.objects.select_for_update().get(pk=allocation_id)
    except Allocation.DoesNotExist:
        raise NotFoundException(f"Allocation #{allocation_id} not found.")

    target = get_allocation_version(allocation_id, target_version)
    FinancialYear.ensure_open(allocation.financial_year)

    snapshot = target.snapshot or {}
    if 'allocated_amount' not in snapshot:
        raise LedgerValidationException(f"Version {target_version} has no allocated amount to restore.")

    restored_amount = Decimal(str(snapshot['allocated_amount']))
    restored_remarks = snapshot.get('remarks', '') or ''

    if restored_amount < allocation.spent_amount:
        raise InvalidRollbackException(
            f"Cannot roll back to version {target_version}: allocated amount "
            f"Rs {restored_amount:,.2f} is less than current spent amount "
            f"Rs {allocation.spent_amount:,.2f}.",
            details={
                'target_version': target_version,
                'target_allocated_amount': str(restored_amount),
                'spent_amount': str(allocation.spent_amount),
            }
        )

    previous = allocation.to_snapshot()
    changes = {
        'allocated_amount': {'old': str(allocation.allocated_amount), 'new': str(restored_amount)},
        'remarks': {'old': allocation.remarks, 'new': restored_remarks},
    }
    allocation.allocated_amount = restored_amount
    allocation.remarks = restored_remarks
    allocation.save_with_user(actor)

    reason = reason or f"Rolled back to version {target_version}"
    record_version(allocation, HistoryChangeType.ROLLBACK, changes, reason, actor)

    AuditLogService.record(
        AuditEventType.ALLOCATION_ROLLBACK,
        actor=actor,
        target=allocation,
        details={'target_version': target_version, 'reason': reason},
        previous_values=previous,
        new_values=allocation.to_snapshot(),
        request=request,
    )
    LedgerLogger.log_allocation_changed(allocation, actor, f'rolled back to v{target_version}')
    return allocation
