"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Tests for allocation version history, rollback and
             promotion of approved budget proposals.
-------------------------------------------------------------------------
"""
from decimal import Decimal

from django.test import TestCase

from apps.budgeting.models import (
    Allocation, BudgetProposal, BudgetProposalItem, HistoryChangeType, ProposalStatus,
)
from apps.budgeting.services import apply_approval, update_allocation
from apps.budgeting.services_history import (
    get_allocation_history,
    get_allocation_version,
    rollback_allocation,
)
from apps.budgeting.services_proposal import approve_budget_proposal, promote_proposal
from apps.budgeting.tests import FY, BudgetingTestMixin
from apps.core.exceptions import (
    InvalidRollbackException,
    NotFoundException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.models import AuditEventType, AuditLog


class AllocationHistoryTests(BudgetingTestMixin, TestCase):
    """Tests for version history and rollback."""

    def setUp(self) -> None:
        self.allocation = self.make_allocation('100000')
        update_allocation(self.allocation.pk, actor=self.office, allocated_amount='150000', reason='Grant')
        update_allocation(self.allocation.pk, actor=self.office, allocated_amount='80000', reason='Cut')

    def test_versions_are_sequential_newest_first(self) -> None:
        page = get_allocation_history(self.allocation.pk)

        self.assertEqual([entry.version for entry in page], [3, 2, 1])
        self.assertEqual(page.paginator.count, 3)

    def test_history_pagination(self) -> None:
        page = get_allocation_history(self.allocation.pk, page=2, limit=2)

        self.assertEqual([entry.version for entry in page], [1])

    def test_history_of_unknown_allocation(self) -> None:
        with self.assertRaises(NotFoundException):
            get_allocation_history(999999)

    def test_get_version(self) -> None:
        version = get_allocation_version(self.allocation.pk, 2)

        self.assertEqual(version.snapshot['allocated_amount'], '150000.00')
        with self.assertRaises(NotFoundException):
            get_allocation_version(self.allocation.pk, 9)

    def test_rollback_appends_new_version(self) -> None:
        allocation = rollback_allocation(self.allocation.pk, 2, actor=self.admin)

        self.assertEqual(allocation.allocated_amount, Decimal('150000.00'))
        latest = allocation.history.order_by('-version').first()
        self.assertEqual(latest.version, 4)
        self.assertEqual(latest.change_type, HistoryChangeType.ROLLBACK)
        self.assertEqual(latest.change_reason, 'Rolled back to version 2')
        # Target version is untouched
        self.assertEqual(get_allocation_version(self.allocation.pk, 2).change_type, HistoryChangeType.UPDATED)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditEventType.ALLOCATION_ROLLBACK).exists())

    def test_rollback_keeps_spent_amount(self) -> None:
        apply_approval(self.allocation.pk, Decimal('50000'), 'disallow')

        allocation = rollback_allocation(self.allocation.pk, 1, actor=self.office, reason='Restore original')

        self.assertEqual(allocation.allocated_amount, Decimal('100000.00'))
        self.assertEqual(allocation.spent_amount, Decimal('50000.00'))

    def test_rollback_below_spent_rejected(self) -> None:
        apply_approval(self.allocation.pk, Decimal('70000'), 'disallow')
        update_allocation(self.allocation.pk, actor=self.office, allocated_amount='200000')
        apply_approval(self.allocation.pk, Decimal('60000'), 'disallow')

        with self.assertRaises(InvalidRollbackException):
            rollback_allocation(self.allocation.pk, 1, actor=self.office)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.allocated_amount, Decimal('200000.00'))

    def test_rollback_requires_manager(self) -> None:
        with self.assertRaises(UnauthorizedRoleException):
            rollback_allocation(self.allocation.pk, 1, actor=self.dept_user)

    def test_history_rows_are_append_only(self) -> None:
        entry = self.allocation.history.first()
        entry.change_reason = 'rewritten'

        with self.assertRaises(ValueError):
            entry.save()


class BudgetProposalTests(BudgetingTestMixin, TestCase):
    """Tests for proposal approval and promotion into allocations."""

    def setUp(self) -> None:
        self.proposal = BudgetProposal.objects.create(
            financial_year=FY, department=self.department, status=ProposalStatus.SUBMITTED
        )
        BudgetProposalItem.objects.create(
            proposal=self.proposal, budget_head=self.head,
            proposed_amount=Decimal('40000'), justification='Exam stationery'
        )
        BudgetProposalItem.objects.create(
            proposal=self.proposal, budget_head=self.other_head,
            proposed_amount=Decimal('250000'), justification='New lab'
        )

    def test_approval_creates_allocations(self) -> None:
        result = approve_budget_proposal(self.proposal.pk, actor=self.principal, notes='Approved in meeting')

        self.assertEqual(result.created_count, 2)
        self.proposal.refresh_from_db()
        self.assertEqual(self.proposal.status, ProposalStatus.APPROVED)
        self.assertEqual(self.proposal.approved_by, self.principal)
        allocation = Allocation.objects.get(budget_head=self.other_head)
        self.assertEqual(allocation.allocated_amount, Decimal('250000.00'))
        self.assertEqual(allocation.source_proposal, self.proposal)
        self.assertIn(f"#{self.proposal.pk}", allocation.history.get().change_reason)

    def test_promotion_skips_existing_allocations(self) -> None:
        self.make_allocation('10000')

        result = approve_budget_proposal(self.proposal.pk, actor=self.principal)

        self.assertEqual(result.created_count, 1)
        self.assertEqual(result.skipped, [{'budget_head': self.head.pk, 'reason': 'Allocation already exists'}])
        self.assertEqual(Allocation.objects.get(budget_head=self.head).allocated_amount, Decimal('10000.00'))

    def test_failed_item_does_not_undo_the_others(self) -> None:
        self.proposal.items.filter(budget_head=self.other_head).update(proposed_amount=Decimal('-500'))

        with self.assertLogs('apps.budgeting.services_proposal', 'WARNING'):
            result = approve_budget_proposal(self.proposal.pk, actor=self.principal)

        self.assertEqual(result.created_count, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0]['budget_head'], self.other_head.pk)
        self.assertTrue(Allocation.objects.filter(budget_head=self.head).exists())
        self.assertFalse(Allocation.objects.filter(budget_head=self.other_head).exists())
        self.proposal.refresh_from_db()
        self.assertEqual(self.proposal.status, ProposalStatus.APPROVED)

    def test_promotion_is_idempotent(self) -> None:
        approve_budget_proposal(self.proposal.pk, actor=self.principal)

        second = promote_proposal(self.proposal, self.principal)

        self.assertEqual(second.created_count, 0)
        self.assertEqual(len(second.skipped), 2)
        self.assertEqual(Allocation.objects.count(), 2)

    def test_cannot_approve_twice(self) -> None:
        approve_budget_proposal(self.proposal.pk, actor=self.principal)

        with self.assertRaises(WorkflowTransitionException):
            approve_budget_proposal(self.proposal.pk, actor=self.principal)

    def test_department_user_cannot_approve(self) -> None:
        with self.assertRaises(UnauthorizedRoleException):
            approve_budget_proposal(self.proposal.pk, actor=self.dept_user)
