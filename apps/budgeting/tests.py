"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Unit tests for the budgeting module.
-------------------------------------------------------------------------
"""
from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from apps.budgeting.models import (
    Allocation, AllocationHistory, BudgetHead, Department, FinancialYear,
    FinancialYearStatus, HistoryChangeType, financial_year_for_date,
)
from apps.budgeting.services import (
    OverspendDecision,
    apply_approval,
    bulk_create_allocations,
    check_overspend,
    create_allocation,
    delete_allocation,
    enforce_overspend_policy,
    get_allocation_summary,
    update_allocation,
)
from apps.core.exceptions import (
    AllocationInUseException,
    AmountBelowSpentException,
    BudgetExceededException,
    ConcurrentBudgetExceededException,
    DuplicateAllocationException,
    FinancialYearClosedException,
    LedgerValidationException,
    NotFoundException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.models import AuditEventType, AuditLog, Notification
from apps.users.models import RoleCode


User = get_user_model()

FY = '2024-2025'


class BudgetingTestMixin:
    """Shared fixtures: one department, two budget heads and the main roles."""

    @classmethod
    def setUpTestData(cls) -> None:
        cls.department = Department.objects.create(name='Computer Science', code='CS')
        cls.other_department = Department.objects.create(name='Physics', code='PHY')
        cls.head = BudgetHead.objects.create(name='Stationery', code='A03901')
        cls.other_head = BudgetHead.objects.create(name='Lab Equipment', code='A09601')

        cls.office = User.objects.create_user(
            email='office@college.edu.pk', password='x', first_name='Accounts', role=RoleCode.OFFICE
        )
        cls.admin = User.objects.create_user(
            email='admin@college.edu.pk', password='x', first_name='Admin', role=RoleCode.ADMIN
        )
        cls.principal = User.objects.create_user(
            email='principal@college.edu.pk', password='x', first_name='Principal', role=RoleCode.PRINCIPAL
        )
        cls.dept_user = User.objects.create_user(
            email='cs.staff@college.edu.pk', password='x', first_name='Staff',
            role=RoleCode.DEPARTMENT, department=cls.department
        )

    def make_allocation(self, amount='100000', head=None, year=FY) -> Allocation:
        return create_allocation(
            financial_year=year,
            department=self.department,
            budget_head=head or self.head,
            allocated_amount=amount,
            actor=self.office,
        )


class FinancialYearTests(BudgetingTestMixin, TestCase):
    """Tests for financial year derivation and the lock/close guard."""

    def test_financial_year_for_date_april_boundary(self) -> None:
        self.assertEqual(financial_year_for_date(date(2024, 4, 1)), '2024-2025')
        self.assertEqual(financial_year_for_date(date(2025, 3, 31)), '2024-2025')
        self.assertEqual(financial_year_for_date(date(2024, 3, 31)), '2023-2024')

    def test_missing_year_record_is_open(self) -> None:
        FinancialYear.ensure_open('2030-2031')

    def test_locked_year_blocks_allocation_create(self) -> None:
        FinancialYear.objects.create(
            year=FY, start_date=date(2024, 4, 1), end_date=date(2025, 3, 31),
            status=FinancialYearStatus.LOCKED
        )

        with self.assertRaises(FinancialYearClosedException):
            self.make_allocation()
        self.assertFalse(Allocation.objects.exists())

    def test_lock_and_close(self) -> None:
        allocation = self.make_allocation('5000')
        year = FinancialYear.objects.create(
            year=FY, start_date=date(2024, 4, 1), end_date=date(2025, 3, 31),
            status=FinancialYearStatus.ACTIVE
        )

        year.lock(self.principal, 'Budget frozen')
        self.assertTrue(year.is_locked)
        with self.assertRaises(WorkflowTransitionException):
            year.lock(self.principal)
        with self.assertRaises(FinancialYearClosedException):
            update_allocation(allocation.pk, actor=self.office, allocated_amount='6000')

        year.close(self.principal, 'Year end')
        year.refresh_from_db()
        self.assertTrue(year.is_closed)
        self.assertEqual(year.total_allocated, Decimal('5000.00'))
        self.assertTrue(AuditLog.objects.filter(event_type=AuditEventType.FINANCIAL_YEAR_CLOSED).exists())
        with self.assertRaises(WorkflowTransitionException):
            year.close(self.principal)


class AllocationServiceTests(BudgetingTestMixin, TestCase):
    """Tests for allocation create, update and delete."""

    def test_create_allocation_records_first_version_and_audit(self) -> None:
        allocation = self.make_allocation()

        self.assertEqual(allocation.allocated_amount, Decimal('100000.00'))
        self.assertEqual(allocation.spent_amount, Decimal('0.00'))
        self.assertEqual(allocation.created_by, self.office)
        history = allocation.history.get()
        self.assertEqual(history.version, 1)
        self.assertEqual(history.change_type, HistoryChangeType.CREATED)
        self.assertEqual(history.snapshot['allocated_amount'], '100000.00')
        self.assertTrue(AuditLog.objects.filter(
            event_type=AuditEventType.ALLOCATION_CREATED, target_id=str(allocation.pk)
        ).exists())

    def test_create_accepts_codes(self) -> None:
        allocation = create_allocation(FY, 'CS', 'A03901', '2500.50', actor=self.admin)

        self.assertEqual(allocation.department, self.department)
        self.assertEqual(allocation.allocated_amount, Decimal('2500.50'))

    def test_department_user_cannot_create(self) -> None:
        with self.assertRaises(UnauthorizedRoleException):
            create_allocation(FY, self.department, self.head, '1000', actor=self.dept_user)

    def test_duplicate_allocation_rejected(self) -> None:
        self.make_allocation()

        with self.assertRaises(DuplicateAllocationException):
            self.make_allocation('5000')
        self.assertEqual(Allocation.objects.count(), 1)

    def test_invalid_input(self) -> None:
        with self.assertRaises(LedgerValidationException):
            create_allocation('2024/25', self.department, self.head, '1000', actor=self.office)
        with self.assertRaises(LedgerValidationException):
            create_allocation(FY, self.department, self.head, '-5', actor=self.office)
        with self.assertRaises(NotFoundException):
            create_allocation(FY, 'NOPE', self.head, '1000', actor=self.office)

    def test_update_records_changes(self) -> None:
        allocation = self.make_allocation()

        allocation = update_allocation(
            allocation.pk, actor=self.office, allocated_amount='120000',
            remarks='Supplementary grant', reason='Mid-year revision'
        )

        self.assertEqual(allocation.allocated_amount, Decimal('120000.00'))
        latest = allocation.history.order_by('-version').first()
        self.assertEqual(latest.version, 2)
        self.assertEqual(latest.change_type, HistoryChangeType.UPDATED)
        self.assertEqual(latest.changes['allocated_amount'], {'old': '100000.00', 'new': '120000.00'})
        self.assertEqual(latest.change_reason, 'Mid-year revision')

    def test_update_without_changes_adds_no_version(self) -> None:
        allocation = self.make_allocation()

        update_allocation(allocation.pk, actor=self.office, allocated_amount='100000')

        self.assertEqual(allocation.history.count(), 1)

    def test_update_below_spent_rejected(self) -> None:
        allocation = self.make_allocation()
        apply_approval(allocation.pk, Decimal('60000'), 'disallow')

        with self.assertRaises(AmountBelowSpentException):
            update_allocation(allocation.pk, actor=self.office, allocated_amount='50000')
        allocation.refresh_from_db()
        self.assertEqual(allocation.allocated_amount, Decimal('100000.00'))

    def test_delete_unused_allocation(self) -> None:
        allocation = self.make_allocation()
        allocation_id = allocation.pk

        delete_allocation(allocation_id, actor=self.admin)

        self.assertFalse(Allocation.objects.filter(pk=allocation_id).exists())
        self.assertFalse(AllocationHistory.objects.filter(allocation_id=allocation_id).exists())
        deleted = AuditLog.objects.get(event_type=AuditEventType.ALLOCATION_DELETED)
        self.assertEqual(deleted.previous_values['allocated_amount'], '100000.00')

    def test_delete_spent_allocation_rejected(self) -> None:
        allocation = self.make_allocation()
        apply_approval(allocation.pk, Decimal('100'), 'disallow')

        with self.assertRaises(AllocationInUseException):
            delete_allocation(allocation.pk, actor=self.admin)


class BulkAllocationTests(BudgetingTestMixin, TestCase):
    def test_partial_success_reports_row_errors(self) -> None:
        self.make_allocation()

        result = bulk_create_allocations([
            {'financial_year': FY, 'department': 'CS', 'budget_head': 'A09601', 'allocated_amount': '40000'},
            {'financial_year': FY, 'department': 'CS', 'budget_head': 'A03901', 'allocated_amount': '1'},
            {'financial_year': FY, 'department': 'PHY', 'allocated_amount': '1'},
            {'financial_year': FY, 'department': 'PHY', 'budget_head': 'A03901', 'allocated_amount': 'abc'},
        ], actor=self.office)

        self.assertEqual(result.total, 4)
        self.assertEqual(result.created_count, 1)
        self.assertEqual(result.errors[0], 'Row 2: Allocation already exists for this combination')
        self.assertEqual(result.errors[1], 'Row 3: Missing required fields (budget_head)')
        self.assertTrue(result.errors[2].startswith('Row 4: '))

    def test_empty_list_rejected(self) -> None:
        with self.assertRaises(LedgerValidationException):
            bulk_create_allocations([], actor=self.office)


class AllocationUpdateEngineTests(BudgetingTestMixin, TestCase):
    """Tests for the overspend policy and the atomic spend increment."""

    def test_check_overspend_decisions(self) -> None:
        allocation = self.make_allocation()
        allocation.spent_amount = Decimal('95000')

        self.assertEqual(check_overspend(allocation, Decimal('5000'), 'disallow'), OverspendDecision.ALLOW)
        self.assertEqual(check_overspend(allocation, Decimal('10000'), 'disallow'), OverspendDecision.BLOCK)
        self.assertEqual(check_overspend(allocation, Decimal('10000'), 'warn'), OverspendDecision.WARN)
        self.assertEqual(check_overspend(allocation, Decimal('10000'), 'allow'), OverspendDecision.ALLOW)
        self.assertEqual(check_overspend(allocation, Decimal('10000'), 'bogus'), OverspendDecision.BLOCK)

    def test_enforce_blocks_with_remaining_budget(self) -> None:
        allocation = self.make_allocation()
        allocation.spent_amount = Decimal('95000')

        with self.assertRaises(BudgetExceededException) as ctx:
            enforce_overspend_policy(allocation, Decimal('10000'), 'disallow')
        self.assertEqual(ctx.exception.details['remaining_budget'], '5000.00')

        warning = enforce_overspend_policy(allocation, Decimal('10000'), 'warn')
        self.assertIn('exceeds the remaining budget', warning)

    def test_second_approval_exceeding_budget_fails(self) -> None:
        """Two 60,000 approvals on a 100,000 allocation: the second must fail."""
        allocation = self.make_allocation()

        apply_approval(allocation.pk, Decimal('60000'), 'disallow')
        with self.assertRaises(ConcurrentBudgetExceededException) as ctx:
            apply_approval(allocation.pk, Decimal('60000'), 'disallow')

        allocation.refresh_from_db()
        self.assertEqual(allocation.spent_amount, Decimal('60000.00'))
        self.assertEqual(ctx.exception.details['remaining_budget'], '40000.00')

    def test_exact_remaining_amount_is_accepted(self) -> None:
        allocation = self.make_allocation()

        apply_approval(allocation.pk, Decimal('100000'), 'disallow')

        allocation.refresh_from_db()
        self.assertEqual(allocation.remaining_amount, Decimal('0.00'))

    def test_warn_policy_lets_spend_exceed_allocation(self) -> None:
        allocation = self.make_allocation('1000')

        allocation = apply_approval(allocation.pk, Decimal('1500'), 'warn')

        self.assertEqual(allocation.spent_amount, Decimal('1500.00'))

    def test_missing_allocation(self) -> None:
        from apps.core.exceptions import MissingAllocationException

        with self.assertRaises(MissingAllocationException):
            apply_approval(999999, Decimal('1'), 'disallow')

    @override_settings(CBMS_BUDGET_EXHAUSTION_THRESHOLD=90)
    def test_exhaustion_notification_after_commit(self) -> None:
        allocation = self.make_allocation()

        with self.captureOnCommitCallbacks(execute=True):
            apply_approval(allocation.pk, Decimal('95000'), 'disallow')

        self.assertEqual(Notification.objects.filter(recipient=self.dept_user).count(), 1)

    @override_settings(CBMS_BUDGET_EXHAUSTION_THRESHOLD=90)
    def test_no_exhaustion_notification_below_threshold(self) -> None:
        allocation = self.make_allocation()

        with self.captureOnCommitCallbacks(execute=True):
            apply_approval(allocation.pk, Decimal('10000'), 'disallow')

        self.assertFalse(Notification.objects.exists())


class AllocationSummaryTests(BudgetingTestMixin, TestCase):
    def test_summary_totals_and_breakdown(self) -> None:
        first = self.make_allocation('100000')
        self.make_allocation('50000', head=self.other_head)
        apply_approval(first.pk, Decimal('30000'), 'disallow')

        data = get_allocation_summary(FY)

        self.assertEqual(data['summary']['total_allocated'], Decimal('150000.00'))
        self.assertEqual(data['summary']['total_spent'], Decimal('30000.00'))
        self.assertEqual(data['summary']['remaining'], Decimal('120000.00'))
        self.assertEqual(data['summary']['utilization_percentage'], Decimal('20.00'))
        self.assertEqual(len(data['department_breakdown']), 1)
        self.assertEqual(data['department_breakdown'][0]['department_name'], 'Computer Science')

    def test_summary_for_empty_year(self) -> None:
        data = get_allocation_summary('2040-2041')

        self.assertEqual(data['summary']['total_allocations'], 0)
        self.assertEqual(data['summary']['utilization_percentage'], Decimal('0.00'))
