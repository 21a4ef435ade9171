"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Tests for expenditure submission, the approval workflow,
             resubmission and the approval queue.
-------------------------------------------------------------------------
"""
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings

from apps.budgeting.models import FinancialYear, FinancialYearStatus
from apps.budgeting.services import apply_approval, create_allocation
from apps.budgeting.tests import FY, BudgetingTestMixin
from apps.core.exceptions import (
    BudgetExceededException,
    ConcurrentBudgetExceededException,
    DuplicateBillNumberException,
    LedgerValidationException,
    MissingAllocationException,
    ThresholdExceededException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.models import AuditEventType, AuditLog, Notification, SystemSetting
from apps.core.services import OVERSPEND_POLICY_KEY
from apps.expenditure.models import ApprovalDecision, ApprovalStep, Expenditure, ExpenditureStatus
from apps.expenditure.services import (
    approve_expenditure,
    finalize_expenditure,
    get_approval_queue,
    get_expenditure_summary,
    reject_expenditure,
    resubmit_expenditure,
    submit_expenditure,
    verify_expenditure,
)
from apps.users.models import RoleCode


User = get_user_model()

BILL_DATE = date(2024, 8, 15)


class ExpenditureTestMixin(BudgetingTestMixin):
    """Budgeting fixtures plus the workflow roles and a 100,000 allocation."""

    @classmethod
    def setUpTestData(cls) -> None:
        super().setUpTestData()
        cls.hod = User.objects.create_user(
            email='cs.hod@college.edu.pk', password='x', first_name='Hod',
            role=RoleCode.HOD, department=cls.department
        )
        cls.physics_hod = User.objects.create_user(
            email='phy.hod@college.edu.pk', password='x', first_name='Physics',
            role=RoleCode.HOD, department=cls.other_department
        )
        cls.vice_principal = User.objects.create_user(
            email='vp@college.edu.pk', password='x', first_name='Vice', role=RoleCode.VICE_PRINCIPAL
        )

    def setUp(self) -> None:
        self.allocation = self.make_allocation('100000')

    def submit(self, amount='10000', bill_number='INV-001', actor=None, **kwargs) -> Expenditure:
        return submit_expenditure(
            department=kwargs.pop('department', self.department),
            budget_head=kwargs.pop('budget_head', self.head),
            bill_number=bill_number,
            bill_date=kwargs.pop('bill_date', BILL_DATE),
            bill_amount=amount,
            party_name='Rehman Stationers',
            expense_details='Answer sheets for annual exams',
            actor=actor or self.dept_user,
            **kwargs
        )


class SubmissionTests(ExpenditureTestMixin, TestCase):
    """Tests for submit_expenditure."""

    def test_submission_is_pending_and_linked(self) -> None:
        expenditure = self.submit(attachments=[{'name': 'invoice.pdf', 'url': '/files/1'}])

        self.assertEqual(expenditure.status, ExpenditureStatus.PENDING)
        self.assertEqual(expenditure.financial_year, FY)
        self.assertEqual(expenditure.allocation, self.allocation)
        self.assertEqual(expenditure.attachments[0]['name'], 'invoice.pdf')
        self.assertIsNone(expenditure.overspend_warning)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditEventType.EXPENDITURE_SUBMITTED).exists())
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('0.00'))

    def test_submission_notifies_reviewers_after_commit(self) -> None:
        with self.captureOnCommitCallbacks(execute=True):
            self.submit()

        recipients = set(Notification.objects.values_list('recipient__email', flat=True))
        self.assertEqual(recipients, {
            'cs.hod@college.edu.pk', 'office@college.edu.pk',
            'vp@college.edu.pk', 'principal@college.edu.pk',
        })

    def test_notification_failure_does_not_fail_submission(self) -> None:
        with patch('apps.expenditure.notifications.NotificationService.send_notification',
                   side_effect=RuntimeError('smtp down')):
            with self.assertLogs('apps.expenditure.notifications', level='ERROR'):
                with self.captureOnCommitCallbacks(execute=True):
                    expenditure = self.submit()

        self.assertTrue(Expenditure.objects.filter(pk=expenditure.pk).exists())

    def test_no_allocation_for_bill_year(self) -> None:
        with self.assertRaises(MissingAllocationException):
            self.submit(bill_date=date(2025, 4, 2))

    def test_other_department_rejected(self) -> None:
        with self.assertRaises(UnauthorizedRoleException):
            self.submit(department=self.other_department)

    def test_office_cannot_submit(self) -> None:
        with self.assertRaises(UnauthorizedRoleException):
            self.submit(actor=self.office)

    def test_missing_fields(self) -> None:
        with self.assertRaises(LedgerValidationException):
            self.submit(bill_number='  ')
        with self.assertRaises(LedgerValidationException):
            self.submit(amount='0')

    def test_exceeding_remaining_budget_is_blocked(self) -> None:
        """Allocation with 50,000 remaining refuses a 200,000 bill under 'disallow'."""
        apply_approval(self.allocation.pk, Decimal('50000'), 'disallow')

        with self.assertRaises(BudgetExceededException) as ctx:
            self.submit(amount='200000')

        self.assertEqual(ctx.exception.details['remaining_budget'], '50000.00')
        self.assertFalse(Expenditure.objects.exists())

    def test_warn_policy_attaches_warning(self) -> None:
        SystemSetting.objects.create(key=OVERSPEND_POLICY_KEY, value='warn')

        expenditure = self.submit(amount='150000')

        self.assertIn('exceeds the remaining budget', expenditure.overspend_warning)
        audit = AuditLog.objects.get(event_type=AuditEventType.EXPENDITURE_SUBMITTED)
        self.assertIn('overspend_warning', audit.details)

    def test_duplicate_bill_number(self) -> None:
        self.submit()

        with self.assertRaises(DuplicateBillNumberException):
            self.submit(amount='500')

    def test_bill_number_reusable_after_rejection(self) -> None:
        first = self.submit()
        reject_expenditure(first.pk, actor=self.hod, remarks='Wrong head')

        second = self.submit()

        self.assertNotEqual(first.pk, second.pk)


class WorkflowTests(ExpenditureTestMixin, TestCase):
    """Tests for verify, approve, reject and finalize."""

    def test_office_approval_charges_allocation(self) -> None:
        expenditure = self.submit('10000')

        expenditure = approve_expenditure(expenditure.pk, actor=self.office, remarks='OK')

        self.assertEqual(expenditure.status, ExpenditureStatus.APPROVED)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('10000.00'))
        self.assertEqual(self.allocation.remaining_amount, Decimal('90000.00'))
        audit = AuditLog.objects.get(event_type=AuditEventType.EXPENDITURE_APPROVED)
        self.assertEqual(audit.details['bill_amount'], '10000.00')
        step = expenditure.approval_steps.get()
        self.assertEqual((step.sequence, step.decision, step.role), (1, ApprovalDecision.APPROVE, RoleCode.OFFICE))

    def test_full_path_to_finalized(self) -> None:
        expenditure = self.submit('10000')

        verify_expenditure(expenditure.pk, actor=self.hod, remarks='Checked')
        approve_expenditure(expenditure.pk, actor=self.principal)
        expenditure = finalize_expenditure(expenditure.pk, actor=self.office, remarks='Cheque issued')

        self.assertEqual(expenditure.status, ExpenditureStatus.FINALIZED)
        self.assertEqual(
            list(expenditure.approval_steps.values_list('sequence', 'decision')),
            [(1, 'verify'), (2, 'approve'), (3, 'finalize')]
        )

    def test_reject_leaves_allocation_unchanged(self) -> None:
        expenditure = self.submit('5000')

        expenditure = reject_expenditure(expenditure.pk, actor=self.hod, remarks='Duplicate invoice')

        self.assertEqual(expenditure.status, ExpenditureStatus.REJECTED)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('0.00'))
        self.assertEqual(expenditure.approval_steps.get().remarks, 'Duplicate invoice')

    def test_reject_requires_remarks(self) -> None:
        expenditure = self.submit()

        with self.assertRaises(LedgerValidationException):
            reject_expenditure(expenditure.pk, actor=self.office, remarks='   ')
        expenditure.refresh_from_db()
        self.assertEqual(expenditure.status, ExpenditureStatus.PENDING)

    def test_rejecting_approved_bill_does_not_reverse_spend(self) -> None:
        expenditure = self.submit('10000')
        approve_expenditure(expenditure.pk, actor=self.office)

        reject_expenditure(expenditure.pk, actor=self.principal, remarks='Audit objection')

        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('10000.00'))

    def test_terminal_states(self) -> None:
        expenditure = self.submit()
        reject_expenditure(expenditure.pk, actor=self.office, remarks='No')

        with self.assertRaises(WorkflowTransitionException):
            approve_expenditure(expenditure.pk, actor=self.office)
        with self.assertRaises(WorkflowTransitionException):
            reject_expenditure(expenditure.pk, actor=self.office, remarks='Again')

    def test_state_is_checked_before_role(self) -> None:
        expenditure = self.submit()

        with self.assertRaises(WorkflowTransitionException) as ctx:
            finalize_expenditure(expenditure.pk, actor=self.dept_user)
        self.assertNotIsInstance(ctx.exception, UnauthorizedRoleException)

    def test_role_rules(self) -> None:
        expenditure = self.submit()

        with self.assertRaises(UnauthorizedRoleException):
            verify_expenditure(expenditure.pk, actor=self.physics_hod)
        with self.assertRaises(UnauthorizedRoleException):
            verify_expenditure(expenditure.pk, actor=self.principal)
        with self.assertRaises(UnauthorizedRoleException):
            approve_expenditure(expenditure.pk, actor=self.hod)
        with self.assertRaises(UnauthorizedRoleException):
            approve_expenditure(expenditure.pk, actor=self.admin)
        with self.assertRaises(UnauthorizedRoleException):
            reject_expenditure(expenditure.pk, actor=self.dept_user, remarks='No')

        approve_expenditure(expenditure.pk, actor=self.vice_principal)
        with self.assertRaises(UnauthorizedRoleException):
            finalize_expenditure(expenditure.pk, actor=self.principal)

    @override_settings(CBMS_VICE_PRINCIPAL_APPROVAL_LIMIT=Decimal('50000'))
    def test_vice_principal_limit(self) -> None:
        large = self.submit('60000', bill_number='INV-LARGE')
        small = self.submit('50000', bill_number='INV-SMALL')

        with self.assertRaises(ThresholdExceededException):
            approve_expenditure(large.pk, actor=self.vice_principal)
        approve_expenditure(small.pk, actor=self.vice_principal)

        large.refresh_from_db()
        self.assertEqual(large.status, ExpenditureStatus.PENDING)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('50000.00'))

    def test_second_approval_over_budget_is_refused(self) -> None:
        """Two 60,000 bills on a 100,000 allocation: only one can be approved."""
        first = self.submit('60000', bill_number='INV-A')
        second = self.submit('60000', bill_number='INV-B')

        approve_expenditure(first.pk, actor=self.office)
        with self.assertRaises(BudgetExceededException):
            approve_expenditure(second.pk, actor=self.office)

        second.refresh_from_db()
        self.assertEqual(second.status, ExpenditureStatus.PENDING)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('60000.00'))

    def test_stale_check_rolls_back_whole_approval(self) -> None:
        """If the pre-check passes on stale data, the atomic increment still refuses."""
        expenditure = self.submit('10000')
        apply_approval(self.allocation.pk, Decimal('95000'), 'disallow')

        with patch('apps.expenditure.services.enforce_overspend_policy', return_value=None):
            with self.assertRaises(ConcurrentBudgetExceededException):
                approve_expenditure(expenditure.pk, actor=self.office)

        expenditure.refresh_from_db()
        self.assertEqual(expenditure.status, ExpenditureStatus.PENDING)
        self.assertFalse(ApprovalStep.objects.filter(expenditure=expenditure).exists())
        self.assertFalse(AuditLog.objects.filter(event_type=AuditEventType.EXPENDITURE_APPROVED).exists())
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('95000.00'))

    def test_warn_policy_approval_overspends_with_warning(self) -> None:
        SystemSetting.objects.create(key=OVERSPEND_POLICY_KEY, value='warn')
        expenditure = self.submit('120000')

        expenditure = approve_expenditure(expenditure.pk, actor=self.office)

        self.assertIsNotNone(expenditure.overspend_warning)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('120000.00'))

    def test_approval_and_rejection_notify_submitter(self) -> None:
        approved = self.submit(bill_number='INV-OK')
        rejected = self.submit(bill_number='INV-NO')

        with self.captureOnCommitCallbacks(execute=True):
            approve_expenditure(approved.pk, actor=self.office)
            reject_expenditure(rejected.pk, actor=self.office, remarks='Missing signature')

        titles = list(Notification.objects.filter(recipient=self.dept_user).values_list('title', flat=True))
        self.assertIn('Expenditure Approved', titles)
        self.assertIn('Expenditure Rejected', titles)

    def test_year_cannot_close_with_pending_bills(self) -> None:
        self.submit()
        year = FinancialYear.objects.create(
            year=FY, start_date=date(2024, 4, 1), end_date=date(2025, 3, 31),
            status=FinancialYearStatus.ACTIVE
        )

        with self.assertRaises(LedgerValidationException):
            year.close(self.principal)


class ResubmissionTests(ExpenditureTestMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.original = self.submit('8000')
        reject_expenditure(self.original.pk, actor=self.hod, remarks='Amount wrong')

    def test_resubmit_creates_new_pending_bill(self) -> None:
        expenditure = resubmit_expenditure(
            self.original.pk, actor=self.dept_user, overrides={'bill_amount': '7500'}
        )

        self.assertEqual(expenditure.status, ExpenditureStatus.PENDING)
        self.assertTrue(expenditure.is_resubmission)
        self.assertEqual(expenditure.original_expenditure, self.original)
        self.assertEqual(expenditure.bill_amount, Decimal('7500.00'))
        self.assertEqual(expenditure.bill_number, self.original.bill_number)
        self.original.refresh_from_db()
        self.assertEqual(self.original.status, ExpenditureStatus.REJECTED)
        self.assertTrue(AuditLog.objects.filter(event_type=AuditEventType.EXPENDITURE_RESUBMITTED).exists())

    def test_only_submitter_can_resubmit(self) -> None:
        with self.assertRaises(UnauthorizedRoleException):
            resubmit_expenditure(self.original.pk, actor=self.hod)

    def test_only_rejected_bills_can_be_resubmitted(self) -> None:
        pending = self.submit(bill_number='INV-002')

        with self.assertRaises(WorkflowTransitionException):
            resubmit_expenditure(pending.pk, actor=self.dept_user)

    def test_resubmission_rechecks_budget(self) -> None:
        with self.assertRaises(BudgetExceededException):
            resubmit_expenditure(self.original.pk, actor=self.dept_user, overrides={'bill_amount': '250000'})

    def test_empty_override_clears_attachments(self) -> None:
        original = self.submit('5000', bill_number='INV-ATT', attachments=[{'file': 'bad.pdf'}])
        reject_expenditure(original.pk, actor=self.hod, remarks='Wrong invoice attached')

        expenditure = resubmit_expenditure(original.pk, actor=self.dept_user, overrides={'attachments': []})

        self.assertEqual(expenditure.attachments, [])
        original.refresh_from_db()
        self.assertEqual(original.attachments, [{'file': 'bad.pdf'}])

    def test_zero_amount_override_is_rejected(self) -> None:
        with self.assertRaises(LedgerValidationException):
            resubmit_expenditure(self.original.pk, actor=self.dept_user, overrides={'bill_amount': 0})

        self.assertFalse(Expenditure.objects.filter(original_expenditure=self.original).exists())


class QueueAndSummaryTests(ExpenditureTestMixin, TestCase):
    def setUp(self) -> None:
        super().setUp()
        physics_user = User.objects.create_user(
            email='phy.staff@college.edu.pk', password='x', first_name='Phy',
            role=RoleCode.DEPARTMENT, department=self.other_department
        )
        create_allocation(FY, self.other_department, self.head, '50000', actor=self.office)
        self.pending = self.submit('1000', bill_number='P-1')
        self.verified = self.submit('2000', bill_number='V-1')
        verify_expenditure(self.verified.pk, actor=self.hod)
        self.approved = self.submit('3000', bill_number='A-1')
        approve_expenditure(self.approved.pk, actor=self.office)
        self.physics_pending = submit_expenditure(
            department=self.other_department, budget_head=self.head, bill_number='P-1',
            bill_date=BILL_DATE, bill_amount='4000', party_name='Lab Supplies Co',
            expense_details='Glassware', actor=physics_user
        )

    def test_queue_per_role(self) -> None:
        self.assertEqual(list(get_approval_queue(self.hod)), [self.pending])
        self.assertEqual(
            set(get_approval_queue(self.office)),
            {self.pending, self.verified, self.physics_pending}
        )
        self.assertEqual(list(get_approval_queue(self.vice_principal)), [self.verified])
        self.assertEqual(list(get_approval_queue(self.dept_user)), [])

    def test_summary_for_office(self) -> None:
        data = get_expenditure_summary(self.office, financial_year=FY)

        self.assertEqual(data['summary']['total_expenditures'], 4)
        self.assertEqual(data['summary']['total_amount'], Decimal('10000.00'))
        self.assertEqual(data['summary']['pending_amount'], Decimal('5000.00'))
        self.assertEqual(data['summary']['approved_amount'], Decimal('3000.00'))
        self.assertEqual(data['by_status']['pending']['count'], 2)

    def test_summary_scoped_to_department(self) -> None:
        data = get_expenditure_summary(self.dept_user)

        self.assertEqual(data['summary']['total_expenditures'], 3)
        self.assertEqual(data['summary']['pending_amount'], Decimal('1000.00'))
