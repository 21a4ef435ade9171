"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Concurrent approval test. Needs real row locking, so it
             only runs against PostgreSQL.
-------------------------------------------------------------------------
"""
import threading
from datetime import date
from decimal import Decimal
from unittest import skipUnless
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TransactionTestCase

from apps.budgeting.models import Allocation, BudgetHead, Department
from apps.budgeting.services import create_allocation, enforce_overspend_policy
from apps.core.exceptions import BudgetExceededException
from apps.expenditure.models import Expenditure, ExpenditureStatus
from apps.expenditure.services import approve_expenditure, submit_expenditure
from apps.users.models import RoleCode


User = get_user_model()


@skipUnless(connection.vendor == 'postgresql', 'Concurrent approvals need PostgreSQL row locks')
class ConcurrentApprovalTests(TransactionTestCase):
    """Two approvals racing for the same allocation."""

    def setUp(self) -> None:
        department = Department.objects.create(name='Chemistry', code='CHEM')
        head = BudgetHead.objects.create(name='Chemicals', code='A03970')
        self.office = User.objects.create_user(
            email='office@college.edu.pk', password='x', first_name='Accounts', role=RoleCode.OFFICE
        )
        submitter = User.objects.create_user(
            email='chem@college.edu.pk', password='x', first_name='Chem',
            role=RoleCode.DEPARTMENT, department=department
        )
        self.allocation = create_allocation('2024-2025', department, head, '100000', actor=self.office)
        self.bills = [
            submit_expenditure(
                department=department, budget_head=head, bill_number=f'CH-{n}',
                bill_date=date(2024, 9, 1), bill_amount='60000', party_name='Sigma Traders',
                expense_details='Reagents', actor=submitter
            )
            for n in (1, 2)
        ]

    def test_only_one_of_two_concurrent_approvals_succeeds(self) -> None:
        # Both approvals clear the pre-check before either increment runs,
        # so the loser is stopped by the conditional UPDATE itself.
        barrier = threading.Barrier(2, timeout=10)
        outcomes = []

        def checked_then_wait(*args, **kwargs):
            warning = enforce_overspend_policy(*args, **kwargs)
            barrier.wait()
            return warning

        def approve(expenditure_id: int) -> None:
            try:
                approve_expenditure(expenditure_id, actor=self.office)
                outcomes.append('approved')
            except BudgetExceededException as e:
                outcomes.append(e.error_code)
            finally:
                connection.close()

        with patch('apps.expenditure.services.enforce_overspend_policy', side_effect=checked_then_wait):
            threads = [threading.Thread(target=approve, args=(bill.pk,)) for bill in self.bills]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        self.assertEqual(sorted(outcomes), ['ERR_CONCURRENT_BUDGET_EXCEEDED', 'approved'])
        self.assertEqual(Allocation.objects.get(pk=self.allocation.pk).spent_amount, Decimal('60000.00'))
        statuses = sorted(Expenditure.objects.get(pk=bill.pk).status for bill in self.bills)
        self.assertEqual(statuses, sorted([ExpenditureStatus.APPROVED, ExpenditureStatus.PENDING]))
