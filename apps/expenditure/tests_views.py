"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Tests for the expenditure and allocation JSON endpoints.
-------------------------------------------------------------------------
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse

from apps.budgeting.models import FinancialYear, FinancialYearStatus
from apps.budgeting.services import apply_approval
from apps.budgeting.tests import FY
from apps.expenditure.models import Expenditure, ExpenditureStatus
from apps.expenditure.tests import ExpenditureTestMixin


class ExpenditureAPITests(ExpenditureTestMixin, TestCase):
    """Tests for the expenditure endpoints."""

    def payload(self, **overrides):
        data = {
            'department': self.department.pk,
            'budget_head': self.head.pk,
            'bill_number': 'INV-900',
            'bill_date': '2024-10-01',
            'bill_amount': '12500.00',
            'party_name': 'City Printers',
            'expense_details': 'Prospectus printing',
        }
        data.update(overrides)
        return data

    def test_login_required(self) -> None:
        response = self.client.get(reverse('expenditure:expenditure_list'))

        self.assertEqual(response.status_code, 302)

    def test_submit_and_approve(self) -> None:
        self.client.force_login(self.dept_user)
        response = self.client.post(
            reverse('expenditure:expenditure_list'), self.payload(), content_type='application/json'
        )
        self.assertEqual(response.status_code, 201)
        expenditure_id = response.json()['id']
        self.assertEqual(response.json()['financial_year'], FY)

        self.client.force_login(self.office)
        response = self.client.post(
            reverse('expenditure:expenditure_approve', args=[expenditure_id]),
            {'remarks': 'Approved'}, content_type='application/json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], ExpenditureStatus.APPROVED)
        self.allocation.refresh_from_db()
        self.assertEqual(self.allocation.spent_amount, Decimal('12500.00'))

    def test_over_budget_submission_is_409_with_remaining(self) -> None:
        apply_approval(self.allocation.pk, Decimal('50000'), 'disallow')
        self.client.force_login(self.dept_user)

        response = self.client.post(
            reverse('expenditure:expenditure_list'),
            self.payload(bill_amount='200000'), content_type='application/json'
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error_code'], 'ERR_BUDGET_EXCEEDED')
        self.assertEqual(response.json()['details']['remaining_budget'], '50000.00')

    def test_wrong_role_is_403(self) -> None:
        expenditure = self.submit()
        self.client.force_login(self.dept_user)

        response = self.client.post(reverse('expenditure:expenditure_approve', args=[expenditure.pk]))

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error_code'], 'ERR_UNAUTHORIZED_ROLE')

    def test_department_user_cannot_see_other_departments(self) -> None:
        expenditure = self.submit()
        Expenditure.objects.filter(pk=expenditure.pk).update(department=self.other_department)
        self.client.force_login(self.dept_user)

        response = self.client.get(reverse('expenditure:expenditure_detail', args=[expenditure.pk]))

        self.assertEqual(response.status_code, 404)

    def test_queue_endpoint(self) -> None:
        self.submit()
        self.client.force_login(self.hod)

        response = self.client.get(reverse('expenditure:approval_queue'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['results']), 1)


class AllocationAPITests(ExpenditureTestMixin, TestCase):
    """Tests for the allocation endpoints."""

    def test_create_allocation(self) -> None:
        self.client.force_login(self.office)

        response = self.client.post(reverse('budgeting:allocation_list'), {
            'financial_year': FY,
            'department': self.department.pk,
            'budget_head': self.other_head.pk,
            'allocated_amount': '75000',
        }, content_type='application/json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['remaining_amount'], '75000.00')

    def test_duplicate_is_409(self) -> None:
        self.client.force_login(self.office)

        response = self.client.post(reverse('budgeting:allocation_list'), {
            'financial_year': FY,
            'department': self.department.pk,
            'budget_head': self.head.pk,
            'allocated_amount': '1',
        }, content_type='application/json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error_code'], 'ERR_DUPLICATE_ALLOCATION')

    def test_detail_lists_linked_expenditures(self) -> None:
        expenditure = self.submit('12000', bill_number='INV-900')
        self.client.force_login(self.office)

        response = self.client.get(reverse('budgeting:allocation_detail', args=[self.allocation.pk]))

        self.assertEqual(response.status_code, 200)
        bills = response.json()['expenditures']
        self.assertEqual([bill['id'] for bill in bills], [expenditure.pk])
        self.assertEqual(bills[0]['bill_amount'], '12000.00')
        self.assertEqual(bills[0]['status'], 'pending')

    def test_history_and_rollback(self) -> None:
        self.client.force_login(self.office)
        self.client.patch(
            reverse('budgeting:allocation_detail', args=[self.allocation.pk]),
            {'allocated_amount': '90000', 'change_reason': 'Cut'}, content_type='application/json'
        )

        response = self.client.get(reverse('budgeting:allocation_history', args=[self.allocation.pk]))
        self.assertEqual([row['version'] for row in response.json()['results']], [2, 1])

        response = self.client.post(
            reverse('budgeting:allocation_rollback', args=[self.allocation.pk]),
            {'version': 1}, content_type='application/json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['allocated_amount'], '100000.00')

    def test_lock_requires_principal_or_admin(self) -> None:
        FinancialYear.objects.create(
            year=FY, start_date=date(2024, 4, 1), end_date=date(2025, 3, 31),
            status=FinancialYearStatus.ACTIVE
        )
        url = reverse('budgeting:financial_year_lock', args=[FY])

        self.client.force_login(self.office)
        self.assertEqual(self.client.post(url).status_code, 403)

        self.client.force_login(self.principal)
        response = self.client.post(url, {'remarks': 'Frozen'}, content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], FinancialYearStatus.LOCKED)
