"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Unit tests for core services: audit trail, notifications
             and runtime settings.
-------------------------------------------------------------------------
"""
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse

from apps.core.exceptions import (
    BudgetExceededException,
    ConcurrentBudgetExceededException,
    LedgerValidationException,
    NotFoundException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.models import AuditEventType, AuditLog, Notification, SystemSetting
from apps.core.services import (
    OVERSPEND_POLICY_KEY, AuditLogService, NotificationService, get_overspend_policy,
)
from apps.core.views import error_status
from apps.users.models import RoleCode


User = get_user_model()


class AuditLogServiceTests(TestCase):
    """Tests for AuditLogService.record."""

    def setUp(self) -> None:
        self.user = User.objects.create_user(
            email='office@college.edu.pk', password='pass1234',
            first_name='Office', role=RoleCode.OFFICE
        )

    def test_record_captures_actor_role_and_target(self) -> None:
        """The actor's role and the target's id are stored with the event."""
        entry = AuditLogService.record(
            AuditEventType.ALLOCATION_CREATED,
            actor=self.user,
            target=self.user,
            details={'note': 'seed'},
        )

        self.assertIsNotNone(entry)
        self.assertEqual(entry.actor_role, RoleCode.OFFICE)
        self.assertEqual(entry.target_entity, 'CustomUser')
        self.assertEqual(entry.target_id, str(self.user.pk))
        self.assertEqual(entry.details, {'note': 'seed'})

    def test_record_reads_request_metadata(self) -> None:
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='10.0.0.7, 10.0.0.1', HTTP_USER_AGENT='pytest')

        entry = AuditLogService.record(
            AuditEventType.FINANCIAL_YEAR_LOCKED,
            actor=self.user,
            target_entity='FinancialYear',
            target_id=1,
            request=request,
        )

        self.assertEqual(entry.ip_address, '10.0.0.7')
        self.assertEqual(entry.user_agent, 'pytest')

    def test_record_failure_is_logged_and_swallowed(self) -> None:
        """A failing audit write returns None and leaves the caller's transaction usable."""
        with patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('disk full')):
            with self.assertLogs('apps.core.services', level='ERROR') as logs:
                entry = AuditLogService.record(AuditEventType.ALLOCATION_UPDATED, actor=self.user)

        self.assertIsNone(entry)
        self.assertIn('disk full', logs.output[0])
        # Transaction is still usable after the failed write
        self.assertEqual(User.objects.count(), 1)


class NotificationServiceTests(TestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(email='hod@college.edu.pk', password='x', first_name='Hod')

    def test_unread_count_and_mark_all_as_read(self) -> None:
        NotificationService.send_notification(self.user, 'One', 'First')
        NotificationService.send_notification(self.user, 'Two', 'Second')

        self.assertEqual(NotificationService.get_unread_count(self.user), 2)
        self.assertEqual(NotificationService.mark_all_as_read(self.user), 2)
        self.assertEqual(NotificationService.get_unread_count(self.user), 0)

    def test_send_bulk_notification(self) -> None:
        other = User.objects.create_user(email='vp@college.edu.pk', password='x', first_name='Vp')

        NotificationService.send_bulk_notification([self.user, other], 'Notice', 'Budget meeting')

        self.assertEqual(Notification.objects.filter(title='Notice').count(), 2)


class OverspendPolicyTests(TestCase):
    """Tests for get_overspend_policy."""

    @override_settings(CBMS_DEFAULT_OVERSPEND_POLICY='disallow')
    def test_defaults_to_settings_value(self) -> None:
        self.assertEqual(get_overspend_policy(), 'disallow')

    def test_system_setting_overrides_default(self) -> None:
        SystemSetting.objects.create(key=OVERSPEND_POLICY_KEY, value='warn')

        self.assertEqual(get_overspend_policy(), 'warn')

    def test_unknown_value_falls_back_to_disallow(self) -> None:
        SystemSetting.objects.create(key=OVERSPEND_POLICY_KEY, value='sometimes')

        with self.assertLogs('apps.core.services', level='WARNING'):
            self.assertEqual(get_overspend_policy(), 'disallow')


class ErrorStatusTests(TestCase):
    def test_exception_to_status_mapping(self) -> None:
        self.assertEqual(error_status(NotFoundException()), 404)
        self.assertEqual(error_status(UnauthorizedRoleException()), 403)
        self.assertEqual(error_status(WorkflowTransitionException()), 409)
        self.assertEqual(error_status(BudgetExceededException()), 409)
        self.assertEqual(error_status(ConcurrentBudgetExceededException()), 409)
        self.assertEqual(error_status(LedgerValidationException()), 400)

    def test_to_dict_carries_error_code(self) -> None:
        payload = ConcurrentBudgetExceededException(details={'remaining_budget': '40000.00'}).to_dict()

        self.assertEqual(payload['error_code'], 'ERR_CONCURRENT_BUDGET_EXCEEDED')
        self.assertEqual(payload['details']['remaining_budget'], '40000.00')


class NotificationViewTests(TestCase):
    def setUp(self) -> None:
        self.user = User.objects.create_user(email='dept@college.edu.pk', password='pass1234', first_name='Dept')
        self.client.force_login(self.user)

    def test_list_and_mark_read(self) -> None:
        note = NotificationService.send_notification(self.user, 'Approved', 'Bill approved')

        response = self.client.get(reverse('core:notification_list'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['unread_count'], 1)

        response = self.client.post(reverse('core:notification_mark_read', args=[note.pk]))
        self.assertEqual(response.status_code, 200)
        note.refresh_from_db()
        self.assertTrue(note.is_read)

    def test_mark_read_of_another_users_notification_is_404(self) -> None:
        other = User.objects.create_user(email='other@college.edu.pk', password='x', first_name='Other')
        note = NotificationService.send_notification(other, 'Private', 'Not yours')

        response = self.client.post(reverse('core:notification_mark_read', args=[note.pk]))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error_code'], 'ERR_NOT_FOUND')
