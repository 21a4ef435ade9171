"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Shared models used by every CBMS module: the audit trail,
             in-app notifications and the key/value settings store.
-------------------------------------------------------------------------
"""
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils.translation import gettext_lazy as _


class AuditEventType(models.TextChoices):
    """Ledger events written to the audit trail."""
    ALLOCATION_CREATED = 'allocation_created', _('Allocation Created')
    ALLOCATION_UPDATED = 'allocation_updated', _('Allocation Updated')
    ALLOCATION_DELETED = 'allocation_deleted', _('Allocation Deleted')
    ALLOCATION_ROLLBACK = 'allocation_rollback', _('Allocation Rolled Back')
    EXPENDITURE_SUBMITTED = 'expenditure_submitted', _('Expenditure Submitted')
    EXPENDITURE_VERIFIED = 'expenditure_verified', _('Expenditure Verified')
    EXPENDITURE_APPROVED = 'expenditure_approved', _('Expenditure Approved')
    EXPENDITURE_REJECTED = 'expenditure_rejected', _('Expenditure Rejected')
    EXPENDITURE_FINALIZED = 'expenditure_finalized', _('Expenditure Finalized')
    EXPENDITURE_RESUBMITTED = 'expenditure_resubmitted', _('Expenditure Resubmitted')
    BUDGET_PROPOSAL_APPROVED = 'budget_proposal_approved', _('Budget Proposal Approved')
    FINANCIAL_YEAR_LOCKED = 'financial_year_locked', _('Financial Year Locked')
    FINANCIAL_YEAR_CLOSED = 'financial_year_closed', _('Financial Year Closed')


class AuditLog(models.Model):
    """
    Append-only audit trail for ledger mutations.

    Attributes:
        event_type: What happened (AuditEventType).
        actor: User who performed the action.
        actor_role: Role claim at the time of the action.
        target_entity: Model name of the affected record.
        target_id: Primary key of the affected record.
        details: Free-form context (warnings, remarks, amounts).
        previous_values: Field values before the change.
        new_values: Field values after the change.
    """

    event_type = models.CharField(
        max_length=40,
        choices=AuditEventType.choices,
        db_index=True,
        verbose_name=_('Event Type')
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_events',
        verbose_name=_('Actor')
    )
    actor_role = models.CharField(
        max_length=30,
        blank=True,
        verbose_name=_('Actor Role')
    )
    target_entity = models.CharField(
        max_length=50,
        verbose_name=_('Target Entity')
    )
    target_id = models.CharField(
        max_length=64,
        blank=True,
        verbose_name=_('Target ID')
    )
    details = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_('Details')
    )
    previous_values = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_('Previous Values')
    )
    new_values = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_('New Values')
    )
    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        verbose_name=_('IP Address')
    )
    user_agent = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_('User Agent')
    )
    timestamp = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        verbose_name=_('Timestamp')
    )

    class Meta:
        verbose_name = _('Audit Log')
        verbose_name_plural = _('Audit Logs')
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['target_entity', 'target_id'], name='auditlog_target_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.get_event_type_display()} - {self.target_entity}#{self.target_id}"


class NotificationCategory(models.TextChoices):
    """Categories for in-app notifications."""
    WORKFLOW = 'WORKFLOW', _('Workflow')
    ALERT = 'ALERT', _('Alert')
    SYSTEM = 'SYSTEM', _('System')
    INFO = 'INFO', _('Information')


class Notification(models.Model):
    """
    In-app notification delivered to a single user.

    Attributes:
        recipient: User who should see the notification.
        title: Short headline.
        message: Body text.
        link: Optional deep link into the application.
        category: NotificationCategory.
        is_read: Whether the recipient has opened it.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        verbose_name=_('Recipient')
    )
    title = models.CharField(
        max_length=200,
        verbose_name=_('Title')
    )
    message = models.TextField(
        verbose_name=_('Message')
    )
    link = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_('Link')
    )
    category = models.CharField(
        max_length=10,
        choices=NotificationCategory.choices,
        default=NotificationCategory.WORKFLOW,
        verbose_name=_('Category')
    )
    icon = models.CharField(
        max_length=50,
        default='bi-bell',
        verbose_name=_('Icon')
    )
    is_read = models.BooleanField(
        default=False,
        verbose_name=_('Is Read')
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_('Created At')
    )

    class Meta:
        verbose_name = _('Notification')
        verbose_name_plural = _('Notifications')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'is_read'], name='notification_unread_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.title} -> {self.recipient}"


class SettingCategory(models.TextChoices):
    """Grouping for system settings."""
    BUDGET = 'budget', _('Budget')
    WORKFLOW = 'workflow', _('Workflow')
    GENERAL = 'general', _('General')


class SystemSetting(models.Model):
    """
    Key/value configuration editable at runtime by administrators.

    Values are stored as JSON so numbers, strings and flags share
    one table.
    """

    key = models.CharField(
        max_length=100,
        unique=True,
        verbose_name=_('Key')
    )
    value = models.JSONField(
        encoder=DjangoJSONEncoder,
        verbose_name=_('Value')
    )
    description = models.TextField(
        blank=True,
        verbose_name=_('Description')
    )
    category = models.CharField(
        max_length=20,
        choices=SettingCategory.choices,
        default=SettingCategory.GENERAL,
        verbose_name=_('Category')
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Updated By')
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_('Updated At')
    )

    class Meta:
        verbose_name = _('System Setting')
        verbose_name_plural = _('System Settings')
        ordering = ['category', 'key']

    def __str__(self) -> str:
        return f"{self.key} = {self.value}"
