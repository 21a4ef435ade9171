"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Core services for notification management, audit logging
             and runtime settings shared by the ledger modules.
-------------------------------------------------------------------------
"""
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Model

from apps.core.models import (
    AuditLog, Notification, NotificationCategory, SystemSetting
)

logger = logging.getLogger(__name__)

OVERSPEND_POLICY_KEY = 'budget_overspend_policy'
OVERSPEND_POLICIES = ('disallow', 'warn', 'allow')


class NotificationService:
    """
    Service class for managing notifications.

    Provides methods to send notifications to users and query
    notification statistics.
    """

    @staticmethod
    @transaction.atomic
    def send_notification(
        recipient,
        title: str,
        message: str,
        link: str = '',
        category: str = NotificationCategory.WORKFLOW,
        icon: str = 'bi-bell'
    ) -> Notification:
        """
        Send a notification to a user.

        Args:
            recipient: CustomUser instance who should receive the notification.
            title: Short notification title.
            message: Detailed notification message.
            link: Optional URL to the document or page.
            category: Notification category (WORKFLOW, ALERT, SYSTEM, INFO).
            icon: Bootstrap icon class (default: 'bi-bell').

        Returns:
            The created Notification instance.
        """
        return Notification.objects.create(
            recipient=recipient,
            title=title,
            message=message,
            link=link,
            category=category,
            icon=icon
        )

    @staticmethod
    def send_bulk_notification(
        recipients,
        title: str,
        message: str,
        link: str = '',
        category: str = NotificationCategory.WORKFLOW,
        icon: str = 'bi-bell'
    ) -> List[Notification]:
        """Send the same notification to every recipient."""
        return [
            NotificationService.send_notification(
                recipient=recipient,
                title=title,
                message=message,
                link=link,
                category=category,
                icon=icon
            )
            for recipient in recipients
        ]

    @staticmethod
    def get_unread_count(user) -> int:
        return Notification.objects.filter(recipient=user, is_read=False).count()

    @staticmethod
    @transaction.atomic
    def mark_all_as_read(user) -> int:
        """
        Mark all notifications for a user as read.

        Returns:
            Number of notifications marked as read.
        """
        return Notification.objects.filter(
            recipient=user,
            is_read=False
        ).update(is_read=True)


class AuditLogService:
    """
    Writes ledger events to the audit trail.

    Audit writes never break the business operation that triggered
    them: each write runs in its own savepoint and any failure is
    logged and dropped.
    """

    @staticmethod
    def record(
        event_type: str,
        actor=None,
        target: Optional[Model] = None,
        target_entity: str = '',
        target_id: Any = '',
        details: Optional[Dict[str, Any]] = None,
        previous_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        request=None
    ) -> Optional[AuditLog]:
        """
        Record an audit event.

        Args:
            event_type: AuditEventType value.
            actor: User performing the action (may be None for system jobs).
            target: Affected model instance. Supplies entity name and id
                when target_entity/target_id are not given.
            details: Extra context stored with the event.
            previous_values: Snapshot before the change.
            new_values: Snapshot after the change.
            request: Optional HttpRequest for IP address and user agent.

        Returns:
            The created AuditLog, or None if the write failed.
        """
        if target is not None:
            target_entity = target_entity or target.__class__.__name__
            target_id = target_id or target.pk

        ip_address = None
        user_agent = ''
        if request is not None:
            forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
            ip_address = forwarded.split(',')[0].strip() if forwarded else request.META.get('REMOTE_ADDR')
            user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]

        try:
            with transaction.atomic():
                return AuditLog.objects.create(
                    event_type=event_type,
                    actor=actor,
                    actor_role=getattr(actor, 'role', '') or '',
                    target_entity=target_entity,
                    target_id=str(target_id or ''),
                    details=details or {},
                    previous_values=previous_values,
                    new_values=new_values,
                    ip_address=ip_address or None,
                    user_agent=user_agent,
                )
        except Exception as e:
            logger.error(
                f"Failed to write audit event {event_type} for {target_entity}#{target_id}: {str(e)}",
                exc_info=True,
                extra={
                    'event_type': event_type,
                    'target_entity': target_entity,
                    'target_id': str(target_id or ''),
                }
            )
            return None


def get_setting(key: str, default: Any = None) -> Any:
    """
    Read a runtime setting from the SystemSetting table.

    Args:
        key: Setting key.
        default: Returned when the key is not configured.
    """
    value = SystemSetting.objects.filter(key=key).values_list('value', flat=True).first()
    return default if value is None else value


def get_overspend_policy() -> str:
    """
    Return the active overspend policy: 'disallow', 'warn' or 'allow'.

    Unknown values fall back to 'disallow' so a bad setting can never
    loosen the budget ceiling.
    """
    policy = get_setting(OVERSPEND_POLICY_KEY, settings.CBMS_DEFAULT_OVERSPEND_POLICY)
    policy = str(policy).strip().lower()
    if policy not in OVERSPEND_POLICIES:
        logger.warning(f"Unknown overspend policy '{policy}', falling back to 'disallow'")
        return 'disallow'
    return policy
