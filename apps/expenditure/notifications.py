"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Notification handlers for expenditure workflow events.
             Handlers are scheduled after commit and never raise.
-------------------------------------------------------------------------
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from apps.core.models import NotificationCategory
from apps.core.services import NotificationService
from apps.expenditure.models import Expenditure
from apps.users.models import RoleCode

logger = logging.getLogger(__name__)

User = get_user_model()


def _load(expenditure_id: int) -> Expenditure:
    return Expenditure.objects.select_related(
        'department', 'budget_head', 'submitted_by'
    ).get(pk=expenditure_id)


def _link(expenditure: Expenditure) -> str:
    return f"/expenditure/api/expenditures/{expenditure.pk}/"


class ExpenditureNotifications:
    """
    Expenditure-specific notification handlers.

    - Submission: HOD of the department, office, Vice Principal and Principal
    - Approval: the submitter
    - Rejection: the submitter, with the remarks
    """

    @staticmethod
    def notify_submitted(expenditure_id: int) -> None:
        try:
            expenditure = _load(expenditure_id)
            recipients = list(User.objects.filter(is_active=True).filter(
                Q(role=RoleCode.HOD, department_id=expenditure.department_id) |
                Q(role__in=[RoleCode.OFFICE, RoleCode.VICE_PRINCIPAL, RoleCode.PRINCIPAL])
            ))
            message = (
                f"Bill {expenditure.bill_number} for Rs {expenditure.bill_amount:,.2f} "
                f"from {expenditure.party_name} ({expenditure.department.name}, "
                f"{expenditure.budget_head.name}) is awaiting review."
            )
            NotificationService.send_bulk_notification(
                recipients,
                title=_('New Expenditure Submitted'),
                message=message,
                link=_link(expenditure),
                category=NotificationCategory.WORKFLOW,
                icon='bi-file-earmark-text'
            )
            for user in recipients:
                ExpenditureNotifications._send_email(
                    user, f"Expenditure Submitted - Bill {expenditure.bill_number}", message
                )
        except Exception as e:
            logger.error(
                f"Failed to send submission notifications for expenditure #{expenditure_id}: {str(e)}",
                exc_info=True,
                extra={'expenditure_id': expenditure_id}
            )

    @staticmethod
    def notify_approved(expenditure_id: int, approver_name: str) -> None:
        try:
            expenditure = _load(expenditure_id)
            message = (
                f"Your bill {expenditure.bill_number} for Rs {expenditure.bill_amount:,.2f} "
                f"was approved by {approver_name}."
            )
            NotificationService.send_notification(
                recipient=expenditure.submitted_by,
                title=_('Expenditure Approved'),
                message=message,
                link=_link(expenditure),
                category=NotificationCategory.WORKFLOW,
                icon='bi-check-circle'
            )
            ExpenditureNotifications._send_email(
                expenditure.submitted_by, f"Expenditure Approved - Bill {expenditure.bill_number}", message
            )
        except Exception as e:
            logger.error(
                f"Failed to send approval notification for expenditure #{expenditure_id}: {str(e)}",
                exc_info=True,
                extra={'expenditure_id': expenditure_id}
            )

    @staticmethod
    def notify_rejected(expenditure_id: int, approver_name: str, remarks: str) -> None:
        try:
            expenditure = _load(expenditure_id)
            message = (
                f"Your bill {expenditure.bill_number} for Rs {expenditure.bill_amount:,.2f} "
                f"was rejected by {approver_name}. Remarks: {remarks}"
            )
            NotificationService.send_notification(
                recipient=expenditure.submitted_by,
                title=_('Expenditure Rejected'),
                message=message,
                link=_link(expenditure),
                category=NotificationCategory.ALERT,
                icon='bi-x-circle'
            )
            ExpenditureNotifications._send_email(
                expenditure.submitted_by, f"Expenditure Rejected - Bill {expenditure.bill_number}", message
            )
        except Exception as e:
            logger.error(
                f"Failed to send rejection notification for expenditure #{expenditure_id}: {str(e)}",
                exc_info=True,
                extra={'expenditure_id': expenditure_id}
            )

    @staticmethod
    def _send_email(user, subject: str, message: str) -> bool:
        if not user.email:
            return False
        try:
            send_mail(
                subject=subject,
                message=message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=True
            )
            return True
        except Exception:
            return False
