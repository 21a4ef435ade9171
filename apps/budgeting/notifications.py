"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Notification handlers for allocation events, currently
             the budget exhaustion warning raised after approvals.
-------------------------------------------------------------------------
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.utils.translation import gettext_lazy as _

from apps.budgeting.models import Allocation
from apps.core.models import NotificationCategory
from apps.core.services import NotificationService
from apps.users.models import RoleCode

logger = logging.getLogger(__name__)

User = get_user_model()


class BudgetNotifications:
    """Allocation-level alerts sent to department staff."""

    @staticmethod
    def notify_budget_exhaustion(allocation_id: int) -> int:
        """
        Warn department users and the HOD when an allocation is nearly spent.

        Nothing is sent below CBMS_BUDGET_EXHAUSTION_THRESHOLD percent
        utilization. Failures are logged and never propagate.

        Args:
            allocation_id: Primary key of the allocation to check.

        Returns:
            Number of users notified.
        """
        try:
            allocation = Allocation.objects.select_related(
                'department', 'budget_head'
            ).get(pk=allocation_id)

            threshold = Decimal(settings.CBMS_BUDGET_EXHAUSTION_THRESHOLD)
            utilization = allocation.utilization_percentage
            if utilization < threshold:
                return 0

            recipients = list(User.objects.filter(
                department_id=allocation.department_id,
                role__in=[RoleCode.DEPARTMENT, RoleCode.HOD],
                is_active=True
            ))

            NotificationService.send_bulk_notification(
                recipients,
                title=_('Budget Exhaustion Warning'),
                message=(
                    f"{allocation.budget_head.name} for {allocation.department.name} "
                    f"is {utilization}% utilized. Remaining: Rs {allocation.remaining_amount:,.2f} "
                    f"of Rs {allocation.allocated_amount:,.2f}."
                ),
                link=f"/budgeting/api/allocations/{allocation.pk}/",
                category=NotificationCategory.ALERT,
                icon='bi-exclamation-triangle'
            )
            for user in recipients:
                BudgetNotifications._send_exhaustion_email(user, allocation, utilization)

            logger.info(
                f"Budget exhaustion warning sent for allocation #{allocation.pk} at {utilization}%",
                extra={
                    'allocation_id': allocation.pk,
                    'utilization': str(utilization),
                    'recipients': len(recipients),
                }
            )
            return len(recipients)
        except Exception as e:
            logger.error(
                f"Failed to send budget exhaustion warning for allocation #{allocation_id}: {str(e)}",
                exc_info=True,
                extra={'allocation_id': allocation_id}
            )
            return 0

    @staticmethod
    def _send_exhaustion_email(user, allocation: Allocation, utilization: Decimal) -> bool:
        try:
            send_mail(
                subject=f"Budget Exhaustion Warning - {allocation.department.name}",
                message=(
                    f"Dear {user.get_full_name() or user.email},\n\n"
                    f"The allocation for {allocation.budget_head.name} ({allocation.financial_year}) "
                    f"is {utilization}% utilized.\n\n"
                    f"Allocated: Rs {allocation.allocated_amount:,.2f}\n"
                    f"Spent: Rs {allocation.spent_amount:,.2f}\n"
                    f"Remaining: Rs {allocation.remaining_amount:,.2f}\n"
                ),
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=True
            )
            return True
        except Exception:
            return False
