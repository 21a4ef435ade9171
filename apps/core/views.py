"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Core views: the JSON API base view that maps ledger
             errors to HTTP responses, and notification endpoints.
-------------------------------------------------------------------------
"""
import json
import logging
from typing import Any, Dict

from django.contrib.auth.mixins import LoginRequiredMixin
from django.http import JsonResponse
from django.views import View

from apps.core.exceptions import (
    AllocationInUseException,
    AmountBelowSpentException,
    BudgetExceededException,
    CBMSException,
    DuplicateAllocationException,
    DuplicateBillNumberException,
    FinancialYearClosedException,
    InvalidRollbackException,
    LedgerValidationException,
    NotFoundException,
    ThresholdExceededException,
    UnauthorizedRoleException,
    WorkflowTransitionException,
)
from apps.core.models import Notification
from apps.core.services import NotificationService
from apps.users.permissions import RoleRequiredMixin

logger = logging.getLogger(__name__)

# Checked in order; subclasses must come before their parents.
ERROR_STATUS = (
    (NotFoundException, 404),
    (UnauthorizedRoleException, 403),
    (ThresholdExceededException, 403),
    (DuplicateAllocationException, 409),
    (DuplicateBillNumberException, 409),
    (BudgetExceededException, 409),
    (FinancialYearClosedException, 409),
    (AmountBelowSpentException, 409),
    (InvalidRollbackException, 409),
    (AllocationInUseException, 409),
    (WorkflowTransitionException, 409),
    (LedgerValidationException, 400),
)


def error_status(error: CBMSException) -> int:
    for exception_class, status in ERROR_STATUS:
        if isinstance(error, exception_class):
            return status
    return 400


def parse_body(request) -> Dict[str, Any]:
    """Read a JSON request body, falling back to form data."""
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except ValueError:
            raise LedgerValidationException('Request body is not valid JSON.')
        if not isinstance(data, dict):
            raise LedgerValidationException('Request body must be a JSON object.')
        return data
    return request.POST.dict()


class LedgerAPIView(LoginRequiredMixin, RoleRequiredMixin, View):
    """
    Base class for the JSON endpoints.

    Service errors are returned as {'error_code', 'message', 'details'}
    with a matching status code. Role rules live in the services, so
    required_roles is only set where a view needs a coarser gate.
    """

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except CBMSException as e:
            status = error_status(e)
            logger.warning(
                f"{request.method} {request.path} failed with {e.error_code}: {e.message}",
                extra={'user_id': getattr(request.user, 'pk', None), 'status': status}
            )
            return JsonResponse(e.to_dict(), status=status)


# =====================================================================
# NOTIFICATION VIEWS
# =====================================================================

def notification_to_dict(notification: Notification) -> Dict[str, Any]:
    return {
        'id': notification.pk,
        'title': notification.title,
        'message': notification.message,
        'link': notification.link,
        'category': notification.category,
        'icon': notification.icon,
        'is_read': notification.is_read,
        'created_at': notification.created_at,
    }


class NotificationListView(LedgerAPIView):
    """
    List the current user's notifications, newest first.

    Query params: unread=1 to return only unread ones, limit (default 20).
    """

    def get(self, request):
        queryset = Notification.objects.filter(recipient=request.user).order_by('-created_at')
        if request.GET.get('unread') in ('1', 'true'):
            queryset = queryset.filter(is_read=False)
        try:
            limit = max(1, min(int(request.GET.get('limit', 20)), 100))
        except ValueError:
            raise LedgerValidationException('limit must be an integer.')
        return JsonResponse({
            'results': [notification_to_dict(n) for n in queryset[:limit]],
            'unread_count': NotificationService.get_unread_count(request.user),
        })


class NotificationMarkReadView(LedgerAPIView):
    def post(self, request, pk):
        updated = Notification.objects.filter(pk=pk, recipient=request.user).update(is_read=True)
        if not updated:
            raise NotFoundException(f"Notification #{pk} not found.")
        return JsonResponse({'id': pk, 'is_read': True})


class NotificationMarkAllReadView(LedgerAPIView):
    def post(self, request):
        count = NotificationService.mark_all_as_read(request.user)
        return JsonResponse({'marked_read': count})
