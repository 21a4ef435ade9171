"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: JSON endpoints for allocations, allocation history,
             budget proposals and financial year lock/close.
-------------------------------------------------------------------------
"""
from typing import Any, Dict

from django.http import JsonResponse

from apps.budgeting.models import Allocation, AllocationHistory, FinancialYear
from apps.budgeting.services import (
    bulk_create_allocations,
    create_allocation,
    delete_allocation,
    get_allocation_summary,
    update_allocation,
)
from apps.budgeting.services_history import (
    get_allocation_history,
    get_allocation_version,
    rollback_allocation,
)
from apps.budgeting.services_proposal import approve_budget_proposal
from apps.core.exceptions import LedgerValidationException, NotFoundException
from apps.core.views import LedgerAPIView, parse_body
from apps.users.models import RoleCode


def allocation_to_dict(allocation: Allocation) -> Dict[str, Any]:
    return {
        'id': allocation.pk,
        'public_id': str(allocation.public_id),
        'financial_year': allocation.financial_year,
        'department': {'id': allocation.department_id, 'name': allocation.department.name},
        'budget_head': {
            'id': allocation.budget_head_id,
            'code': allocation.budget_head.code,
            'name': allocation.budget_head.name,
        },
        'allocated_amount': allocation.allocated_amount,
        'spent_amount': allocation.spent_amount,
        'remaining_amount': allocation.remaining_amount,
        'utilization_percentage': allocation.utilization_percentage,
        'status': allocation.status,
        'remarks': allocation.remarks,
        'updated_at': allocation.updated_at,
    }


def history_to_dict(entry: AllocationHistory) -> Dict[str, Any]:
    return {
        'version': entry.version,
        'change_type': entry.change_type,
        'snapshot': entry.snapshot,
        'changes': entry.changes,
        'change_reason': entry.change_reason,
        'changed_by': entry.changed_by.get_full_name() if entry.changed_by else None,
        'changed_at': entry.changed_at,
    }


def _int_param(request, name: str, default: int) -> int:
    try:
        return int(request.GET.get(name, default))
    except ValueError:
        raise LedgerValidationException(f"{name} must be an integer.")


class AllocationListCreateView(LedgerAPIView):
    """
    GET lists allocations, filtered by financial_year and department.
    POST creates one allocation (admin and office only).
    """

    def get(self, request):
        queryset = Allocation.objects.select_related('department', 'budget_head')
        financial_year = request.GET.get('financial_year')
        if financial_year:
            queryset = queryset.filter(financial_year=financial_year)
        department = request.GET.get('department')
        if department:
            queryset = queryset.filter(department_id=department)
        if request.user.role in (RoleCode.DEPARTMENT, RoleCode.HOD):
            queryset = queryset.filter(department_id=request.user.department_id)
        return JsonResponse({'results': [allocation_to_dict(a) for a in queryset]})

    def post(self, request):
        data = parse_body(request)
        allocation = create_allocation(
            financial_year=data.get('financial_year'),
            department=data.get('department'),
            budget_head=data.get('budget_head'),
            allocated_amount=data.get('allocated_amount'),
            remarks=data.get('remarks', ''),
            actor=request.user,
            request=request,
        )
        return JsonResponse(allocation_to_dict(allocation), status=201)


class AllocationDetailView(LedgerAPIView):
    def get(self, request, pk):
        allocation = Allocation.objects.select_related('department', 'budget_head').filter(pk=pk).first()
        if allocation is None:
            raise NotFoundException(f"Allocation #{pk} not found.")
        data = allocation_to_dict(allocation)
        data['expenditures'] = [
            {
                'id': expenditure.pk,
                'bill_number': expenditure.bill_number,
                'bill_date': expenditure.bill_date,
                'bill_amount': expenditure.bill_amount,
                'party_name': expenditure.party_name,
                'status': expenditure.status,
            }
            for expenditure in allocation.expenditures.order_by('-created_at')
        ]
        return JsonResponse(data)


    def patch(self, request, pk):
        data = parse_body(request)
        allocation = update_allocation(
            pk,
            actor=request.user,
            allocated_amount=data.get('allocated_amount'),
            remarks=data.get('remarks'),
            reason=data.get('change_reason', ''),
            request=request,
        )
        return JsonResponse(allocation_to_dict(allocation))

    def delete(self, request, pk):
        delete_allocation(pk, actor=request.user, request=request)
        return JsonResponse({'deleted': pk})


class AllocationBulkCreateView(LedgerAPIView):
    """Create allocations from a list of already-parsed rows."""

    def post(self, request):
        data = parse_body(request)
        rows = data.get('allocations')
        if rows is not None and not isinstance(rows, list):
            raise LedgerValidationException('allocations must be a list.')
        result = bulk_create_allocations(rows or [], actor=request.user)
        return JsonResponse({
            'created': result.created_count,
            'total': result.total,
            'allocation_ids': [a.pk for a in result.created],
            'errors': result.errors,
        }, status=201 if result.created else 200)


class AllocationSummaryView(LedgerAPIView):
    def get(self, request):
        return JsonResponse(get_allocation_summary(request.GET.get('financial_year')))


class AllocationHistoryView(LedgerAPIView):
    """Paginated version history, newest first."""

    def get(self, request, pk):
        page = get_allocation_history(
            pk,
            page=_int_param(request, 'page', 1),
            limit=_int_param(request, 'limit', 20),
        )
        return JsonResponse({
            'results': [history_to_dict(entry) for entry in page],
            'page': page.number,
            'pages': page.paginator.num_pages,
            'total': page.paginator.count,
        })


class AllocationVersionView(LedgerAPIView):
    def get(self, request, pk, version):
        return JsonResponse(history_to_dict(get_allocation_version(pk, version)))


class AllocationRollbackView(LedgerAPIView):
    def post(self, request, pk):
        data = parse_body(request)
        try:
            version = int(data.get('version'))
        except (TypeError, ValueError):
            raise LedgerValidationException('version must be an integer.', details={'field': 'version'})
        allocation = rollback_allocation(
            pk, version, actor=request.user, reason=data.get('reason', ''), request=request
        )
        return JsonResponse(allocation_to_dict(allocation))


class BudgetProposalApproveView(LedgerAPIView):
    def post(self, request, pk):
        data = parse_body(request)
        result = approve_budget_proposal(pk, actor=request.user, notes=data.get('notes', ''), request=request)
        return JsonResponse(result.to_dict())


class FinancialYearActionView(LedgerAPIView):
    """Lock or close a financial year. Principal and admin only."""

    required_roles = [RoleCode.ADMIN, RoleCode.PRINCIPAL]
    action = 'lock'

    def post(self, request, year):
        financial_year = FinancialYear.objects.filter(year=year).first()
        if financial_year is None:
            raise NotFoundException(f"Financial year {year} not found.")
        remarks = parse_body(request).get('remarks', '')
        if self.action == 'close':
            financial_year.close(request.user, remarks)
        else:
            financial_year.lock(request.user, remarks)
        return JsonResponse({
            'year': financial_year.year,
            'status': financial_year.status,
            'total_allocated': financial_year.total_allocated,
            'total_spent': financial_year.total_spent,
        })
