"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: JSON endpoints for expenditure submission, the approval
             workflow, resubmission and summaries.
-------------------------------------------------------------------------
"""
from typing import Any, Dict

from django.http import JsonResponse

from apps.core.views import LedgerAPIView, parse_body
from apps.expenditure import services
from apps.expenditure.models import ApprovalDecision, Expenditure


def expenditure_to_dict(expenditure: Expenditure, with_steps: bool = False) -> Dict[str, Any]:
    data = {
        'id': expenditure.pk,
        'public_id': str(expenditure.public_id),
        'department': {'id': expenditure.department_id, 'name': expenditure.department.name},
        'budget_head': {
            'id': expenditure.budget_head_id,
            'code': expenditure.budget_head.code,
            'name': expenditure.budget_head.name,
        },
        'allocation_id': expenditure.allocation_id,
        'bill_number': expenditure.bill_number,
        'bill_date': expenditure.bill_date,
        'bill_amount': expenditure.bill_amount,
        'party_name': expenditure.party_name,
        'expense_details': expenditure.expense_details,
        'attachments': expenditure.attachments,
        'reference_budget_register_no': expenditure.reference_budget_register_no,
        'status': expenditure.status,
        'financial_year': expenditure.financial_year,
        'submitted_by': expenditure.submitted_by_id,
        'is_resubmission': expenditure.is_resubmission,
        'original_expenditure_id': expenditure.original_expenditure_id,
        'created_at': expenditure.created_at,
    }
    if expenditure.overspend_warning:
        data['warning'] = expenditure.overspend_warning
    if with_steps:
        data['approval_steps'] = [
            {
                'sequence': step.sequence,
                'decision': step.decision,
                'approver': step.approver_id,
                'role': step.role,
                'remarks': step.remarks,
                'timestamp': step.timestamp,
            }
            for step in expenditure.approval_steps.all()
        ]
    return data


class ExpenditureListCreateView(LedgerAPIView):
    """
    GET lists the bills visible to the user.
    POST submits a new bill.
    """

    def get(self, request):
        queryset = services.visible_expenditures(request.user)
        for param in ('status', 'financial_year'):
            value = request.GET.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return JsonResponse({'results': [expenditure_to_dict(e) for e in queryset]})

    def post(self, request):
        data = parse_body(request)
        expenditure = services.submit_expenditure(
            department=data.get('department'),
            budget_head=data.get('budget_head'),
            bill_number=data.get('bill_number'),
            bill_date=data.get('bill_date'),
            bill_amount=data.get('bill_amount'),
            party_name=data.get('party_name'),
            expense_details=data.get('expense_details'),
            attachments=data.get('attachments'),
            reference_budget_register_no=data.get('reference_budget_register_no', ''),
            actor=request.user,
            request=request,
        )
        return JsonResponse(expenditure_to_dict(expenditure), status=201)


class ExpenditureDetailView(LedgerAPIView):
    def get(self, request, pk):
        return JsonResponse(expenditure_to_dict(services.get_expenditure(pk, request.user), with_steps=True))


class ExpenditureDecisionView(LedgerAPIView):
    """Apply one workflow decision to a bill."""

    decision = ApprovalDecision.APPROVE

    HANDLERS = {
        ApprovalDecision.VERIFY: services.verify_expenditure,
        ApprovalDecision.APPROVE: services.approve_expenditure,
        ApprovalDecision.REJECT: services.reject_expenditure,
        ApprovalDecision.FINALIZE: services.finalize_expenditure,
    }

    def post(self, request, pk):
        data = parse_body(request)
        handler = self.HANDLERS[self.decision]
        expenditure = handler(pk, actor=request.user, remarks=data.get('remarks', ''), request=request)
        return JsonResponse(expenditure_to_dict(expenditure))


class ExpenditureResubmitView(LedgerAPIView):
    def post(self, request, pk):
        expenditure = services.resubmit_expenditure(
            pk, actor=request.user, overrides=parse_body(request), request=request
        )
        return JsonResponse(expenditure_to_dict(expenditure), status=201)


class ApprovalQueueView(LedgerAPIView):
    def get(self, request):
        queue = services.get_approval_queue(request.user)
        return JsonResponse({'results': [expenditure_to_dict(e) for e in queue]})


class ExpenditureSummaryView(LedgerAPIView):
    def get(self, request):
        return JsonResponse(services.get_expenditure_summary(
            request.user,
            financial_year=request.GET.get('financial_year'),
            department_id=request.GET.get('department'),
        ))
