"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: URL configuration for the expenditure module.
-------------------------------------------------------------------------
"""
from django.urls import path

from apps.expenditure.models import ApprovalDecision
from apps.expenditure.views_api import (
    ApprovalQueueView,
    ExpenditureDecisionView,
    ExpenditureDetailView,
    ExpenditureListCreateView,
    ExpenditureResubmitView,
    ExpenditureSummaryView,
)

app_name = 'expenditure'

urlpatterns = [
    path('api/expenditures/', ExpenditureListCreateView.as_view(), name='expenditure_list'),
    path('api/expenditures/queue/', ApprovalQueueView.as_view(), name='approval_queue'),
    path('api/expenditures/summary/', ExpenditureSummaryView.as_view(), name='expenditure_summary'),
    path('api/expenditures/<int:pk>/', ExpenditureDetailView.as_view(), name='expenditure_detail'),
    path(
        'api/expenditures/<int:pk>/verify/',
        ExpenditureDecisionView.as_view(decision=ApprovalDecision.VERIFY),
        name='expenditure_verify'
    ),
    path(
        'api/expenditures/<int:pk>/approve/',
        ExpenditureDecisionView.as_view(decision=ApprovalDecision.APPROVE),
        name='expenditure_approve'
    ),
    path(
        'api/expenditures/<int:pk>/reject/',
        ExpenditureDecisionView.as_view(decision=ApprovalDecision.REJECT),
        name='expenditure_reject'
    ),
    path(
        'api/expenditures/<int:pk>/finalize/',
        ExpenditureDecisionView.as_view(decision=ApprovalDecision.FINALIZE),
        name='expenditure_finalize'
    ),
    path('api/expenditures/<int:pk>/resubmit/', ExpenditureResubmitView.as_view(), name='expenditure_resubmit'),
]
