"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: URL configuration for the budgeting module.
-------------------------------------------------------------------------
"""
from django.urls import path

from apps.budgeting.views_api import (
    AllocationBulkCreateView,
    AllocationDetailView,
    AllocationHistoryView,
    AllocationListCreateView,
    AllocationRollbackView,
    AllocationSummaryView,
    AllocationVersionView,
    BudgetProposalApproveView,
    FinancialYearActionView,
)

app_name = 'budgeting'

urlpatterns = [
    # Allocations
    path('api/allocations/', AllocationListCreateView.as_view(), name='allocation_list'),
    path('api/allocations/bulk/', AllocationBulkCreateView.as_view(), name='allocation_bulk'),
    path('api/allocations/summary/', AllocationSummaryView.as_view(), name='allocation_summary'),
    path('api/allocations/<int:pk>/', AllocationDetailView.as_view(), name='allocation_detail'),
    path('api/allocations/<int:pk>/history/', AllocationHistoryView.as_view(), name='allocation_history'),
    path(
        'api/allocations/<int:pk>/history/<int:version>/',
        AllocationVersionView.as_view(),
        name='allocation_version'
    ),
    path('api/allocations/<int:pk>/rollback/', AllocationRollbackView.as_view(), name='allocation_rollback'),

    # Proposals
    path('api/proposals/<int:pk>/approve/', BudgetProposalApproveView.as_view(), name='proposal_approve'),

    # Financial years
    path(
        'api/financial-years/<str:year>/lock/',
        FinancialYearActionView.as_view(action='lock'),
        name='financial_year_lock'
    ),
    path(
        'api/financial-years/<str:year>/close/',
        FinancialYearActionView.as_view(action='close'),
        name='financial_year_close'
    ),
]
