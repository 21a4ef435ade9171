"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Django admin configuration for the budgeting module.
             Allocation amounts are changed through the service layer
             so that every change is versioned and audited.
-------------------------------------------------------------------------
"""
from django.contrib import admin, messages
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from apps.budgeting.models import (
    Allocation, AllocationHistory, BudgetHead, BudgetProposal,
    BudgetProposalItem, Department, FinancialYear, FinancialYearStatus,
)
from apps.budgeting.services import update_allocation
from apps.core.exceptions import CBMSException


@admin.register(FinancialYear)
class FinancialYearAdmin(admin.ModelAdmin):
    """
    Admin configuration for FinancialYear model.
    """

    list_display = ['year', 'start_date', 'end_date', 'status_badge', 'total_allocated', 'total_spent']
    list_filter = ['status']
    search_fields = ['year']
    readonly_fields = [
        'total_allocated', 'total_spent', 'locked_by', 'locked_at',
        'closed_by', 'closed_at', 'created_at', 'updated_at', 'created_by', 'updated_by'
    ]
    ordering = ['-start_date']

    fieldsets = (
        (None, {
            'fields': ('year', 'start_date', 'end_date', 'status')
        }),
        (_('Lock'), {
            'fields': ('locked_by', 'locked_at', 'lock_remarks'),
            'classes': ('collapse',)
        }),
        (_('Closure'), {
            'fields': ('closed_by', 'closed_at', 'closure_remarks', 'total_allocated', 'total_spent'),
            'classes': ('collapse',)
        }),
    )

    def status_badge(self, obj: FinancialYear) -> str:
        colors = {
            FinancialYearStatus.PLANNING: 'secondary',
            FinancialYearStatus.ACTIVE: 'success',
            FinancialYearStatus.LOCKED: 'warning',
            FinancialYearStatus.CLOSED: 'danger',
        }
        return format_html(
            '<span class="badge bg-{}">{}</span>',
            colors.get(obj.status, 'secondary'), obj.get_status_display()
        )
    status_badge.short_description = _('Status')
    status_badge.admin_order_field = 'status'

    def save_model(self, request, obj, form, change):
        obj.save_with_user(request.user)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'hod', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name', 'code']
    ordering = ['name']


@admin.register(BudgetHead)
class BudgetHeadAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'category', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['name', 'code']
    ordering = ['code']


class AllocationHistoryInline(admin.TabularInline):
    """Read-only version trail of an allocation."""
    model = AllocationHistory
    extra = 0
    fields = ['version', 'change_type', 'change_reason', 'changed_by', 'changed_at']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Allocation)
class AllocationAdmin(admin.ModelAdmin):
    """
    Admin for allocations.

    New allocations are created through the budgeting API. Here only
    the amount and remarks of an existing allocation can be edited,
    and the edit goes through update_allocation.
    """

    list_display = [
        'financial_year', 'department', 'budget_head',
        'allocated_amount', 'spent_amount', 'utilization', 'status'
    ]
    list_filter = ['financial_year', 'status', 'department']
    search_fields = ['department__name', 'budget_head__code', 'budget_head__name']
    readonly_fields = [
        'financial_year', 'department', 'budget_head', 'spent_amount',
        'status', 'source_proposal', 'created_by', 'updated_by'
    ]
    inlines = [AllocationHistoryInline]

    def utilization(self, obj: Allocation) -> str:
        return f"{obj.utilization_percentage:.1f}%"
    utilization.short_description = _('Utilization')

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def save_model(self, request, obj, form, change):
        try:
            update_allocation(
                obj.pk,
                actor=request.user,
                allocated_amount=form.cleaned_data.get('allocated_amount'),
                remarks=form.cleaned_data.get('remarks'),
                reason='Updated from admin',
                request=request,
            )
        except CBMSException as e:
            self.message_user(request, e.message, level=messages.ERROR)


@admin.register(AllocationHistory)
class AllocationHistoryAdmin(admin.ModelAdmin):
    list_display = ['allocation', 'version', 'change_type', 'changed_by', 'changed_at']
    list_filter = ['change_type']
    ordering = ['allocation', '-version']

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


class BudgetProposalItemInline(admin.TabularInline):
    model = BudgetProposalItem
    extra = 1
    autocomplete_fields = ['budget_head']


@admin.register(BudgetProposal)
class BudgetProposalAdmin(admin.ModelAdmin):
    list_display = ['financial_year', 'department', 'status', 'total_proposed_amount', 'approved_by', 'approved_at']
    list_filter = ['financial_year', 'status']
    search_fields = ['department__name']
    readonly_fields = ['approved_by', 'approved_at', 'created_by', 'updated_by']
    inlines = [BudgetProposalItemInline]
