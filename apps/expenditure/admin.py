"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Admin configuration for the expenditure module.
             Bills are read-only here; decisions go through the API.
-------------------------------------------------------------------------
"""
from django.contrib import admin
from django.utils.html import format_html

from apps.expenditure.models import ApprovalStep, Expenditure, ExpenditureStatus


class ApprovalStepInline(admin.TabularInline):
    """Inline for the approval trail."""
    model = ApprovalStep
    extra = 0
    fields = ['sequence', 'decision', 'approver', 'role', 'remarks', 'timestamp']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Expenditure)
class ExpenditureAdmin(admin.ModelAdmin):
    """Admin interface for Expenditure model."""

    list_display = [
        'id', 'bill_number', 'bill_date', 'party_name', 'department',
        'budget_head', 'bill_amount', 'status_badge', 'financial_year'
    ]
    list_filter = ['status', 'financial_year', 'department', 'is_resubmission']
    search_fields = ['bill_number', 'party_name', 'expense_details']
    ordering = ['-created_at']
    date_hierarchy = 'bill_date'
    inlines = [ApprovalStepInline]

    fieldsets = (
        ('Bill Information', {
            'fields': (
                'department', 'budget_head', 'allocation', 'financial_year',
                'bill_number', 'bill_date', 'bill_amount', 'party_name',
                'expense_details', 'reference_budget_register_no', 'attachments'
            )
        }),
        ('Workflow', {
            'fields': ('status', 'submitted_by', 'is_resubmission', 'original_expenditure'),
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in Expenditure._meta.fields]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def status_badge(self, obj):
        colors = {
            ExpenditureStatus.PENDING: 'secondary',
            ExpenditureStatus.VERIFIED: 'info',
            ExpenditureStatus.APPROVED: 'success',
            ExpenditureStatus.FINALIZED: 'primary',
            ExpenditureStatus.REJECTED: 'danger',
        }
        return format_html(
            '<span class="badge bg-{}">{}</span>',
            colors.get(obj.status, 'secondary'), obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'
