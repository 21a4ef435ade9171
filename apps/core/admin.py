"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Django admin configuration for core models: audit log,
             notifications and system settings.
-------------------------------------------------------------------------
"""
from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from apps.core.models import AuditLog, Notification, SystemSetting


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only view of the audit trail."""

    list_display = ['timestamp', 'event_type', 'actor', 'actor_role', 'target_entity', 'target_id']
    list_filter = ['event_type', 'target_entity', 'actor_role']
    search_fields = ['target_id', 'actor__email']
    date_hierarchy = 'timestamp'
    ordering = ['-timestamp']

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'recipient', 'category', 'is_read', 'created_at']
    list_filter = ['category', 'is_read']
    search_fields = ['title', 'message', 'recipient__email']
    ordering = ['-created_at']


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    """Admin configuration for runtime settings such as the overspend policy."""

    list_display = ['key', 'value', 'category', 'updated_by', 'updated_at']
    list_filter = ['category']
    search_fields = ['key', 'description']
    readonly_fields = ['updated_by', 'updated_at']

    def save_model(self, request, obj, form, change):
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)
