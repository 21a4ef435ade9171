# Generated manually on 2026-10-19

import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('allocation_created', 'Allocation Created'), ('allocation_updated', 'Allocation Updated'), ('allocation_deleted', 'Allocation Deleted'), ('allocation_rollback', 'Allocation Rolled Back'), ('expenditure_submitted', 'Expenditure Submitted'), ('expenditure_verified', 'Expenditure Verified'), ('expenditure_approved', 'Expenditure Approved'), ('expenditure_rejected', 'Expenditure Rejected'), ('expenditure_finalized', 'Expenditure Finalized'), ('expenditure_resubmitted', 'Expenditure Resubmitted'), ('budget_proposal_approved', 'Budget Proposal Approved'), ('financial_year_locked', 'Financial Year Locked'), ('financial_year_closed', 'Financial Year Closed')], db_index=True, max_length=40, verbose_name='Event Type')),
                ('actor_role', models.CharField(blank=True, max_length=30, verbose_name='Actor Role')),
                ('target_entity', models.CharField(max_length=50, verbose_name='Target Entity')),
                ('target_id', models.CharField(blank=True, max_length=64, verbose_name='Target ID')),
                ('details', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name='Details')),
                ('previous_values', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name='Previous Values')),
                ('new_values', models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True, verbose_name='New Values')),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True, verbose_name='IP Address')),
                ('user_agent', models.CharField(blank=True, max_length=255, verbose_name='User Agent')),
                ('timestamp', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Timestamp')),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_events', to=settings.AUTH_USER_MODEL, verbose_name='Actor')),
            ],
            options={
                'verbose_name': 'Audit Log',
                'verbose_name_plural': 'Audit Logs',
                'ordering': ['-timestamp'],
                'indexes': [models.Index(fields=['target_entity', 'target_id'], name='auditlog_target_idx')],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200, verbose_name='Title')),
                ('message', models.TextField(verbose_name='Message')),
                ('link', models.CharField(blank=True, max_length=255, verbose_name='Link')),
                ('category', models.CharField(choices=[('WORKFLOW', 'Workflow'), ('ALERT', 'Alert'), ('SYSTEM', 'System'), ('INFO', 'Information')], default='WORKFLOW', max_length=10, verbose_name='Category')),
                ('icon', models.CharField(default='bi-bell', max_length=50, verbose_name='Icon')),
                ('is_read', models.BooleanField(default=False, verbose_name='Is Read')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL, verbose_name='Recipient')),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['recipient', 'is_read'], name='notification_unread_idx')],
            },
        ),
        migrations.CreateModel(
            name='SystemSetting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True, verbose_name='Key')),
                ('value', models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name='Value')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('category', models.CharField(choices=[('budget', 'Budget'), ('workflow', 'Workflow'), ('general', 'General')], default='general', max_length=20, verbose_name='Category')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Updated By')),
            ],
            options={
                'verbose_name': 'System Setting',
                'verbose_name_plural': 'System Settings',
                'ordering': ['category', 'key'],
            },
        ),
    ]
