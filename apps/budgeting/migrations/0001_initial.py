# Generated manually on 2026-10-19

import uuid
from decimal import Decimal

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def year_validator():
    return django.core.validators.RegexValidator(
        message='Financial year must be in format YYYY-YYYY', regex='^\\d{4}-\\d{4}$'
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('users', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='FinancialYear',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, help_text='Unique UUID for external reference.', unique=True, verbose_name='Public ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('year', models.CharField(help_text='Financial year label, e.g. "2024-2025".', max_length=9, unique=True, validators=[year_validator()], verbose_name='Financial Year')),
                ('start_date', models.DateField(verbose_name='Start Date')),
                ('end_date', models.DateField(verbose_name='End Date')),
                ('status', models.CharField(choices=[('planning', 'Planning'), ('active', 'Active'), ('locked', 'Locked'), ('closed', 'Closed')], db_index=True, default='planning', max_length=10, verbose_name='Status')),
                ('total_allocated', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15, verbose_name='Total Allocated')),
                ('total_spent', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=15, verbose_name='Total Spent')),
                ('locked_at', models.DateTimeField(blank=True, null=True, verbose_name='Locked At')),
                ('lock_remarks', models.TextField(blank=True, verbose_name='Lock Remarks')),
                ('closed_at', models.DateTimeField(blank=True, null=True, verbose_name='Closed At')),
                ('closure_remarks', models.TextField(blank=True, verbose_name='Closure Remarks')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='financialyear_created', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='financialyear_updated', to=settings.AUTH_USER_MODEL, verbose_name='Updated By')),
                ('locked_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Locked By')),
                ('closed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Closed By')),
            ],
            options={
                'verbose_name': 'Financial Year',
                'verbose_name_plural': 'Financial Years',
                'ordering': ['-start_date'],
            },
        ),
        migrations.CreateModel(
            name='Department',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, help_text='Unique UUID for external reference.', unique=True, verbose_name='Public ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('name', models.CharField(max_length=150, unique=True, verbose_name='Department Name')),
                ('code', models.CharField(max_length=20, unique=True, verbose_name='Code')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('hod', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='headed_departments', to=settings.AUTH_USER_MODEL, verbose_name='Head of Department')),
            ],
            options={
                'verbose_name': 'Department',
                'verbose_name_plural': 'Departments',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='BudgetHead',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, help_text='Unique UUID for external reference.', unique=True, verbose_name='Public ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('is_active', models.BooleanField(default=True, verbose_name='Is Active')),
                ('name', models.CharField(max_length=150, verbose_name='Budget Head Name')),
                ('code', models.CharField(max_length=20, unique=True, verbose_name='Code')),
                ('category', models.CharField(choices=[('recurring', 'Recurring'), ('non_recurring', 'Non-Recurring')], default='recurring', max_length=20, verbose_name='Category')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
            ],
            options={
                'verbose_name': 'Budget Head',
                'verbose_name_plural': 'Budget Heads',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='BudgetProposal',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, help_text='Unique UUID for external reference.', unique=True, verbose_name='Public ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('financial_year', models.CharField(max_length=9, validators=[year_validator()], verbose_name='Financial Year')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('submitted', 'Submitted'), ('verified', 'Verified'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('revised', 'Revised')], default='draft', max_length=10, verbose_name='Status')),
                ('submitted_at', models.DateTimeField(blank=True, null=True, verbose_name='Submitted At')),
                ('approved_at', models.DateTimeField(blank=True, null=True, verbose_name='Approved At')),
                ('notes', models.TextField(blank=True, verbose_name='Notes')),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Approved By')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='budgetproposal_created', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='budgetproposal_updated', to=settings.AUTH_USER_MODEL, verbose_name='Updated By')),
                ('department', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='proposals', to='budgeting.department', verbose_name='Department')),
            ],
            options={
                'verbose_name': 'Budget Proposal',
                'verbose_name_plural': 'Budget Proposals',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['financial_year', 'department'], name='proposal_year_department_idx')],
            },
        ),
        migrations.CreateModel(
            name='BudgetProposalItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('proposed_amount', models.DecimalField(decimal_places=2, max_digits=15, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Proposed Amount')),
                ('justification', models.TextField(verbose_name='Justification')),
                ('budget_head', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='proposal_items', to='budgeting.budgethead', verbose_name='Budget Head')),
                ('proposal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='budgeting.budgetproposal', verbose_name='Proposal')),
            ],
            options={
                'verbose_name': 'Proposal Item',
                'verbose_name_plural': 'Proposal Items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='Allocation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, help_text='Unique UUID for external reference.', unique=True, verbose_name='Public ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('financial_year', models.CharField(db_index=True, max_length=9, validators=[year_validator()], verbose_name='Financial Year')),
                ('allocated_amount', models.DecimalField(decimal_places=2, max_digits=15, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Allocated Amount')),
                ('spent_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Sum of approved expenditure to date.', max_digits=15, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Spent Amount')),
                ('status', models.CharField(choices=[('active', 'Active'), ('amended', 'Amended'), ('superseded', 'Superseded')], default='active', max_length=12, verbose_name='Status')),
                ('remarks', models.TextField(blank=True, verbose_name='Remarks')),
                ('budget_head', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='budgeting.budgethead', verbose_name='Budget Head')),
                ('department', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='budgeting.department', verbose_name='Department')),
                ('source_proposal', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='allocations', to='budgeting.budgetproposal', verbose_name='Source Proposal')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='allocation_created', to=settings.AUTH_USER_MODEL, verbose_name='Created By')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='allocation_updated', to=settings.AUTH_USER_MODEL, verbose_name='Updated By')),
            ],
            options={
                'verbose_name': 'Allocation',
                'verbose_name_plural': 'Allocations',
                'ordering': ['financial_year', 'department__name', 'budget_head__code'],
                'constraints': [
                    models.UniqueConstraint(fields=('financial_year', 'department', 'budget_head'), name='unique_allocation_per_year_department_head'),
                    models.CheckConstraint(condition=models.Q(('allocated_amount__gte', 0)), name='allocation_allocated_amount_non_negative'),
                    models.CheckConstraint(condition=models.Q(('spent_amount__gte', 0)), name='allocation_spent_amount_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AllocationHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField(verbose_name='Version')),
                ('change_type', models.CharField(choices=[('created', 'Created'), ('updated', 'Updated'), ('rollback', 'Rollback')], max_length=10, verbose_name='Change Type')),
                ('snapshot', models.JSONField(encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name='Snapshot')),
                ('changes', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name='Changes')),
                ('change_reason', models.TextField(blank=True, verbose_name='Change Reason')),
                ('changed_at', models.DateTimeField(auto_now_add=True, verbose_name='Changed At')),
                ('allocation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='budgeting.allocation', verbose_name='Allocation')),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='allocation_changes', to=settings.AUTH_USER_MODEL, verbose_name='Changed By')),
            ],
            options={
                'verbose_name': 'Allocation History',
                'verbose_name_plural': 'Allocation History',
                'ordering': ['allocation', '-version'],
                'constraints': [
                    models.UniqueConstraint(fields=('allocation', 'version'), name='unique_allocation_history_version'),
                ],
            },
        ),
    ]
