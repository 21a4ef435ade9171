# Generated manually on 2026-10-19

import uuid
from decimal import Decimal

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('budgeting', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Expenditure',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('public_id', models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, help_text='Unique UUID for external reference.', unique=True, verbose_name='Public ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated At')),
                ('bill_number', models.CharField(max_length=50, verbose_name='Bill Number')),
                ('bill_date', models.DateField(verbose_name='Bill Date')),
                ('bill_amount', models.DecimalField(decimal_places=2, max_digits=15, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Bill Amount')),
                ('party_name', models.CharField(max_length=200, verbose_name='Party Name')),
                ('expense_details', models.TextField(verbose_name='Expense Details')),
                ('attachments', models.JSONField(blank=True, default=list, encoder=django.core.serializers.json.DjangoJSONEncoder, verbose_name='Attachments')),
                ('reference_budget_register_no', models.CharField(blank=True, max_length=50, verbose_name='Budget Register Reference')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('verified', 'Verified'), ('approved', 'Approved'), ('finalized', 'Finalized'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=10, verbose_name='Status')),
                ('financial_year', models.CharField(db_index=True, max_length=9, validators=[django.core.validators.RegexValidator(message='Financial year must be in format YYYY-YYYY', regex='^\\d{4}-\\d{4}$')], verbose_name='Financial Year')),
                ('is_resubmission', models.BooleanField(default=False, verbose_name='Is Resubmission')),
                ('allocation', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='expenditures', to='budgeting.allocation', verbose_name='Allocation')),
                ('budget_head', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='expenditures', to='budgeting.budgethead', verbose_name='Budget Head')),
                ('department', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='expenditures', to='budgeting.department', verbose_name='Department')),
                ('original_expenditure', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='resubmissions', to='expenditure.expenditure', verbose_name='Original Expenditure')),
                ('submitted_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='submitted_expenditures', to=settings.AUTH_USER_MODEL, verbose_name='Submitted By')),
            ],
            options={
                'verbose_name': 'Expenditure',
                'verbose_name_plural': 'Expenditures',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['department', 'status'], name='expenditure_dept_status_idx')],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'rejected'), _negated=True), fields=('department', 'financial_year', 'bill_number'), name='unique_active_bill_number_per_department_year'),
                    models.CheckConstraint(condition=models.Q(('bill_amount__gt', 0)), name='expenditure_bill_amount_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ApprovalStep',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sequence', models.PositiveIntegerField(verbose_name='Sequence')),
                ('role', models.CharField(max_length=20, verbose_name='Role')),
                ('decision', models.CharField(choices=[('verify', 'Verify'), ('approve', 'Approve'), ('reject', 'Reject'), ('finalize', 'Finalize')], max_length=10, verbose_name='Decision')),
                ('remarks', models.TextField(blank=True, verbose_name='Remarks')),
                ('timestamp', models.DateTimeField(auto_now_add=True, verbose_name='Timestamp')),
                ('approver', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='approval_steps', to=settings.AUTH_USER_MODEL, verbose_name='Approver')),
                ('expenditure', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='approval_steps', to='expenditure.expenditure', verbose_name='Expenditure')),
            ],
            options={
                'verbose_name': 'Approval Step',
                'verbose_name_plural': 'Approval Steps',
                'ordering': ['expenditure', 'sequence'],
                'constraints': [
                    models.UniqueConstraint(fields=('expenditure', 'sequence'), name='unique_approval_step_sequence'),
                ],
            },
        ),
    ]
