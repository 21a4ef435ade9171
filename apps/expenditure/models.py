"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Database models for the expenditure module: the bill
             (Expenditure) and its append-only approval trail.
-------------------------------------------------------------------------
"""
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from apps.budgeting.models import financial_year_for_date, financial_year_validator
from apps.core.mixins import AppendOnlyMixin, TimeStampedMixin


class ExpenditureStatus(models.TextChoices):
    """Workflow states of a bill."""
    PENDING = 'pending', _('Pending')
    VERIFIED = 'verified', _('Verified')
    APPROVED = 'approved', _('Approved')
    FINALIZED = 'finalized', _('Finalized')
    REJECTED = 'rejected', _('Rejected')


class ApprovalDecision(models.TextChoices):
    VERIFY = 'verify', _('Verify')
    APPROVE = 'approve', _('Approve')
    REJECT = 'reject', _('Reject')
    FINALIZE = 'finalize', _('Finalize')


class Expenditure(TimeStampedMixin):
    """
    A bill submitted by a department against its allocation.

    Rejected bills are frozen. A corrected bill is a new row linked
    through original_expenditure.

    Attributes:
        allocation: Allocation charged on approval.
        bill_number: Unique per department and financial year among
            bills that have not been rejected.
        bill_amount: Positive amount of the bill.
        attachments: Opaque descriptors supplied by the file service.
        financial_year: Derived from bill_date (April to March).
        submitted_by: User who submitted the bill.
    """

    # Set by the service layer when an overspend is allowed under the 'warn' policy.
    overspend_warning: Optional[str] = None

    department = models.ForeignKey(
        'budgeting.Department',
        on_delete=models.PROTECT,
        related_name='expenditures',
        verbose_name=_('Department')
    )
    budget_head = models.ForeignKey(
        'budgeting.BudgetHead',
        on_delete=models.PROTECT,
        related_name='expenditures',
        verbose_name=_('Budget Head')
    )
    allocation = models.ForeignKey(
        'budgeting.Allocation',
        on_delete=models.PROTECT,
        related_name='expenditures',
        verbose_name=_('Allocation')
    )
    bill_number = models.CharField(
        max_length=50,
        verbose_name=_('Bill Number')
    )
    bill_date = models.DateField(
        verbose_name=_('Bill Date')
    )
    bill_amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        verbose_name=_('Bill Amount')
    )
    party_name = models.CharField(
        max_length=200,
        verbose_name=_('Party Name')
    )
    expense_details = models.TextField(
        verbose_name=_('Expense Details')
    )
    attachments = models.JSONField(
        default=list,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_('Attachments')
    )
    reference_budget_register_no = models.CharField(
        max_length=50,
        blank=True,
        verbose_name=_('Budget Register Reference')
    )
    status = models.CharField(
        max_length=10,
        choices=ExpenditureStatus.choices,
        default=ExpenditureStatus.PENDING,
        db_index=True,
        verbose_name=_('Status')
    )
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='submitted_expenditures',
        verbose_name=_('Submitted By')
    )
    financial_year = models.CharField(
        max_length=9,
        validators=[financial_year_validator],
        db_index=True,
        verbose_name=_('Financial Year')
    )
    is_resubmission = models.BooleanField(
        default=False,
        verbose_name=_('Is Resubmission')
    )
    original_expenditure = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='resubmissions',
        verbose_name=_('Original Expenditure')
    )

    class Meta:
        verbose_name = _('Expenditure')
        verbose_name_plural = _('Expenditures')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['department', 'financial_year', 'bill_number'],
                condition=~Q(status='rejected'),
                name='unique_active_bill_number_per_department_year',
            ),
            models.CheckConstraint(
                condition=Q(bill_amount__gt=0),
                name='expenditure_bill_amount_positive',
            ),
        ]
        indexes = [
            models.Index(fields=['department', 'status'], name='expenditure_dept_status_idx'),
        ]

    def __str__(self) -> str:
        return f"Bill {self.bill_number} - Rs {self.bill_amount} ({self.get_status_display()})"

    def save(self, *args, **kwargs) -> None:
        if self.bill_date and (self._state.adding or not self.financial_year):
            self.financial_year = financial_year_for_date(self.bill_date)
        super().save(*args, **kwargs)

    def clean(self) -> None:
        if self.bill_amount is not None and self.bill_amount <= 0:
            raise ValidationError({'bill_amount': _('Bill amount must be greater than zero.')})


class ApprovalStep(AppendOnlyMixin):
    """
    One decision in an expenditure's approval trail.

    Steps are numbered per expenditure and can only be appended.
    """

    expenditure = models.ForeignKey(
        Expenditure,
        on_delete=models.CASCADE,
        related_name='approval_steps',
        verbose_name=_('Expenditure')
    )
    sequence = models.PositiveIntegerField(
        verbose_name=_('Sequence')
    )
    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='approval_steps',
        verbose_name=_('Approver')
    )
    role = models.CharField(
        max_length=20,
        verbose_name=_('Role')
    )
    decision = models.CharField(
        max_length=10,
        choices=ApprovalDecision.choices,
        verbose_name=_('Decision')
    )
    remarks = models.TextField(
        blank=True,
        verbose_name=_('Remarks')
    )
    timestamp = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_('Timestamp')
    )

    class Meta:
        verbose_name = _('Approval Step')
        verbose_name_plural = _('Approval Steps')
        ordering = ['expenditure', 'sequence']
        constraints = [
            models.UniqueConstraint(
                fields=['expenditure', 'sequence'],
                name='unique_approval_step_sequence',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.expenditure.bill_number} #{self.sequence}: {self.decision} by {self.role}"

    def clean(self) -> None:
        if self.decision == ApprovalDecision.REJECT and not (self.remarks or '').strip():
            raise ValidationError({'remarks': _('Remarks are required when rejecting.')})
