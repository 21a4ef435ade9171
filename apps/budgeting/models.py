"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Database models for the budgeting module including
             FinancialYear, Department, BudgetHead, Allocation,
             AllocationHistory and BudgetProposal.
-------------------------------------------------------------------------
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict

from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models, transaction
from django.db.models import Q, Sum
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.core.exceptions import (
    FinancialYearClosedException,
    LedgerValidationException,
    WorkflowTransitionException,
)
from apps.core.mixins import AppendOnlyMixin, AuditLogMixin, StatusMixin, TimeStampedMixin


financial_year_validator = RegexValidator(
    regex=r'^\d{4}-\d{4}$',
    message=_('Financial year must be in format YYYY-YYYY')
)

ZERO = Decimal('0.00')


def financial_year_for_date(value: date) -> str:
    """
    Derive the April to March financial year label for a date.

    Args:
        value: Any calendar date.

    Returns:
        Label in YYYY-YYYY form, e.g. 2024-06-15 -> "2024-2025"
        and 2025-02-10 -> "2024-2025".
    """
    if value.month >= 4:
        return f"{value.year}-{value.year + 1}"
    return f"{value.year - 1}-{value.year}"


class FinancialYearStatus(models.TextChoices):
    """Lifecycle of a financial year."""
    PLANNING = 'planning', _('Planning')
    ACTIVE = 'active', _('Active')
    LOCKED = 'locked', _('Locked')
    CLOSED = 'closed', _('Closed')


class FinancialYear(AuditLogMixin):
    """
    Represents a financial year (April 1 to March 31).

    Allocation changes are refused while the year is locked or closed.

    Attributes:
        year: Label in YYYY-YYYY form (e.g. "2024-2025").
        start_date: First day of the financial year.
        end_date: Last day of the financial year.
        status: FinancialYearStatus.
        total_allocated: Cached allocated total, refreshed on close.
        total_spent: Cached spent total, refreshed on close.
    """

    year = models.CharField(
        max_length=9,
        unique=True,
        validators=[financial_year_validator],
        verbose_name=_('Financial Year'),
        help_text=_('Financial year label, e.g. "2024-2025".')
    )
    start_date = models.DateField(
        verbose_name=_('Start Date')
    )
    end_date = models.DateField(
        verbose_name=_('End Date')
    )
    status = models.CharField(
        max_length=10,
        choices=FinancialYearStatus.choices,
        default=FinancialYearStatus.PLANNING,
        db_index=True,
        verbose_name=_('Status')
    )
    total_allocated = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=ZERO,
        verbose_name=_('Total Allocated')
    )
    total_spent = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=ZERO,
        verbose_name=_('Total Spent')
    )
    locked_by = models.ForeignKey(
        'users.CustomUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Locked By')
    )
    locked_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Locked At')
    )
    lock_remarks = models.TextField(
        blank=True,
        verbose_name=_('Lock Remarks')
    )
    closed_by = models.ForeignKey(
        'users.CustomUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Closed By')
    )
    closed_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Closed At')
    )
    closure_remarks = models.TextField(
        blank=True,
        verbose_name=_('Closure Remarks')
    )

    class Meta:
        verbose_name = _('Financial Year')
        verbose_name_plural = _('Financial Years')
        ordering = ['-start_date']

    def __str__(self) -> str:
        return f"FY {self.year}"

    def clean(self) -> None:
        """Validate that start_date is before end_date."""
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError({
                'end_date': _('End date must be after start date.')
            })

    @property
    def is_locked(self) -> bool:
        """True when allocation changes are no longer permitted."""
        return self.status in (FinancialYearStatus.LOCKED, FinancialYearStatus.CLOSED)

    @property
    def is_closed(self) -> bool:
        return self.status == FinancialYearStatus.CLOSED

    @classmethod
    def ensure_open(cls, year: str) -> None:
        """
        Refuse allocation changes for a locked or closed financial year.

        A year with no FinancialYear record is treated as open.

        Args:
            year: Financial year label (YYYY-YYYY).

        Raises:
            FinancialYearClosedException: If the year is locked or closed.
        """
        status = cls.objects.filter(year=year).values_list('status', flat=True).first()
        if status in (FinancialYearStatus.LOCKED, FinancialYearStatus.CLOSED):
            raise FinancialYearClosedException(
                f"Financial year {year} is {status}. Allocations cannot be created or modified.",
                details={'financial_year': year, 'status': status}
            )

    @transaction.atomic
    def lock(self, user, remarks: str = '') -> None:
        """
        Lock the year so allocations can no longer change.

        Raises:
            WorkflowTransitionException: If the year is already locked or closed.
        """
        if self.status == FinancialYearStatus.CLOSED:
            raise WorkflowTransitionException(f"Cannot lock closed financial year {self.year}.")
        if self.status == FinancialYearStatus.LOCKED:
            raise WorkflowTransitionException(f"Financial year {self.year} is already locked.")

        previous_status = self.status
        self.status = FinancialYearStatus.LOCKED
        self.locked_by = user
        self.locked_at = timezone.now()
        self.lock_remarks = remarks or ''
        self.save_with_user(user)

        from apps.core.models import AuditEventType
        from apps.core.services import AuditLogService
        AuditLogService.record(
            AuditEventType.FINANCIAL_YEAR_LOCKED,
            actor=user,
            target=self,
            details={'year': self.year, 'remarks': remarks},
            previous_values={'status': previous_status},
            new_values={'status': self.status},
        )

    @transaction.atomic
    def close(self, user, remarks: str = '') -> None:
        """
        Close the year permanently after refreshing its cached totals.

        Raises:
            WorkflowTransitionException: If the year is already closed.
            LedgerValidationException: If expenditures are still awaiting a decision.
        """
        from apps.expenditure.models import Expenditure, ExpenditureStatus

        if self.status == FinancialYearStatus.CLOSED:
            raise WorkflowTransitionException(f"Financial year {self.year} is already closed.")

        pending = Expenditure.objects.filter(
            financial_year=self.year,
            status__in=[ExpenditureStatus.PENDING, ExpenditureStatus.VERIFIED]
        ).count()
        if pending:
            raise LedgerValidationException(
                f"Cannot close financial year {self.year}. There are {pending} pending "
                f"expenditures that need to be approved or rejected.",
                details={'pending_expenditures': pending}
            )

        totals = Allocation.objects.filter(financial_year=self.year).aggregate(
            allocated=Sum('allocated_amount'),
            spent=Sum('spent_amount'),
        )
        previous_status = self.status
        self.total_allocated = totals['allocated'] or ZERO
        self.total_spent = totals['spent'] or ZERO
        self.status = FinancialYearStatus.CLOSED
        self.closed_by = user
        self.closed_at = timezone.now()
        self.closure_remarks = remarks or ''
        self.save_with_user(user)

        from apps.core.models import AuditEventType
        from apps.core.services import AuditLogService
        AuditLogService.record(
            AuditEventType.FINANCIAL_YEAR_CLOSED,
            actor=user,
            target=self,
            details={
                'year': self.year,
                'remarks': remarks,
                'total_allocated': str(self.total_allocated),
                'total_spent': str(self.total_spent),
            },
            previous_values={'status': previous_status},
            new_values={'status': self.status},
        )


class Department(TimeStampedMixin, StatusMixin):
    """An academic or administrative department that receives allocations."""

    name = models.CharField(
        max_length=150,
        unique=True,
        verbose_name=_('Department Name')
    )
    code = models.CharField(
        max_length=20,
        unique=True,
        verbose_name=_('Code')
    )
    description = models.TextField(
        blank=True,
        verbose_name=_('Description')
    )
    hod = models.ForeignKey(
        'users.CustomUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='headed_departments',
        verbose_name=_('Head of Department')
    )

    class Meta:
        verbose_name = _('Department')
        verbose_name_plural = _('Departments')
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"


class BudgetHeadCategory(models.TextChoices):
    RECURRING = 'recurring', _('Recurring')
    NON_RECURRING = 'non_recurring', _('Non-Recurring')


class BudgetHead(TimeStampedMixin, StatusMixin):
    """A spending category (object head) under which money is allocated."""

    name = models.CharField(
        max_length=150,
        verbose_name=_('Budget Head Name')
    )
    code = models.CharField(
        max_length=20,
        unique=True,
        verbose_name=_('Code')
    )
    category = models.CharField(
        max_length=20,
        choices=BudgetHeadCategory.choices,
        default=BudgetHeadCategory.RECURRING,
        verbose_name=_('Category')
    )
    description = models.TextField(
        blank=True,
        verbose_name=_('Description')
    )

    class Meta:
        verbose_name = _('Budget Head')
        verbose_name_plural = _('Budget Heads')
        ordering = ['code']

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"


class AllocationStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    AMENDED = 'amended', _('Amended')
    SUPERSEDED = 'superseded', _('Superseded')


class Allocation(AuditLogMixin):
    """
    Budget allocated to a department under a budget head for one year.

    spent_amount is the authoritative running total of approved
    expenditure. Only the allocation update engine changes it, through
    a single conditional UPDATE.

    Attributes:
        financial_year: Label in YYYY-YYYY form.
        department: Receiving department.
        budget_head: Spending category.
        allocated_amount: Ceiling for the year.
        spent_amount: Sum of approved expenditure to date.
        status: AllocationStatus.
        source_proposal: Proposal this allocation was promoted from.
    """

    financial_year = models.CharField(
        max_length=9,
        validators=[financial_year_validator],
        db_index=True,
        verbose_name=_('Financial Year')
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name='allocations',
        verbose_name=_('Department')
    )
    budget_head = models.ForeignKey(
        BudgetHead,
        on_delete=models.PROTECT,
        related_name='allocations',
        verbose_name=_('Budget Head')
    )
    allocated_amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(ZERO)],
        verbose_name=_('Allocated Amount')
    )
    spent_amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(ZERO)],
        verbose_name=_('Spent Amount'),
        help_text=_('Sum of approved expenditure to date.')
    )
    status = models.CharField(
        max_length=12,
        choices=AllocationStatus.choices,
        default=AllocationStatus.ACTIVE,
        verbose_name=_('Status')
    )
    source_proposal = models.ForeignKey(
        'BudgetProposal',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='allocations',
        verbose_name=_('Source Proposal')
    )
    remarks = models.TextField(
        blank=True,
        verbose_name=_('Remarks')
    )

    class Meta:
        verbose_name = _('Allocation')
        verbose_name_plural = _('Allocations')
        ordering = ['financial_year', 'department__name', 'budget_head__code']
        constraints = [
            models.UniqueConstraint(
                fields=['financial_year', 'department', 'budget_head'],
                name='unique_allocation_per_year_department_head',
            ),
            models.CheckConstraint(
                condition=Q(allocated_amount__gte=0),
                name='allocation_allocated_amount_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(spent_amount__gte=0),
                name='allocation_spent_amount_non_negative',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.financial_year} | {self.department.code} | {self.budget_head.code}"

    def clean(self) -> None:
        if self.allocated_amount is not None and self.spent_amount is not None:
            if self.spent_amount > self.allocated_amount:
                raise ValidationError({
                    'allocated_amount': _('Allocated amount cannot be less than the amount already spent.')
                })

    @property
    def remaining_amount(self) -> Decimal:
        return self.allocated_amount - self.spent_amount

    @property
    def utilization_percentage(self) -> Decimal:
        """Spent as a percentage of allocated, rounded to 2 places."""
        if not self.allocated_amount:
            return ZERO
        return (self.spent_amount / self.allocated_amount * 100).quantize(Decimal('0.01'))

    def to_snapshot(self) -> Dict[str, Any]:
        """Serializable view of the fields tracked by allocation history."""
        return {
            'financial_year': self.financial_year,
            'department': self.department_id,
            'budget_head': self.budget_head_id,
            'allocated_amount': str(self.allocated_amount),
            'spent_amount': str(self.spent_amount),
            'remarks': self.remarks,
        }


class HistoryChangeType(models.TextChoices):
    CREATED = 'created', _('Created')
    UPDATED = 'updated', _('Updated')
    ROLLBACK = 'rollback', _('Rollback')


class AllocationHistory(AppendOnlyMixin):
    """
    Immutable version record for an allocation.

    Versions start at 1 and increase by one per change. A rollback is
    itself a new version; earlier versions are never rewritten.
    """

    allocation = models.ForeignKey(
        Allocation,
        on_delete=models.CASCADE,
        related_name='history',
        verbose_name=_('Allocation')
    )
    version = models.PositiveIntegerField(
        verbose_name=_('Version')
    )
    change_type = models.CharField(
        max_length=10,
        choices=HistoryChangeType.choices,
        verbose_name=_('Change Type')
    )
    snapshot = models.JSONField(
        encoder=DjangoJSONEncoder,
        verbose_name=_('Snapshot')
    )
    changes = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        verbose_name=_('Changes')
    )
    change_reason = models.TextField(
        blank=True,
        verbose_name=_('Change Reason')
    )
    changed_by = models.ForeignKey(
        'users.CustomUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='allocation_changes',
        verbose_name=_('Changed By')
    )
    changed_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_('Changed At')
    )

    class Meta:
        verbose_name = _('Allocation History')
        verbose_name_plural = _('Allocation History')
        ordering = ['allocation', '-version']
        constraints = [
            models.UniqueConstraint(
                fields=['allocation', 'version'],
                name='unique_allocation_history_version',
            ),
        ]

    def __str__(self) -> str:
        return f"Allocation #{self.allocation_id} v{self.version} ({self.change_type})"


class ProposalStatus(models.TextChoices):
    DRAFT = 'draft', _('Draft')
    SUBMITTED = 'submitted', _('Submitted')
    VERIFIED = 'verified', _('Verified')
    APPROVED = 'approved', _('Approved')
    REJECTED = 'rejected', _('Rejected')
    REVISED = 'revised', _('Revised')


class BudgetProposal(AuditLogMixin):
    """
    A department's budget request for a financial year.

    On approval each line item becomes at most one Allocation.
    """

    financial_year = models.CharField(
        max_length=9,
        validators=[financial_year_validator],
        verbose_name=_('Financial Year')
    )
    department = models.ForeignKey(
        Department,
        on_delete=models.PROTECT,
        related_name='proposals',
        verbose_name=_('Department')
    )
    status = models.CharField(
        max_length=10,
        choices=ProposalStatus.choices,
        default=ProposalStatus.DRAFT,
        verbose_name=_('Status')
    )
    submitted_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Submitted At')
    )
    approved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_('Approved At')
    )
    approved_by = models.ForeignKey(
        'users.CustomUser',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Approved By')
    )
    notes = models.TextField(
        blank=True,
        verbose_name=_('Notes')
    )

    class Meta:
        verbose_name = _('Budget Proposal')
        verbose_name_plural = _('Budget Proposals')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['financial_year', 'department'], name='proposal_year_department_idx'),
        ]

    def __str__(self) -> str:
        return f"Proposal {self.financial_year} - {self.department.code}"

    @property
    def total_proposed_amount(self) -> Decimal:
        return self.items.aggregate(total=Sum('proposed_amount'))['total'] or ZERO


class BudgetProposalItem(models.Model):
    """A single requested line in a budget proposal."""

    proposal = models.ForeignKey(
        BudgetProposal,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('Proposal')
    )
    budget_head = models.ForeignKey(
        BudgetHead,
        on_delete=models.PROTECT,
        related_name='proposal_items',
        verbose_name=_('Budget Head')
    )
    proposed_amount = models.DecimalField(
        max_digits=15,
        decimal_places=2,
        validators=[MinValueValidator(ZERO)],
        verbose_name=_('Proposed Amount')
    )
    justification = models.TextField(
        verbose_name=_('Justification')
    )

    class Meta:
        verbose_name = _('Proposal Item')
        verbose_name_plural = _('Proposal Items')
        ordering = ['id']

    def __str__(self) -> str:
        return f"{self.budget_head.code}: Rs {self.proposed_amount}"
