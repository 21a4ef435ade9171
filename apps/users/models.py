"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Custom User model with role-based access control.
             Each user carries a single role claim and, for
             department staff, the department they belong to.
-------------------------------------------------------------------------
"""
import uuid
from typing import Optional, List
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class RoleCode(models.TextChoices):
    """Role claims recognised by the budget ledger."""
    ADMIN = 'admin', _('Administrator')
    OFFICE = 'office', _('Accounts Office')
    DEPARTMENT = 'department', _('Department User')
    HOD = 'hod', _('Head of Department')
    VICE_PRINCIPAL = 'vice_principal', _('Vice Principal')
    PRINCIPAL = 'principal', _('Principal')
    AUDITOR = 'auditor', _('Auditor')


class CustomUserManager(BaseUserManager):
    """
    Custom manager for CustomUser model.

    Users log in with their email address; there is no username.
    """

    def create_user(
        self,
        email: str,
        password: Optional[str] = None,
        **extra_fields
    ) -> 'CustomUser':
        """
        Create and return a regular user.

        Args:
            email: User's email address (login identifier).
            password: User's password.
            **extra_fields: Additional fields for the user model.

        Returns:
            The created CustomUser instance.

        Raises:
            ValueError: If email is not provided.
        """
        if not email:
            raise ValueError(_('Email is required for user creation.'))

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(
        self,
        email: str,
        password: Optional[str] = None,
        **extra_fields
    ) -> 'CustomUser':
        """Create and return a superuser with the admin role."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', RoleCode.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)


class CustomUser(AbstractUser):
    """
    Custom User model for CBMS.

    Attributes:
        email: Unique login identifier.
        role: The user's role claim (RoleCode).
        department: Department the user belongs to. Required for
            department users and heads of department.
        designation: Official job title.
    """

    username = None

    public_id = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
        db_index=True,
        verbose_name=_('Public ID')
    )
    email = models.EmailField(
        unique=True,
        verbose_name=_('Email Address')
    )
    role = models.CharField(
        max_length=20,
        choices=RoleCode.choices,
        default=RoleCode.DEPARTMENT,
        verbose_name=_('Role')
    )
    department = models.ForeignKey(
        'budgeting.Department',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users',
        verbose_name=_('Department'),
        help_text=_('Department this user belongs to.')
    )
    designation = models.CharField(
        max_length=100,
        blank=True,
        verbose_name=_('Designation')
    )

    objects = CustomUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name']

    class Meta:
        verbose_name = _('User')
        verbose_name_plural = _('Users')
        ordering = ['first_name', 'last_name']

    def __str__(self) -> str:
        return f"{self.get_full_name() or self.email} ({self.get_role_display()})"

    def get_full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def has_role(self, role_code: str) -> bool:
        return self.role == role_code

    def has_any_role(self, role_codes: List[str]) -> bool:
        """
        Check if user holds any of the specified roles.

        Superuser status does not grant workflow roles; an administrator
        must still be assigned the matching role.
        """
        return self.role in role_codes

    def belongs_to_department(self, department_id: Optional[int]) -> bool:
        return department_id is not None and self.department_id == department_id
