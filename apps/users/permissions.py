"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Role predicates for ledger operations and the view mixin
             that applies them to HTTP endpoints.
-------------------------------------------------------------------------
"""
from typing import List
from django.contrib.auth.mixins import UserPassesTestMixin
from django.core.exceptions import PermissionDenied

from apps.core.exceptions import UnauthorizedRoleException
from apps.users.models import RoleCode


ALLOCATION_MANAGER_ROLES = [RoleCode.ADMIN, RoleCode.OFFICE]
PROPOSAL_APPROVER_ROLES = [RoleCode.ADMIN, RoleCode.PRINCIPAL, RoleCode.VICE_PRINCIPAL, RoleCode.OFFICE]
SUBMITTER_ROLES = [RoleCode.DEPARTMENT, RoleCode.HOD]
VERIFIER_ROLES = [RoleCode.HOD, RoleCode.OFFICE]
APPROVER_ROLES = [RoleCode.OFFICE, RoleCode.VICE_PRINCIPAL, RoleCode.PRINCIPAL]
REJECTOR_ROLES = [RoleCode.HOD, RoleCode.OFFICE, RoleCode.VICE_PRINCIPAL, RoleCode.PRINCIPAL]
FINALIZER_ROLES = [RoleCode.OFFICE]

# Roles whose authority is limited to their own department.
DEPARTMENT_SCOPED_ROLES = [RoleCode.DEPARTMENT, RoleCode.HOD]


def _has_role(user, roles: List[str]) -> bool:
    return user is not None and getattr(user, 'role', None) in roles


def _in_scope(user, department_id) -> bool:
    if user.role in DEPARTMENT_SCOPED_ROLES:
        return user.department_id is not None and user.department_id == department_id
    return True


def can_manage_allocations(user) -> bool:
    return _has_role(user, ALLOCATION_MANAGER_ROLES)


def can_approve_proposals(user) -> bool:
    return _has_role(user, PROPOSAL_APPROVER_ROLES)


def can_submit_expenditure(user, department_id) -> bool:
    """Department staff and HODs may submit bills for their own department only."""
    return _has_role(user, SUBMITTER_ROLES) and _in_scope(user, department_id)


def can_verify(user, department_id) -> bool:
    return _has_role(user, VERIFIER_ROLES) and _in_scope(user, department_id)


def can_approve(user) -> bool:
    return _has_role(user, APPROVER_ROLES)


def can_reject(user, department_id) -> bool:
    return _has_role(user, REJECTOR_ROLES) and _in_scope(user, department_id)


def can_finalize(user) -> bool:
    return _has_role(user, FINALIZER_ROLES)


def can_resubmit(user, original) -> bool:
    """Only the user who submitted the rejected bill may resubmit it."""
    return user is not None and original.submitted_by_id == user.pk


class RoleRequiredMixin(UserPassesTestMixin):
    """
    Base mixin for role-based view access control.

    Subclasses define `required_roles` as the list of role codes that
    may access the view. An empty list admits any authenticated user.
    """

    required_roles: List[str] = []

    def test_func(self) -> bool:
        if not self.request.user.is_authenticated:
            return False
        if not self.required_roles:
            return True
        return self.request.user.has_any_role(self.required_roles)

    def handle_no_permission(self) -> None:
        """Handle unauthorized access attempt."""
        if not self.request.user.is_authenticated:
            return super().handle_no_permission()
        raise PermissionDenied(
            UnauthorizedRoleException(
                f"This action requires one of the following roles: {[str(r) for r in self.required_roles]}"
            ).message
        )
