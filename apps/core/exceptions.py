"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Custom exceptions for the CBMS ledger. These provide
             specific error codes for allocation, budget and
             workflow violations.
-------------------------------------------------------------------------
"""
from typing import Optional


class CBMSException(Exception):
    """Base exception for all CBMS specific errors."""

    error_code: str = "ERR_CBMS_GENERIC"
    default_message: str = "An error occurred in the CBMS system."

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None) -> None:
        """
        Initialize CBMS exception.

        Args:
            message: Custom error message. If None, uses default_message.
            details: Additional context dictionary for debugging.
        """
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# Input / lookup Exceptions
class LedgerValidationException(CBMSException):
    """Raised when required input is missing or malformed."""

    error_code = "ERR_VALIDATION"
    default_message = "The submitted data is invalid."


class NotFoundException(CBMSException):
    """Raised when a referenced record does not exist."""

    error_code = "ERR_NOT_FOUND"
    default_message = "The requested record was not found."


class DuplicateAllocationException(CBMSException):
    """Raised when an allocation already exists for the year, department and head."""

    error_code = "ERR_DUPLICATE_ALLOCATION"
    default_message = "An allocation already exists for this department, budget head and financial year."


class DuplicateBillNumberException(CBMSException):
    """Raised when a bill number is reused within a department and financial year."""

    error_code = "ERR_DUPLICATE_BILL_NUMBER"
    default_message = "This bill number has already been used in this department for the financial year."


# Budget-related Exceptions
class MissingAllocationException(CBMSException):
    """Raised when no allocation backs the requested expenditure."""

    error_code = "ERR_MISSING_ALLOCATION"
    default_message = "No budget allocation found for this department and budget head."


class FinancialYearClosedException(CBMSException):
    """Raised when an allocation change targets a locked or closed financial year."""

    error_code = "ERR_FINANCIAL_YEAR_CLOSED"
    default_message = "This financial year is locked or closed and cannot be modified."


class BudgetExceededException(CBMSException):
    """Raised when a transaction exceeds the available budget."""

    error_code = "ERR_BUDGET_EXCEEDED"
    default_message = "The requested amount exceeds the available budget for this head."


class ConcurrentBudgetExceededException(BudgetExceededException):
    """Raised when the atomic spend increment loses a race for the remaining budget."""

    error_code = "ERR_CONCURRENT_BUDGET_EXCEEDED"
    default_message = "The remaining budget was consumed by a concurrent approval."


class AmountBelowSpentException(CBMSException):
    """Raised when an allocation is reduced below what has already been spent."""

    error_code = "ERR_AMOUNT_BELOW_SPENT"
    default_message = "Allocated amount cannot be less than the amount already spent."


class InvalidRollbackException(CBMSException):
    """Raised when restoring a version would leave the allocation overspent."""

    error_code = "ERR_INVALID_ROLLBACK"
    default_message = "Cannot roll back to this version because it is below the amount already spent."


class AllocationInUseException(CBMSException):
    """Raised when deleting an allocation that expenditures still reference."""

    error_code = "ERR_ALLOCATION_IN_USE"
    default_message = "This allocation has expenditures recorded against it and cannot be deleted."


# Workflow-related Exceptions
class WorkflowTransitionException(CBMSException):
    """Raised when an invalid state transition is attempted."""

    error_code = "ERR_INVALID_TRANSITION"
    default_message = "Invalid workflow transition attempted."


class UnauthorizedRoleException(WorkflowTransitionException):
    """Raised when a user lacks the required role for an action."""

    error_code = "ERR_UNAUTHORIZED_ROLE"
    default_message = "You do not have the required role to perform this action."


class ThresholdExceededException(CBMSException):
    """Raised when an approver's monetary limit is exceeded."""

    error_code = "ERR_THRESHOLD_EXCEEDED"
    default_message = "The bill amount exceeds your approval limit."
