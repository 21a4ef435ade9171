"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Centralized logging for budget ledger operations.
-------------------------------------------------------------------------
"""
import logging
from decimal import Decimal

logger = logging.getLogger('ledger')


def _username(user) -> str:
    return getattr(user, 'email', None) or str(user)


class LedgerLogger:
    """Centralized logging for allocation and expenditure operations"""

    @staticmethod
    def log_allocation_changed(allocation, user, action: str):
        """Log allocation create/update/rollback with full context"""
        logger.info(
            f"Allocation {action}: {allocation.financial_year} | "
            f"Dept: {allocation.department.code} | "
            f"Head: {allocation.budget_head.code} | "
            f"Allocated: Rs {allocation.allocated_amount} | "
            f"Spent: Rs {allocation.spent_amount} | "
            f"By: {_username(user)}",
            extra={
                'allocation_id': allocation.pk,
                'financial_year': allocation.financial_year,
                'allocated_amount': str(allocation.allocated_amount),
                'spent_amount': str(allocation.spent_amount),
                'user_id': getattr(user, 'pk', None),
            }
        )

    @staticmethod
    def log_expenditure_transition(expenditure, user, decision: str):
        """Log a workflow transition"""
        logger.info(
            f"Expenditure {decision}: {expenditure.bill_number} | "
            f"Dept: {expenditure.department.code} | "
            f"Amount: Rs {expenditure.bill_amount} | "
            f"Status: {expenditure.status} | "
            f"By: {_username(user)}",
            extra={
                'expenditure_id': expenditure.pk,
                'bill_number': expenditure.bill_number,
                'amount': str(expenditure.bill_amount),
                'status': expenditure.status,
                'user_id': getattr(user, 'pk', None),
            }
        )

    @staticmethod
    def log_spend_applied(allocation, amount: Decimal):
        """Log a successful spent_amount increment"""
        logger.info(
            f"Spend applied: Rs {amount} to allocation #{allocation.pk} | "
            f"Spent now: Rs {allocation.spent_amount} of Rs {allocation.allocated_amount}",
            extra={
                'allocation_id': allocation.pk,
                'amount': str(amount),
                'spent_amount': str(allocation.spent_amount),
            }
        )

    @staticmethod
    def log_overspend_warning(allocation, amount: Decimal, remaining: Decimal):
        """Log an approval that proceeds past the remaining budget"""
        logger.warning(
            f"Overspend permitted by policy: Rs {amount} requested, Rs {remaining} remaining "
            f"on allocation #{allocation.pk}",
            extra={
                'allocation_id': allocation.pk,
                'amount': str(amount),
                'remaining_amount': str(remaining),
            }
        )
