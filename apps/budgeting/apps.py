"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: App configuration for the budgeting module.
             Handles financial years, departments, budget heads,
             allocations and their version history.
-------------------------------------------------------------------------
"""
from django.apps import AppConfig


class BudgetingConfig(AppConfig):
    """
    Configuration class for the budgeting application.

    This app manages:
    - Financial year locking and closure
    - Allocations per department and budget head
    - Allocation version history and rollback
    - Budget proposals and their promotion into allocations
    """

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.budgeting'
    verbose_name = 'Budgeting Module'
