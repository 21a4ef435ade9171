"""
-------------------------------------------------------------------------
System: CBMS (College Budget Management System)
Client: Office of the Principal, Government College
Team Lead: Jamil Shah
Developers: Ali Asghar, Akhtar Munir and Zarif Khan
Description: Package initialization for the budgeting app.
-------------------------------------------------------------------------
"""
