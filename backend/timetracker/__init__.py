"""
Time sheet review service.

Hosts the authorization and approval-workflow core for time entries and
time sheets behind a FastAPI application.
"""
