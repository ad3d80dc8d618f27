"""
Base test utilities and common patterns for backend testing.

Provides the API assertion helpers and lightweight stand-ins for the
principal, membership and snapshot objects the workflow rules accept.
"""
from types import SimpleNamespace
from typing import Optional
from uuid import uuid4
from fastapi import status

from ..database.models import EntryStatus, TimeSheetStatus


def principal(system_role: Optional[str] = None, id=None) -> SimpleNamespace:
    """A caller identity, as decoded from a token."""
    return SimpleNamespace(id=id or uuid4(), system_role=system_role)


def membership(user, role) -> SimpleNamespace:
    """A project membership of ``user`` with ``role``."""
    return SimpleNamespace(user_id=user.id, role=role)


def entry_snapshot(created_by=None, status=EntryStatus.PENDING, status_changed_by=None) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        created_by=created_by,
        status=status,
        status_changed_at=None,
        status_changed_by=status_changed_by,
        approved_date=None,
    )


def sheet_snapshot(status=TimeSheetStatus.SUBMITTED) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        status=status,
        submitted_date=None,
        approved_date=None,
        rejected_date=None,
        rejection_reason=None,
    )


def link_snapshot() -> SimpleNamespace:
    return SimpleNamespace(approved_in_sheet=False, approved_in_sheet_at=None, approved_in_sheet_by=None)


class BaseAPITest:
    """Base class for API endpoint tests."""

    def assert_success_response(self, response, expected_status: int = status.HTTP_200_OK):
        """Assert that response indicates success."""
        assert response.status_code == expected_status, response.text
        assert response.json() is not None

    def assert_error_response(self, response, expected_status: int, expected_error: Optional[str] = None):
        """Assert that response indicates an error."""
        assert response.status_code == expected_status, response.text
        if expected_error:
            response_data = response.json()
            assert "detail" in response_data
            assert expected_error in response_data["detail"]

    def assert_validation_error(self, response, field_name: Optional[str] = None):
        """Assert that response indicates a validation error."""
        assert response.status_code == 422, response.text
        if field_name:
            errors = response.json()["detail"]
            field_errors = [error for error in errors if error.get("loc") and field_name in error["loc"]]
            assert len(field_errors) > 0

    def assert_unauthorized(self, response):
        """Assert that response indicates unauthorized access."""
        self.assert_error_response(response, status.HTTP_401_UNAUTHORIZED)

    def assert_forbidden(self, response, expected_error: Optional[str] = None):
        """Assert that response indicates forbidden access."""
        self.assert_error_response(response, status.HTTP_403_FORBIDDEN, expected_error)

    def assert_not_found(self, response):
        """Assert that response indicates resource not found."""
        self.assert_error_response(response, status.HTTP_404_NOT_FOUND)

    def assert_conflict(self, response):
        """Assert that response indicates a conflict."""
        self.assert_error_response(response, status.HTTP_409_CONFLICT)
