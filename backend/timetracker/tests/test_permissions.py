"""
Permission catalog and evaluator tests.
"""
import pytest
from types import SimpleNamespace

from ..auth.permissions import (
    PERMISSION_DESCRIPTIONS, PROJECT_ROLE_PERMISSIONS, SYSTEM_ROLE_PERMISSIONS,
    ProjectPermission, SystemPermission, can_on_project, coerce_enum,
    get_project_permissions_for_role, has_any_project_permission,
    has_project_permission, has_system_permission
)
from ..database.models import ProjectRole, SystemRole
from .test_base import principal


def member_with(role):
    return SimpleNamespace(user_id=None, role=role)


class TestPermissionTables:
    """Test cases for the static role tables."""

    @pytest.mark.parametrize("role", list(ProjectRole))
    def test_every_role_can_view_project(self, role):
        assert ProjectPermission.PROJECT_VIEW in PROJECT_ROLE_PERMISSIONS[role]

    def test_viewer_has_exactly_three_view_permissions(self):
        assert set(PROJECT_ROLE_PERMISSIONS[ProjectRole.VIEWER]) == {
            ProjectPermission.PROJECT_VIEW,
            ProjectPermission.TIME_ENTRIES_VIEW,
            ProjectPermission.TIME_SHEETS_VIEW,
        }

    def test_owner_holds_every_project_permission(self):
        assert set(PROJECT_ROLE_PERMISSIONS[ProjectRole.OWNER]) == set(ProjectPermission)

    def test_no_role_list_is_a_superset_of_another_non_owner_list(self):
        client = set(PROJECT_ROLE_PERMISSIONS[ProjectRole.CLIENT])
        expert = set(PROJECT_ROLE_PERMISSIONS[ProjectRole.EXPERT])
        assert ProjectPermission.CONTACTS_INVITE in client
        assert ProjectPermission.TIME_ENTRIES_CREATE not in client
        assert not expert >= client
        assert not client >= expert

    def test_role_lists_have_no_duplicates(self):
        for permissions in PROJECT_ROLE_PERMISSIONS.values():
            assert len(permissions) == len(set(permissions))

    def test_every_permission_is_described(self):
        for permission in list(SystemPermission) + list(ProjectPermission):
            assert PERMISSION_DESCRIPTIONS[permission]

    def test_super_admin_holds_every_system_permission(self):
        assert set(SYSTEM_ROLE_PERMISSIONS[SystemRole.SUPER_ADMIN]) == set(SystemPermission)

    def test_admin_cannot_delete_users_or_manage_platform(self):
        admin = SYSTEM_ROLE_PERMISSIONS[SystemRole.ADMIN]
        assert SystemPermission.USERS_DELETE not in admin
        assert SystemPermission.PLATFORM_MANAGE not in admin
        assert SystemPermission.ORGANISATIONS_CREATE in admin


class TestPermissionChecks:
    """Test cases for the evaluator functions."""

    def test_system_permission_requires_system_role(self):
        assert has_system_permission(principal(), SystemPermission.USERS_VIEW) is False
        assert has_system_permission(principal("admin"), SystemPermission.USERS_VIEW) is True
        assert has_system_permission(principal("admin"), SystemPermission.USERS_DELETE) is False
        assert has_system_permission(principal("super_admin"), SystemPermission.USERS_DELETE) is True

    def test_unknown_system_role_grants_nothing(self):
        assert has_system_permission(principal("root"), SystemPermission.USERS_VIEW) is False

    def test_project_permission_by_role(self):
        assert has_project_permission(member_with(ProjectRole.REVIEWER), ProjectPermission.ENTRIES_APPROVE)
        assert not has_project_permission(member_with(ProjectRole.EXPERT), ProjectPermission.ENTRIES_APPROVE)

    def test_project_permission_accepts_role_strings(self):
        assert has_project_permission(member_with("client"), ProjectPermission.ENTRIES_QUESTION)
        assert get_project_permissions_for_role("viewer") == PROJECT_ROLE_PERMISSIONS[ProjectRole.VIEWER]

    def test_missing_or_unknown_membership_grants_nothing(self):
        assert has_project_permission(None, ProjectPermission.PROJECT_VIEW) is False
        assert has_project_permission(member_with("stakeholder"), ProjectPermission.PROJECT_VIEW) is False
        assert get_project_permissions_for_role(None) == ()

    def test_can_on_project_lets_system_admins_through(self):
        assert can_on_project(principal("admin"), None, ProjectPermission.APPROVAL_SETTINGS_EDIT)
        assert can_on_project(principal("super_admin"), None, ProjectPermission.PROJECT_DELETE)

    def test_can_on_project_requires_membership(self):
        assert can_on_project(principal(), None, ProjectPermission.PROJECT_VIEW) is False
        assert can_on_project(principal(), member_with(ProjectRole.VIEWER), ProjectPermission.PROJECT_VIEW)
        assert not can_on_project(principal(), member_with(ProjectRole.VIEWER),
                                  ProjectPermission.MESSAGES_VIEW)

    def test_has_any_project_permission(self):
        reviewer = member_with(ProjectRole.REVIEWER)
        assert has_any_project_permission(reviewer, [ProjectPermission.PROJECT_DELETE,
                                                     ProjectPermission.ENTRIES_CHANGE_STATUS])
        assert not has_any_project_permission(reviewer, [ProjectPermission.PROJECT_DELETE])
        assert not has_any_project_permission(reviewer, [])

    def test_coerce_enum(self):
        assert coerce_enum(ProjectRole, "owner") is ProjectRole.OWNER
        assert coerce_enum(ProjectRole, ProjectRole.CLIENT) is ProjectRole.CLIENT
        assert coerce_enum(ProjectRole, "bogus") is None
        assert coerce_enum(ProjectRole, None) is None
