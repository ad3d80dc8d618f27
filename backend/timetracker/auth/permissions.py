"""
Permission catalog and evaluator.

Two disjoint namespaces:

- System permissions cover platform administration and are granted through a
  user's ``system_role`` (``super_admin`` or ``admin``).
- Project permissions cover work inside one project and are granted through a
  ``ProjectMember.role``.

Each role maps to a fixed, ordered tuple of permissions. Lookups never raise:
a missing or unrecognised role yields no permissions.
"""
import enum
from types import MappingProxyType
from typing import Iterable, Optional, Tuple, Type, TypeVar

from ..database.models import SystemRole, ProjectRole

E = TypeVar("E", bound=enum.Enum)


class SystemPermission(str, enum.Enum):
    """Platform-level permissions."""
    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_EDIT = "users:edit"
    USERS_DELETE = "users:delete"
    ORGANISATIONS_VIEW = "organisations:view"
    ORGANISATIONS_CREATE = "organisations:create"
    ORGANISATIONS_EDIT = "organisations:edit"
    ORGANISATIONS_DELETE = "organisations:delete"
    PLATFORM_MANAGE = "platform:manage"


class ProjectPermission(str, enum.Enum):
    """Permissions scoped to a single project."""
    # Time entries
    TIME_ENTRIES_VIEW = "time-entries:view"
    TIME_ENTRIES_CREATE = "time-entries:create"
    TIME_ENTRIES_EDIT_OWN = "time-entries:edit-own"
    TIME_ENTRIES_EDIT_ALL = "time-entries:edit-all"
    TIME_ENTRIES_DELETE_OWN = "time-entries:delete-own"
    TIME_ENTRIES_DELETE_ALL = "time-entries:delete-all"
    # Time sheets
    TIME_SHEETS_VIEW = "time-sheets:view"
    TIME_SHEETS_CREATE = "time-sheets:create"
    TIME_SHEETS_EDIT = "time-sheets:edit"
    TIME_SHEETS_SUBMIT = "time-sheets:submit"
    TIME_SHEETS_APPROVE = "time-sheets:approve"
    # Entry-level approval
    ENTRIES_QUESTION = "entries:question"
    ENTRIES_APPROVE = "entries:approve"
    ENTRIES_CHANGE_STATUS = "entries:change-status"
    # Entry messages
    MESSAGES_VIEW = "messages:view"
    MESSAGES_CREATE = "messages:create"
    MESSAGES_DELETE_OWN = "messages:delete-own"
    MESSAGES_DELETE_ALL = "messages:delete-all"
    # Approval settings
    APPROVAL_SETTINGS_VIEW = "approval-settings:view"
    APPROVAL_SETTINGS_EDIT = "approval-settings:edit"
    # Project management
    PROJECT_VIEW = "project:view"
    PROJECT_EDIT = "project:edit"
    PROJECT_DELETE = "project:delete"
    PROJECT_INVITE = "project:invite"
    PROJECT_MANAGE_MEMBERS = "project:manage-members"
    # Contacts
    CONTACTS_VIEW = "contacts:view"
    CONTACTS_INVITE = "contacts:invite"


PERMISSION_DESCRIPTIONS = MappingProxyType({
    SystemPermission.USERS_VIEW: "View all platform users",
    SystemPermission.USERS_CREATE: "Create new users",
    SystemPermission.USERS_EDIT: "Edit user accounts",
    SystemPermission.USERS_DELETE: "Delete user accounts",
    SystemPermission.ORGANISATIONS_VIEW: "View all organisations",
    SystemPermission.ORGANISATIONS_CREATE: "Create organisations",
    SystemPermission.ORGANISATIONS_EDIT: "Edit organisations",
    SystemPermission.ORGANISATIONS_DELETE: "Delete organisations",
    SystemPermission.PLATFORM_MANAGE: "Manage platform settings",
    ProjectPermission.TIME_ENTRIES_VIEW: "View time entries",
    ProjectPermission.TIME_ENTRIES_CREATE: "Create time entries",
    ProjectPermission.TIME_ENTRIES_EDIT_OWN: "Edit own time entries",
    ProjectPermission.TIME_ENTRIES_EDIT_ALL: "Edit any time entry",
    ProjectPermission.TIME_ENTRIES_DELETE_OWN: "Delete own time entries",
    ProjectPermission.TIME_ENTRIES_DELETE_ALL: "Delete any time entry",
    ProjectPermission.TIME_SHEETS_VIEW: "View time sheets",
    ProjectPermission.TIME_SHEETS_CREATE: "Create time sheets",
    ProjectPermission.TIME_SHEETS_EDIT: "Edit time sheets",
    ProjectPermission.TIME_SHEETS_SUBMIT: "Submit time sheets for approval",
    ProjectPermission.TIME_SHEETS_APPROVE: "Approve/reject time sheets",
    ProjectPermission.ENTRIES_QUESTION: "Mark entries as questioned",
    ProjectPermission.ENTRIES_APPROVE: "Approve individual entries",
    ProjectPermission.ENTRIES_CHANGE_STATUS: "Change entry status",
    ProjectPermission.MESSAGES_VIEW: "View entry messages",
    ProjectPermission.MESSAGES_CREATE: "Create entry messages",
    ProjectPermission.MESSAGES_DELETE_OWN: "Delete own messages",
    ProjectPermission.MESSAGES_DELETE_ALL: "Delete any message",
    ProjectPermission.APPROVAL_SETTINGS_VIEW: "View project approval settings",
    ProjectPermission.APPROVAL_SETTINGS_EDIT: "Edit project approval settings",
    ProjectPermission.PROJECT_VIEW: "View project details",
    ProjectPermission.PROJECT_EDIT: "Edit project settings",
    ProjectPermission.PROJECT_DELETE: "Delete the project",
    ProjectPermission.PROJECT_INVITE: "Invite members to project",
    ProjectPermission.PROJECT_MANAGE_MEMBERS: "Manage project membership",
    ProjectPermission.CONTACTS_VIEW: "View project contacts",
    ProjectPermission.CONTACTS_INVITE: "Invite contacts to project",
})


SYSTEM_ROLE_PERMISSIONS = MappingProxyType({
    SystemRole.SUPER_ADMIN: tuple(SystemPermission),
    SystemRole.ADMIN: (
        SystemPermission.USERS_VIEW,
        SystemPermission.USERS_CREATE,
        SystemPermission.USERS_EDIT,
        # No user deletion and no platform management
        SystemPermission.ORGANISATIONS_VIEW,
        SystemPermission.ORGANISATIONS_CREATE,
        SystemPermission.ORGANISATIONS_EDIT,
        SystemPermission.ORGANISATIONS_DELETE,
    ),
})


PROJECT_ROLE_PERMISSIONS = MappingProxyType({
    ProjectRole.OWNER: (
        ProjectPermission.PROJECT_VIEW,
        ProjectPermission.PROJECT_EDIT,
        ProjectPermission.PROJECT_DELETE,
        ProjectPermission.PROJECT_INVITE,
        ProjectPermission.PROJECT_MANAGE_MEMBERS,
        ProjectPermission.TIME_ENTRIES_VIEW,
        ProjectPermission.TIME_ENTRIES_CREATE,
        ProjectPermission.TIME_ENTRIES_EDIT_OWN,
        ProjectPermission.TIME_ENTRIES_EDIT_ALL,
        ProjectPermission.TIME_ENTRIES_DELETE_OWN,
        ProjectPermission.TIME_ENTRIES_DELETE_ALL,
        ProjectPermission.TIME_SHEETS_VIEW,
        ProjectPermission.TIME_SHEETS_CREATE,
        ProjectPermission.TIME_SHEETS_EDIT,
        ProjectPermission.TIME_SHEETS_SUBMIT,
        ProjectPermission.TIME_SHEETS_APPROVE,
        ProjectPermission.ENTRIES_QUESTION,
        ProjectPermission.ENTRIES_APPROVE,
        ProjectPermission.ENTRIES_CHANGE_STATUS,
        ProjectPermission.MESSAGES_VIEW,
        ProjectPermission.MESSAGES_CREATE,
        ProjectPermission.MESSAGES_DELETE_OWN,
        ProjectPermission.MESSAGES_DELETE_ALL,
        ProjectPermission.APPROVAL_SETTINGS_VIEW,
        ProjectPermission.APPROVAL_SETTINGS_EDIT,
        ProjectPermission.CONTACTS_VIEW,
        ProjectPermission.CONTACTS_INVITE,
    ),
    ProjectRole.EXPERT: (
        ProjectPermission.PROJECT_VIEW,
        ProjectPermission.TIME_ENTRIES_VIEW,
        ProjectPermission.TIME_ENTRIES_CREATE,
        ProjectPermission.TIME_ENTRIES_EDIT_OWN,
        ProjectPermission.TIME_ENTRIES_DELETE_OWN,
        ProjectPermission.TIME_SHEETS_VIEW,
        ProjectPermission.TIME_SHEETS_CREATE,
        ProjectPermission.TIME_SHEETS_EDIT,
        ProjectPermission.TIME_SHEETS_SUBMIT,
        ProjectPermission.MESSAGES_VIEW,
        ProjectPermission.MESSAGES_CREATE,
        ProjectPermission.MESSAGES_DELETE_OWN,
        ProjectPermission.APPROVAL_SETTINGS_VIEW,
        ProjectPermission.CONTACTS_VIEW,
    ),
    ProjectRole.REVIEWER: (
        ProjectPermission.PROJECT_VIEW,
        ProjectPermission.TIME_ENTRIES_VIEW,
        ProjectPermission.TIME_SHEETS_VIEW,
        ProjectPermission.TIME_SHEETS_APPROVE,
        ProjectPermission.ENTRIES_QUESTION,
        ProjectPermission.ENTRIES_APPROVE,
        ProjectPermission.ENTRIES_CHANGE_STATUS,
        ProjectPermission.MESSAGES_VIEW,
        ProjectPermission.MESSAGES_CREATE,
        ProjectPermission.MESSAGES_DELETE_OWN,
        ProjectPermission.MESSAGES_DELETE_ALL,
        ProjectPermission.APPROVAL_SETTINGS_VIEW,
        ProjectPermission.CONTACTS_VIEW,
    ),
    ProjectRole.CLIENT: (
        ProjectPermission.PROJECT_VIEW,
        ProjectPermission.TIME_ENTRIES_VIEW,
        ProjectPermission.TIME_SHEETS_VIEW,
        ProjectPermission.ENTRIES_QUESTION,
        ProjectPermission.ENTRIES_APPROVE,
        ProjectPermission.MESSAGES_VIEW,
        ProjectPermission.MESSAGES_CREATE,
        ProjectPermission.MESSAGES_DELETE_OWN,
        ProjectPermission.CONTACTS_VIEW,
        ProjectPermission.CONTACTS_INVITE,
    ),
    ProjectRole.VIEWER: (
        ProjectPermission.PROJECT_VIEW,
        ProjectPermission.TIME_ENTRIES_VIEW,
        ProjectPermission.TIME_SHEETS_VIEW,
    ),
})


def coerce_enum(enum_class: Type[E], value) -> Optional[E]:
    """
    Convert a raw value to a member of ``enum_class``.

    Enum members hash by name, so plain strings must be converted before
    being used as mapping keys.

    Args:
        enum_class: Target enum class
        value: Enum member, its string value, or anything else

    Returns:
        Optional[E]: The member, or None if ``value`` is not a valid value
    """
    if value is None:
        return None
    try:
        return enum_class(value)
    except ValueError:
        return None


# PUBLIC_INTERFACE
def is_system_role(role) -> bool:
    """Return True for ``super_admin`` and ``admin``."""
    return coerce_enum(SystemRole, role) is not None


# PUBLIC_INTERFACE
def get_project_permissions_for_role(role) -> Tuple[ProjectPermission, ...]:
    """
    Get the fixed permission list of a project role.

    Args:
        role: Project role (enum member or string)

    Returns:
        Tuple[ProjectPermission, ...]: Permissions in catalog order, empty for unknown roles
    """
    project_role = coerce_enum(ProjectRole, role)
    if project_role is None:
        return ()
    return PROJECT_ROLE_PERMISSIONS[project_role]


# PUBLIC_INTERFACE
def has_system_permission(principal, permission) -> bool:
    """
    Check whether a principal holds a system permission through its system role.

    Args:
        principal: Object exposing ``system_role``
        permission: System permission to test

    Returns:
        bool: False when the principal has no (or an unknown) system role
    """
    system_role = coerce_enum(SystemRole, getattr(principal, "system_role", None))
    if system_role is None:
        return False
    return permission in SYSTEM_ROLE_PERMISSIONS[system_role]


# PUBLIC_INTERFACE
def has_project_permission(membership, permission) -> bool:
    """
    Check whether a project membership grants a permission.

    Args:
        membership: Object exposing ``role``; None is treated as no membership
        permission: Project permission to test

    Returns:
        bool: True if the membership's role lists the permission
    """
    if membership is None:
        return False
    return permission in get_project_permissions_for_role(getattr(membership, "role", None))


# PUBLIC_INTERFACE
def can_on_project(principal, membership, permission) -> bool:
    """
    Check a project permission, letting system admins through unconditionally.

    Args:
        principal: Object exposing ``system_role``
        membership: The principal's membership of the project, or None
        permission: Project permission to test

    Returns:
        bool: True for system admins, otherwise the membership check
    """
    if is_system_role(getattr(principal, "system_role", None)):
        return True
    if membership is None:
        return False
    return has_project_permission(membership, permission)


# PUBLIC_INTERFACE
def has_any_project_permission(membership, permissions: Iterable) -> bool:
    """Return True if the membership grants at least one of ``permissions``."""
    return any(has_project_permission(membership, permission) for permission in permissions)
