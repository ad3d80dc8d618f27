"""
Review lifecycle of individual time entries.

An entry is ``pending``, ``questioned`` or ``approved`` and may move between
any of them. Approving or questioning inside a sheet also updates that sheet's
link row (the sheet-scoped approval mirror), which is tracked separately from
the entry's own status.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from ..auth.permissions import (
    ProjectPermission, coerce_enum, has_any_project_permission, has_project_permission, is_system_role
)
from ..database.models import EntryStatus, ProjectRole, utcnow
from .results import PermissionResult

logger = logging.getLogger(__name__)

NOT_A_MEMBER = "You are not a member of this project"
CANNOT_APPROVE_ENTRIES = "You do not have permission to approve entries"
CANNOT_QUESTION_ENTRIES = "You do not have permission to question entries"
NO_SELF_APPROVAL = "Experts cannot approve their own entries while the project has a client"
CANNOT_CHANGE_STATUS = "You do not have permission to change the status of this entry"


# PUBLIC_INTERFACE
def project_has_client(roster: Iterable) -> bool:
    """
    Check whether any member of a project roster holds the ``client`` role.

    Args:
        roster: Memberships exposing ``role``

    Returns:
        bool: True if at least one member is a client
    """
    return any(coerce_enum(ProjectRole, getattr(member, "role", None)) is ProjectRole.CLIENT
               for member in roster)


# PUBLIC_INTERFACE
def can_approve_entry(principal, entry, membership, roster: Iterable) -> PermissionResult:
    """
    Decide whether a principal may approve a time entry.

    System admins are always allowed. Members need ``entries:approve``; experts
    approve through their role instead, except their own entries while the
    project has a client.

    Args:
        principal: Object exposing ``id`` and ``system_role``
        entry: Entry snapshot exposing ``created_by``
        membership: The principal's project membership, or None
        roster: All memberships of the entry's project

    Returns:
        PermissionResult: The decision
    """
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)

    role = coerce_enum(ProjectRole, membership.role)
    if role is ProjectRole.EXPERT:
        if entry.created_by == principal.id and project_has_client(roster):
            logger.debug("Self-approval of entry %s by %s blocked", entry.id, principal.id)
            return PermissionResult.deny(NO_SELF_APPROVAL)
        return PermissionResult.allow()

    if has_project_permission(membership, ProjectPermission.ENTRIES_APPROVE):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_APPROVE_ENTRIES)


# PUBLIC_INTERFACE
def can_question_entry(principal, membership) -> PermissionResult:
    """
    Decide whether a principal may question a time entry.

    No self-approval restriction applies to questioning.

    Args:
        principal: Object exposing ``system_role``
        membership: The principal's project membership, or None

    Returns:
        PermissionResult: The decision
    """
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)
    if has_project_permission(membership, ProjectPermission.ENTRIES_QUESTION):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_QUESTION_ENTRIES)


# PUBLIC_INTERFACE
def can_revert_entry_to_pending(principal, entry, membership) -> PermissionResult:
    """
    Decide whether a principal may put an entry back to ``pending``.

    This is a plain status write, gated by the general entry-edit
    permissions: editing any entry, changing entry status, or editing one's
    own entry.

    Args:
        principal: Object exposing ``id`` and ``system_role``
        entry: Entry snapshot exposing ``created_by``
        membership: The principal's project membership, or None

    Returns:
        PermissionResult: The decision
    """
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)
    if has_any_project_permission(membership, (ProjectPermission.TIME_ENTRIES_EDIT_ALL,
                                               ProjectPermission.ENTRIES_CHANGE_STATUS)):
        return PermissionResult.allow()
    if entry.created_by == principal.id and has_project_permission(
            membership, ProjectPermission.TIME_ENTRIES_EDIT_OWN):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_CHANGE_STATUS)


def set_entry_status(entry, status: EntryStatus, changed_by, now: Optional[datetime] = None):
    """
    Write an entry status, keeping ``approved_date`` in step with it.

    Args:
        entry: Entry to mutate
        status: New status
        changed_by: ID of the acting user
        now: Timestamp to record, defaults to the current UTC time

    Returns:
        The mutated entry
    """
    now = now or utcnow()
    entry.status = status
    entry.status_changed_at = now
    entry.status_changed_by = changed_by
    entry.approved_date = now if status == EntryStatus.APPROVED else None
    return entry


def approve_entry_in_sheet(entry, link, approved_by, now: Optional[datetime] = None):
    """
    Approve an entry and mark it approved in the given sheet.

    The entry write and the link write belong in the same transaction.
    """
    now = now or utcnow()
    set_entry_status(entry, EntryStatus.APPROVED, approved_by, now)
    if link is not None:
        link.approved_in_sheet = True
        link.approved_in_sheet_at = now
        link.approved_in_sheet_by = approved_by
    return entry


def question_entry_in_sheet(entry, link, questioned_by, now: Optional[datetime] = None):
    """
    Question an entry, revoking any approval mark it had in the given sheet.
    """
    now = now or utcnow()
    set_entry_status(entry, EntryStatus.QUESTIONED, questioned_by, now)
    if link is not None:
        clear_sheet_approval(link)
    return entry


def clear_sheet_approval(link):
    """Reset a sheet link's approval mirror."""
    link.approved_in_sheet = False
    link.approved_in_sheet_at = None
    link.approved_in_sheet_by = None
    return link


def revert_entry_to_pending(entry, changed_by, now: Optional[datetime] = None):
    """Put an entry back to ``pending``, e.g. once a question is resolved."""
    return set_entry_status(entry, EntryStatus.PENDING, changed_by, now)
