"""
Time sheet submission workflow.

Lifecycle::

    draft -> submitted -> approved | rejected
    submitted | approved | rejected -> draft   (revert)

Role rules on top of the lifecycle:

- Approve: reviewers, clients and owners may always approve a submitted
  sheet. Experts may approve only while the project has no client.
- Reject: experts never reject; they revert to draft instead.
- Revert: experts may revert only until a client or reviewer has interacted
  with the sheet.

System admins bypass every role rule but not the status preconditions.

Approving a sheet is meaningful only when both ``can_approve_time_sheet``
(role and status) and ``can_approve_sheet`` (entry composition) pass;
``check_time_sheet_approval`` combines the two.
"""
import logging
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from ..auth.permissions import ProjectPermission, coerce_enum, has_project_permission, is_system_role
from ..database.models import EntryStatus, ProjectRole, TimeSheetStatus, utcnow
from .entry_status import NOT_A_MEMBER, project_has_client
from .results import PermissionResult

logger = logging.getLogger(__name__)

# Action -> allowed source states and target state
SHEET_TRANSITIONS = MappingProxyType({
    "submit": {"from": (TimeSheetStatus.DRAFT,), "to": TimeSheetStatus.SUBMITTED},
    "approve": {"from": (TimeSheetStatus.SUBMITTED,), "to": TimeSheetStatus.APPROVED},
    "reject": {"from": (TimeSheetStatus.SUBMITTED,), "to": TimeSheetStatus.REJECTED},
    "revert_to_draft": {
        "from": (TimeSheetStatus.SUBMITTED, TimeSheetStatus.APPROVED, TimeSheetStatus.REJECTED),
        "to": TimeSheetStatus.DRAFT,
    },
})

# Roles whose activity on a sheet counts as a review
REVIEWING_ROLES = (ProjectRole.CLIENT, ProjectRole.REVIEWER, ProjectRole.OWNER)

NOT_SUBMITTED = "Time sheet is not submitted"
NOT_DRAFT = "Only draft time sheets can be submitted"
CANNOT_APPROVE_SHEETS = "You do not have permission to approve time sheets"
CANNOT_REJECT_SHEETS = "You do not have permission to reject time sheets"
CANNOT_REVERT_SHEETS = "You do not have permission to revert time sheets"
CANNOT_SUBMIT_SHEETS = "You do not have permission to submit time sheets"
CLIENT_MUST_REVIEW = "A client must review this time sheet before it can be approved"
EXPERT_CANNOT_REJECT = "Experts cannot reject time sheets. Use 'Revert to Draft' instead."
ALREADY_REVIEWED = "Cannot revert: a reviewer or client has already reviewed this time sheet"
NOT_REVERTIBLE = "Only submitted, approved or rejected time sheets can be reverted to draft"
NO_ENTRIES = "Time sheet has no entries"


class SheetApprovalCheck(BaseModel):
    """Entry-composition eligibility of a sheet for approval."""
    can_approve: bool = Field(..., description="Whether the entries allow approval")
    reason: Optional[str] = Field(None, description="Why approval is blocked")
    pending_count: int = Field(0, description="Entries still pending")
    questioned_count: int = Field(0, description="Entries currently questioned")
    approved_count: int = Field(0, description="Entries already approved")


# PUBLIC_INTERFACE
def validate_sheet_transition(status, action: str) -> PermissionResult:
    """
    Validate a lifecycle action against the sheet's current status.

    Args:
        status: Current sheet status
        action: One of the ``SHEET_TRANSITIONS`` keys

    Returns:
        PermissionResult: Allowed if ``status`` is a valid source state for ``action``
    """
    rule = SHEET_TRANSITIONS.get(action)
    if rule is None:
        return PermissionResult.deny(f"Unknown action: {action}")
    current = coerce_enum(TimeSheetStatus, status)
    if current not in rule["from"]:
        return PermissionResult.deny(f"Cannot '{action}' a time sheet with status '{status}'")
    return PermissionResult.allow()


def _role_of(membership) -> Optional[ProjectRole]:
    return coerce_enum(ProjectRole, getattr(membership, "role", None))


# PUBLIC_INTERFACE
def can_submit_time_sheet(principal, time_sheet, membership) -> PermissionResult:
    """
    Decide whether a principal may submit a draft sheet.

    Args:
        principal: Object exposing ``system_role``
        time_sheet: Sheet snapshot exposing ``status``
        membership: The principal's project membership, or None

    Returns:
        PermissionResult: The decision
    """
    if coerce_enum(TimeSheetStatus, time_sheet.status) is not TimeSheetStatus.DRAFT:
        return PermissionResult.deny(NOT_DRAFT)
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)
    if has_project_permission(membership, ProjectPermission.TIME_SHEETS_SUBMIT):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_SUBMIT_SHEETS)


# PUBLIC_INTERFACE
def can_approve_time_sheet(principal, time_sheet, membership, roster: Iterable) -> PermissionResult:
    """
    Decide whether a principal may approve a sheet, by role and status.

    Args:
        principal: Object exposing ``system_role``
        time_sheet: Sheet snapshot exposing ``status``
        membership: The principal's project membership, or None
        roster: All memberships of the sheet's project

    Returns:
        PermissionResult: The decision
    """
    if coerce_enum(TimeSheetStatus, time_sheet.status) is not TimeSheetStatus.SUBMITTED:
        return PermissionResult.deny(NOT_SUBMITTED)
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)

    role = _role_of(membership)
    if role in (ProjectRole.REVIEWER, ProjectRole.CLIENT, ProjectRole.OWNER):
        return PermissionResult.allow()
    if role is ProjectRole.EXPERT:
        if project_has_client(roster):
            logger.debug("Expert approval of sheet %s blocked by client presence", time_sheet.id)
            return PermissionResult.deny(CLIENT_MUST_REVIEW)
        return PermissionResult.allow()
    if has_project_permission(membership, ProjectPermission.TIME_SHEETS_APPROVE):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_APPROVE_SHEETS)


# PUBLIC_INTERFACE
def can_reject_time_sheet(principal, time_sheet, membership) -> PermissionResult:
    """
    Decide whether a principal may reject a sheet.

    Args:
        principal: Object exposing ``system_role``
        time_sheet: Sheet snapshot exposing ``status``
        membership: The principal's project membership, or None

    Returns:
        PermissionResult: The decision
    """
    role = _role_of(membership)
    is_admin = is_system_role(getattr(principal, "system_role", None))
    if role is ProjectRole.EXPERT and not is_admin:
        return PermissionResult.deny(EXPERT_CANNOT_REJECT)
    if coerce_enum(TimeSheetStatus, time_sheet.status) is not TimeSheetStatus.SUBMITTED:
        return PermissionResult.deny(NOT_SUBMITTED)
    if is_admin:
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)
    if role in (ProjectRole.CLIENT, ProjectRole.REVIEWER, ProjectRole.OWNER):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_REJECT_SHEETS)


# PUBLIC_INTERFACE
def can_revert_to_draft(principal, time_sheet, membership, has_client_interaction: bool) -> PermissionResult:
    """
    Decide whether a principal may revert a sheet to draft.

    Args:
        principal: Object exposing ``system_role``
        time_sheet: Sheet snapshot exposing ``status``
        membership: The principal's project membership, or None
        has_client_interaction: Whether a client, reviewer or owner has acted on the sheet

    Returns:
        PermissionResult: The decision
    """
    if not validate_sheet_transition(time_sheet.status, "revert_to_draft").allowed:
        return PermissionResult.deny(NOT_REVERTIBLE)
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)

    role = _role_of(membership)
    if role is ProjectRole.EXPERT:
        if has_client_interaction:
            return PermissionResult.deny(ALREADY_REVIEWED)
        return PermissionResult.allow()
    if role in (ProjectRole.CLIENT, ProjectRole.REVIEWER, ProjectRole.OWNER):
        return PermissionResult.allow()
    return PermissionResult.deny(CANNOT_REVERT_SHEETS)


# PUBLIC_INTERFACE
def can_approve_sheet(entries: Iterable) -> SheetApprovalCheck:
    """
    Check whether a sheet's entries allow it to be approved.

    A sheet needs at least one entry and no questioned entries.

    Args:
        entries: Time entries linked to the sheet

    Returns:
        SheetApprovalCheck: Eligibility with per-status counts
    """
    counts = {EntryStatus.PENDING: 0, EntryStatus.QUESTIONED: 0, EntryStatus.APPROVED: 0}
    total = 0
    for entry in entries:
        total += 1
        status = coerce_enum(EntryStatus, entry.status) or EntryStatus.PENDING
        counts[status] += 1

    check = SheetApprovalCheck(
        can_approve=True,
        pending_count=counts[EntryStatus.PENDING],
        questioned_count=counts[EntryStatus.QUESTIONED],
        approved_count=counts[EntryStatus.APPROVED],
    )
    if total == 0:
        check.can_approve = False
        check.reason = NO_ENTRIES
    elif check.questioned_count:
        check.can_approve = False
        noun = "entry is" if check.questioned_count == 1 else "entries are"
        check.reason = f"{check.questioned_count} {noun} questioned and must be resolved first"
    return check


# PUBLIC_INTERFACE
def check_time_sheet_approval(principal, time_sheet, entries: Iterable, membership,
                              roster: Iterable) -> PermissionResult:
    """
    Combine the role/status gate with the entry-composition gate.

    The role/status reason is reported when both gates fail.

    Args:
        principal: Object exposing ``system_role``
        time_sheet: Sheet snapshot
        entries: Time entries linked to the sheet
        membership: The principal's project membership, or None
        roster: All memberships of the sheet's project

    Returns:
        PermissionResult: Allowed only if both gates pass
    """
    decision = can_approve_time_sheet(principal, time_sheet, membership, roster)
    if not decision.allowed:
        return decision
    eligibility = can_approve_sheet(entries)
    if not eligibility.can_approve:
        return PermissionResult.deny(eligibility.reason)
    return decision


# PUBLIC_INTERFACE
def has_client_interaction(entries: Iterable, messages: Iterable, roster: Iterable) -> bool:
    """
    Derive whether a client, reviewer or owner has already acted on a sheet.

    Counts status changes made by such a member on any linked entry, and
    non-deleted messages they wrote on a linked entry.

    Args:
        entries: Time entries linked to the sheet
        messages: Entry messages on those entries
        roster: All memberships of the sheet's project

    Returns:
        bool: True if any such interaction exists
    """
    reviewer_ids = {member.user_id for member in roster if _role_of(member) in REVIEWING_ROLES}
    if not reviewer_ids:
        return False

    entry_ids = set()
    for entry in entries:
        entry_ids.add(entry.id)
        if entry.status_changed_by is not None and entry.status_changed_by in reviewer_ids:
            return True

    return any(
        message.author_id in reviewer_ids
        and message.time_entry_id in entry_ids
        and getattr(message, "deleted_at", None) is None
        for message in messages
    )


def submit_time_sheet(time_sheet, now: Optional[datetime] = None):
    """Move a sheet to ``submitted``."""
    time_sheet.status = TimeSheetStatus.SUBMITTED
    time_sheet.submitted_date = now or utcnow()
    return time_sheet


def approve_time_sheet(time_sheet, entries: Iterable, now: Optional[datetime] = None):
    """
    Move a sheet to ``approved`` and stamp ``approved_date`` on every linked entry.

    Entry statuses are left as they are.
    """
    now = now or utcnow()
    time_sheet.status = TimeSheetStatus.APPROVED
    time_sheet.approved_date = now
    for entry in entries:
        entry.approved_date = now
    return time_sheet


def reject_time_sheet(time_sheet, reason: Optional[str] = None, now: Optional[datetime] = None):
    """Move a sheet to ``rejected``, recording the optional reason."""
    time_sheet.status = TimeSheetStatus.REJECTED
    time_sheet.rejected_date = now or utcnow()
    time_sheet.rejection_reason = reason
    return time_sheet


def revert_time_sheet_to_draft(time_sheet):
    """Move a sheet back to ``draft``, dropping all workflow dates and the rejection reason."""
    time_sheet.status = TimeSheetStatus.DRAFT
    time_sheet.submitted_date = None
    time_sheet.approved_date = None
    time_sheet.rejected_date = None
    time_sheet.rejection_reason = None
    return time_sheet
