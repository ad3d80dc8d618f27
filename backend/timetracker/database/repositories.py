"""
Queries and writes used by the workflow routes.

The workflow rules are pure; these helpers load the snapshots they need
(rosters, sheets with their entries, settings) and persist approval settings.
"""
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session, selectinload

from .models import (
    EntryMessage, ProjectApprovalSettings, ProjectMember, TimeEntry, TimeSheet, TimeSheetEntry
)
from ..workflow.approval_settings import apply_settings_patch, default_approval_settings


def get_roster(db: Session, project_id) -> List[ProjectMember]:
    """Return every membership of a project; empty when ``project_id`` is None."""
    if project_id is None:
        return []
    return db.query(ProjectMember).filter(ProjectMember.project_id == project_id).all()


def find_membership(roster: Iterable[ProjectMember], user_id) -> Optional[ProjectMember]:
    """Pick a user's membership out of a roster."""
    for member in roster:
        if member.user_id == user_id:
            return member
    return None


def get_time_sheet(db: Session, sheet_id) -> Optional[TimeSheet]:
    """Load a sheet together with its entry links, entries and stage approvals."""
    return (
        db.query(TimeSheet)
        .options(
            selectinload(TimeSheet.entry_links).selectinload(TimeSheetEntry.time_entry),
            selectinload(TimeSheet.stage_approvals),
        )
        .filter(TimeSheet.id == sheet_id)
        .first()
    )


def get_sheet_link(time_sheet: TimeSheet, entry_id) -> Optional[TimeSheetEntry]:
    """Find the link of an entry within a loaded sheet."""
    for link in time_sheet.entry_links:
        if link.time_entry_id == entry_id:
            return link
    return None


def get_entry_messages(db: Session, entry_ids: Iterable) -> List[EntryMessage]:
    """Return non-deleted messages on the given entries, oldest first."""
    entry_ids = list(entry_ids)
    if not entry_ids:
        return []
    return (
        db.query(EntryMessage)
        .filter(EntryMessage.time_entry_id.in_(entry_ids), EntryMessage.deleted_at.is_(None))
        .order_by(EntryMessage.created_at)
        .all()
    )


def get_time_entry(db: Session, entry_id) -> Optional[TimeEntry]:
    """Load an entry together with its sheet links."""
    return (
        db.query(TimeEntry)
        .options(selectinload(TimeEntry.sheet_links))
        .filter(TimeEntry.id == entry_id)
        .first()
    )


def find_approval_settings(db: Session, project_id) -> Optional[ProjectApprovalSettings]:
    """Return a project's settings without creating them."""
    return db.query(ProjectApprovalSettings).filter(
        ProjectApprovalSettings.project_id == project_id
    ).first()


def get_or_create_approval_settings(db: Session, project_id) -> ProjectApprovalSettings:
    """
    Return a project's settings, inserting the defaults on first access.

    The new row is flushed, not committed.
    """
    settings = find_approval_settings(db, project_id)
    if settings is None:
        settings = default_approval_settings(project_id)
        db.add(settings)
        db.flush()
    return settings


def update_approval_settings(db: Session, project_id, patch: Dict[str, Any]) -> ProjectApprovalSettings:
    """
    Apply a partial patch to a project's settings and commit it.

    Raises:
        ValueError: If the patch is invalid
    """
    settings = get_or_create_approval_settings(db, project_id)
    apply_settings_patch(settings, patch)
    db.commit()
    db.refresh(settings)
    return settings
