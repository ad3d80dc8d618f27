"""
Entry message API routes.

Threaded discussion on a time entry. A message may carry a status change,
which is applied to the entry in the same transaction.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from uuid import UUID

from ...database.connection import get_db
from ...database.models import EntryMessage, EntryStatus, TimeEntry
from ...database.repositories import get_entry_messages, get_time_entry
from ...schemas.entry_messages import EntryMessageCreateRequest, EntryMessageResponse
from ...auth.dependencies import (
    CurrentUser, get_current_user, load_project_context, require_project_permission
)
from ...auth.permissions import ProjectPermission
from ...workflow.entry_status import (
    can_approve_entry, can_question_entry, can_revert_entry_to_pending,
    clear_sheet_approval, set_entry_status
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/time-entries", tags=["Entry Messages"])


def _get_entry_or_404(db: Session, entry_id: UUID) -> TimeEntry:
    entry = get_time_entry(db, entry_id)
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Time entry not found"
        )
    return entry


def _status_change_decision(current_user: CurrentUser, entry: TimeEntry, membership, roster,
                            status_change: EntryStatus):
    if status_change == EntryStatus.APPROVED:
        return can_approve_entry(current_user, entry, membership, roster)
    if status_change == EntryStatus.QUESTIONED:
        return can_question_entry(current_user, membership)
    return can_revert_entry_to_pending(current_user, entry, membership)


# PUBLIC_INTERFACE
@router.get("/{entry_id}/messages", response_model=List[EntryMessageResponse],
            summary="List entry messages",
            description="List the non-deleted messages on a time entry, oldest first.")
async def list_entry_messages(
    entry_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List messages on a time entry."""
    entry = _get_entry_or_404(db, entry_id)
    roster, membership = load_project_context(db, entry.project_id, current_user)
    require_project_permission(current_user, membership, ProjectPermission.MESSAGES_VIEW)

    return [EntryMessageResponse.model_validate(message) for message in get_entry_messages(db, [entry.id])]


# PUBLIC_INTERFACE
@router.post("/{entry_id}/messages", response_model=EntryMessageResponse,
             status_code=status.HTTP_201_CREATED,
             summary="Post entry message",
             description="Post a message on a time entry, optionally changing the entry's status.")
async def create_entry_message(
    entry_id: UUID,
    request: EntryMessageCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Post a message on a time entry.

    A ``status_change`` needs the same permission as the matching entry
    action. Questioning revokes the entry's approval in every sheet it is in.
    """
    entry = _get_entry_or_404(db, entry_id)
    roster, membership = load_project_context(db, entry.project_id, current_user)
    require_project_permission(current_user, membership, ProjectPermission.MESSAGES_CREATE)

    if request.parent_message_id is not None:
        parent = db.query(EntryMessage).filter(
            EntryMessage.id == request.parent_message_id,
            EntryMessage.time_entry_id == entry.id,
            EntryMessage.deleted_at.is_(None)
        ).first()
        if not parent:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Parent message not found"
            )

    if request.status_change is not None:
        decision = _status_change_decision(current_user, entry, membership, roster, request.status_change)
        if not decision.allowed:
            logger.info("User %s denied status change of entry %s: %s",
                        current_user.id, entry_id, decision.reason)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=decision.reason
            )
        previous = entry.status
        set_entry_status(entry, request.status_change, current_user.id)
        # Approving here leaves approved_in_sheet untouched; only the in-sheet
        # entry approval sets the mirror. Questioning clears it everywhere.
        if request.status_change == EntryStatus.QUESTIONED:
            for link in entry.sheet_links:
                clear_sheet_approval(link)
        logger.info("User %s moved entry %s %s -> %s", current_user.id, entry_id,
                    previous.value, request.status_change.value)

    message = EntryMessage(
        time_entry_id=entry.id,
        author_id=current_user.id,
        content=request.content,
        parent_message_id=request.parent_message_id,
        status_change=request.status_change
    )
    db.add(message)
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The time entry was changed by another request, reload and try again"
        )
    db.refresh(message)

    return EntryMessageResponse.model_validate(message)
