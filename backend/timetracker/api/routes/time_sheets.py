"""
Time sheet workflow API routes.

Provides endpoints for viewing a time sheet with the current user's workflow
options, moving it through its lifecycle, and reviewing the entries inside it.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from uuid import UUID

from ...database.connection import get_db
from ...database.models import (
    EntryMessage, EntryStatus, TimeEntry, TimeSheet, TimeSheetApproval, TimeSheetEntry,
    TimeSheetStatus, utcnow
)
from ...database.repositories import (
    find_approval_settings, get_entry_messages, get_or_create_approval_settings,
    get_sheet_link, get_time_sheet
)
from ...schemas.time_sheets import (
    ApproveTimeSheetRequest, EntryActionRequest, RejectTimeSheetRequest,
    TimeEntryResponse, TimeSheetDetailResponse, TimeSheetEntryResponse,
    TimeSheetPermissions, TimeSheetResponse
)
from ...auth.dependencies import (
    CurrentUser, get_current_user, load_project_context, require_project_permission
)
from ...auth.permissions import ProjectPermission
from ...workflow.approval_settings import (
    approval_progress, can_approve_stage, uses_multi_stage
)
from ...workflow.entry_status import (
    approve_entry_in_sheet, can_approve_entry, can_question_entry,
    can_revert_entry_to_pending, question_entry_in_sheet, revert_entry_to_pending
)
from ...workflow.results import PermissionResult
from ...workflow.time_sheet import (
    approve_time_sheet, can_approve_sheet, can_reject_time_sheet, can_revert_to_draft,
    can_submit_time_sheet, check_time_sheet_approval, has_client_interaction,
    reject_time_sheet, revert_time_sheet_to_draft, submit_time_sheet
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/time-sheets", tags=["Time Sheets"])


def _get_sheet_or_404(db: Session, sheet_id: UUID) -> TimeSheet:
    time_sheet = get_time_sheet(db, sheet_id)
    if not time_sheet:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Time sheet not found"
        )
    return time_sheet


def _get_link_or_404(time_sheet: TimeSheet, entry_id: UUID) -> TimeSheetEntry:
    link = get_sheet_link(time_sheet, entry_id)
    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Time entry not found in this time sheet"
        )
    return link


def _entries_of(time_sheet: TimeSheet) -> List[TimeEntry]:
    return [link.time_entry for link in time_sheet.entry_links]


def _client_interaction(db: Session, time_sheet: TimeSheet, roster) -> bool:
    entries = _entries_of(time_sheet)
    messages = get_entry_messages(db, [entry.id for entry in entries])
    return has_client_interaction(entries, messages, roster)


def _enforce(decision: PermissionResult, current_user: CurrentUser, action: str, target_id: UUID):
    """Raise 403 with the decision's reason when it is a denial."""
    if not decision.allowed:
        logger.info("User %s denied %s on %s: %s", current_user.id, action, target_id, decision.reason)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=decision.reason
        )


def _commit(db: Session, target_id: UUID):
    """
    Commit the current transition.

    Raises:
        HTTPException: 409 if another request changed the same rows first
    """
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.rollback()
        logger.info("Concurrent update of %s rejected: %s", target_id, exc)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="The time sheet was changed by another request, reload and try again"
        )


def _link_response(link: TimeSheetEntry) -> TimeSheetEntryResponse:
    return TimeSheetEntryResponse(
        entry=TimeEntryResponse.model_validate(link.time_entry),
        approved_in_sheet=link.approved_in_sheet,
        approved_in_sheet_at=link.approved_in_sheet_at,
        approved_in_sheet_by=link.approved_in_sheet_by
    )


def _post_entry_message(db: Session, entry: TimeEntry, author_id: UUID,
                        content: Optional[str], status_change: EntryStatus):
    if content and content.strip():
        db.add(EntryMessage(
            time_entry_id=entry.id,
            author_id=author_id,
            content=content.strip(),
            status_change=status_change
        ))


# PUBLIC_INTERFACE
@router.get("/{sheet_id}", response_model=TimeSheetDetailResponse,
            summary="Get time sheet",
            description="Get a time sheet, its entries and the current user's workflow options.")
async def get_time_sheet_detail(
    sheet_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get a time sheet by ID.

    Each workflow decision carries the reason it is denied, so clients can
    explain disabled actions.
    """
    time_sheet = _get_sheet_or_404(db, sheet_id)
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    require_project_permission(current_user, membership, ProjectPermission.TIME_SHEETS_VIEW)

    entries = _entries_of(time_sheet)
    interaction = _client_interaction(db, time_sheet, roster)
    settings = find_approval_settings(db, time_sheet.project_id) if time_sheet.project_id else None

    return TimeSheetDetailResponse(
        time_sheet=TimeSheetResponse.model_validate(time_sheet),
        entries=[_link_response(link) for link in time_sheet.entry_links],
        total_hours=sum(entry.hours for entry in entries),
        eligibility=can_approve_sheet(entries),
        permissions=TimeSheetPermissions(
            approve=check_time_sheet_approval(current_user, time_sheet, entries, membership, roster),
            reject=can_reject_time_sheet(current_user, time_sheet, membership),
            revert=can_revert_to_draft(current_user, time_sheet, membership, interaction)
        ),
        has_client_interaction=interaction,
        approval_progress=approval_progress(settings, time_sheet.stage_approvals)
    )


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/submit", response_model=TimeSheetResponse,
             summary="Submit time sheet",
             description="Submit a draft time sheet for review.")
async def submit_sheet(
    sheet_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Submit a draft time sheet."""
    time_sheet = _get_sheet_or_404(db, sheet_id)
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    _enforce(can_submit_time_sheet(current_user, time_sheet, membership), current_user, "submit", sheet_id)

    submit_time_sheet(time_sheet)
    _commit(db, sheet_id)
    db.refresh(time_sheet)

    logger.info("User %s moved time sheet %s draft -> submitted", current_user.id, sheet_id)
    return TimeSheetResponse.model_validate(time_sheet)


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/approve", response_model=TimeSheetResponse,
             summary="Approve time sheet",
             description="Approve a submitted time sheet, or record the next stage approval in multi-stage mode.")
async def approve_sheet(
    sheet_id: UUID,
    request: Optional[ApproveTimeSheetRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Approve a submitted time sheet.

    The sheet must pass both the role/status check and the entry check: it
    needs entries and none of them may be questioned. In multi-stage mode each
    call records one stage, and the sheet becomes approved with the last one.
    A sheet whose recorded stages already cover the configured list, as after
    the stage list is shortened, is approved without recording another stage.
    """
    time_sheet = _get_sheet_or_404(db, sheet_id)
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    entries = _entries_of(time_sheet)
    _enforce(check_time_sheet_approval(current_user, time_sheet, entries, membership, roster),
             current_user, "approve", sheet_id)

    settings = get_or_create_approval_settings(db, time_sheet.project_id) if time_sheet.project_id else None
    now = utcnow()

    if uses_multi_stage(settings) and not approval_progress(settings, time_sheet.stage_approvals).is_complete:
        _enforce(can_approve_stage(current_user, membership, settings, time_sheet.stage_approvals),
                 current_user, "approve stage", sheet_id)
        stage = approval_progress(settings, time_sheet.stage_approvals).next_stage
        time_sheet.stage_approvals.append(TimeSheetApproval(
            stage=stage,
            approved_by=current_user.id,
            approved_at=now,
            notes=request.notes if request else None
        ))
        if approval_progress(settings, time_sheet.stage_approvals).is_complete:
            approve_time_sheet(time_sheet, entries, now)
        else:
            # Bumps the sheet version so concurrent stage approvals conflict
            time_sheet.updated_at = now
        _commit(db, sheet_id)
        logger.info("User %s approved stage %s of time sheet %s", current_user.id, stage.value, sheet_id)
    else:
        approve_time_sheet(time_sheet, entries, now)
        _commit(db, sheet_id)

    db.refresh(time_sheet)
    if time_sheet.status == TimeSheetStatus.APPROVED:
        logger.info("User %s moved time sheet %s submitted -> approved", current_user.id, sheet_id)
    return TimeSheetResponse.model_validate(time_sheet)


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/reject", response_model=TimeSheetResponse,
             summary="Reject time sheet",
             description="Reject a submitted time sheet with an optional reason.")
async def reject_sheet(
    sheet_id: UUID,
    request: Optional[RejectTimeSheetRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Reject a submitted time sheet. Experts revert to draft instead."""
    time_sheet = _get_sheet_or_404(db, sheet_id)
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    _enforce(can_reject_time_sheet(current_user, time_sheet, membership), current_user, "reject", sheet_id)

    reject_time_sheet(time_sheet, request.reason if request else None)
    _commit(db, sheet_id)
    db.refresh(time_sheet)

    logger.info("User %s moved time sheet %s submitted -> rejected", current_user.id, sheet_id)
    return TimeSheetResponse.model_validate(time_sheet)


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/revert", response_model=TimeSheetResponse,
             summary="Revert time sheet to draft",
             description="Move a submitted, approved or rejected time sheet back to draft.")
async def revert_sheet(
    sheet_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Revert a time sheet to draft.

    Experts can only do this while no client, reviewer or owner has acted on
    the sheet. Recorded stage approvals are discarded.
    """
    time_sheet = _get_sheet_or_404(db, sheet_id)
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    interaction = _client_interaction(db, time_sheet, roster)
    _enforce(can_revert_to_draft(current_user, time_sheet, membership, interaction),
             current_user, "revert", sheet_id)

    previous = time_sheet.status
    revert_time_sheet_to_draft(time_sheet)
    time_sheet.stage_approvals.clear()
    _commit(db, sheet_id)
    db.refresh(time_sheet)

    logger.info("User %s moved time sheet %s %s -> draft", current_user.id, sheet_id, previous.value)
    return TimeSheetResponse.model_validate(time_sheet)


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/entries/{entry_id}/approve", response_model=TimeSheetEntryResponse,
             summary="Approve entry in time sheet",
             description="Approve a time entry and mark it approved within this time sheet.")
async def approve_sheet_entry(
    sheet_id: UUID,
    entry_id: UUID,
    request: Optional[EntryActionRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Approve an entry of a time sheet."""
    time_sheet = _get_sheet_or_404(db, sheet_id)
    link = _get_link_or_404(time_sheet, entry_id)
    entry = link.time_entry
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    _enforce(can_approve_entry(current_user, entry, membership, roster), current_user, "approve entry", entry_id)

    previous = entry.status
    approve_entry_in_sheet(entry, link, current_user.id)
    _post_entry_message(db, entry, current_user.id, request.message if request else None, EntryStatus.APPROVED)
    _commit(db, entry_id)
    db.refresh(link)

    logger.info("User %s moved entry %s %s -> approved", current_user.id, entry_id, previous.value)
    return _link_response(link)


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/entries/{entry_id}/question", response_model=TimeSheetEntryResponse,
             summary="Question entry in time sheet",
             description="Question a time entry, revoking its approval within this time sheet.")
async def question_sheet_entry(
    sheet_id: UUID,
    entry_id: UUID,
    request: Optional[EntryActionRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Question an entry of a time sheet, optionally explaining why."""
    time_sheet = _get_sheet_or_404(db, sheet_id)
    link = _get_link_or_404(time_sheet, entry_id)
    entry = link.time_entry
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    _enforce(can_question_entry(current_user, membership), current_user, "question entry", entry_id)

    previous = entry.status
    question_entry_in_sheet(entry, link, current_user.id)
    _post_entry_message(db, entry, current_user.id, request.message if request else None, EntryStatus.QUESTIONED)
    _commit(db, entry_id)
    db.refresh(link)

    logger.info("User %s moved entry %s %s -> questioned", current_user.id, entry_id, previous.value)
    return _link_response(link)


# PUBLIC_INTERFACE
@router.post("/{sheet_id}/entries/{entry_id}/resolve", response_model=TimeSheetEntryResponse,
             summary="Resolve questioned entry",
             description="Put a questioned time entry back to pending, optionally with a reply.")
async def resolve_sheet_entry(
    sheet_id: UUID,
    entry_id: UUID,
    request: Optional[EntryActionRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Resolve a question on an entry of a time sheet."""
    time_sheet = _get_sheet_or_404(db, sheet_id)
    link = _get_link_or_404(time_sheet, entry_id)
    entry = link.time_entry
    if entry.status != EntryStatus.QUESTIONED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only questioned entries can be resolved"
        )
    roster, membership = load_project_context(db, time_sheet.project_id, current_user)
    _enforce(can_revert_entry_to_pending(current_user, entry, membership), current_user, "resolve entry", entry_id)

    revert_entry_to_pending(entry, current_user.id)
    _post_entry_message(db, entry, current_user.id, request.message if request else None, EntryStatus.PENDING)
    _commit(db, entry_id)
    db.refresh(link)

    logger.info("User %s moved entry %s questioned -> pending", current_user.id, entry_id)
    return _link_response(link)
