"""
Project approval settings API routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID

from ...database.connection import get_db
from ...database.models import Project
from ...database.repositories import get_or_create_approval_settings, update_approval_settings
from ...schemas.approval_settings import ApprovalSettingsResponse, ApprovalSettingsUpdateRequest
from ...auth.dependencies import (
    CurrentUser, get_current_user, load_project_context, require_project_permission
)
from ...auth.permissions import ProjectPermission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Approval Settings"])


def _get_project_or_404(db: Session, project_id: UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    return project


# PUBLIC_INTERFACE
@router.get("/{project_id}/approval-settings", response_model=ApprovalSettingsResponse,
            summary="Get approval settings",
            description="Get a project's approval settings, creating the defaults on first access.")
async def get_approval_settings(
    project_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get approval settings for a project."""
    project = _get_project_or_404(db, project_id)
    roster, membership = load_project_context(db, project.id, current_user)
    require_project_permission(current_user, membership, ProjectPermission.APPROVAL_SETTINGS_VIEW)

    settings = get_or_create_approval_settings(db, project.id)
    db.commit()
    db.refresh(settings)

    return ApprovalSettingsResponse.model_validate(settings)


# PUBLIC_INTERFACE
@router.patch("/{project_id}/approval-settings", response_model=ApprovalSettingsResponse,
              summary="Update approval settings",
              description="Partially update a project's approval settings. Omitted fields are left unchanged.")
async def patch_approval_settings(
    project_id: UUID,
    request: ApprovalSettingsUpdateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update approval settings for a project.

    Sending ``approval_stages: null`` clears the stage list.
    """
    project = _get_project_or_404(db, project_id)
    roster, membership = load_project_context(db, project.id, current_user)
    require_project_permission(current_user, membership, ProjectPermission.APPROVAL_SETTINGS_EDIT)

    patch = request.model_dump(exclude_unset=True)
    try:
        settings = update_approval_settings(db, project.id, patch)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc)
        )

    logger.info("User %s updated approval settings of project %s: %s",
                current_user.id, project_id, ", ".join(sorted(patch)))
    return ApprovalSettingsResponse.model_validate(settings)
