"""
Per-project approval settings and multi-stage sequencing.

Settings are declarative: they are created with defaults on first access and
changed through partial patches. Under ``multi_stage`` mode the ordered
``approval_stages`` list names the project roles that must approve a sheet,
one stage after another.
"""
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..auth.permissions import coerce_enum, is_system_role
from ..database.models import (
    ApprovalMode, ProjectApprovalSettings, ProjectRole, TimeSheetStatus, utcnow
)
from .entry_status import NOT_A_MEMBER
from .results import PermissionResult

DEFAULT_APPROVAL_SETTINGS = MappingProxyType({
    "approval_mode": ApprovalMode.REQUIRED,
    "auto_approve_after_days": 0,
    "require_all_entries_approved": True,
    "allow_self_approve_no_client": False,
    "approval_stages": None,
})

STAGES_COMPLETE = "All approval stages are already complete"


class ApprovalProgress(BaseModel):
    """Where a sheet stands in its multi-stage approval."""
    stages: List[ProjectRole] = Field(default_factory=list, description="Required stages in order")
    completed_stages: List[ProjectRole] = Field(default_factory=list, description="Stages already approved")
    next_stage: Optional[ProjectRole] = Field(None, description="First stage still awaiting approval")
    is_complete: bool = Field(..., description="Whether every stage is approved")


# PUBLIC_INTERFACE
def default_approval_settings(project_id) -> ProjectApprovalSettings:
    """
    Build unsaved settings for a project holding the default values.

    Args:
        project_id: Project the settings belong to

    Returns:
        ProjectApprovalSettings: Transient settings row
    """
    return ProjectApprovalSettings(project_id=project_id, **DEFAULT_APPROVAL_SETTINGS)


# Roles that can pass the sheet approval check regardless of the project's
# client: viewers never approve sheets and experts defer to a client.
STAGE_ROLES = frozenset({ProjectRole.OWNER, ProjectRole.REVIEWER, ProjectRole.CLIENT})


def normalize_stages(stages: Optional[Iterable]) -> Optional[List[str]]:
    """
    Convert a stage list to the stored form, a list of role values.

    Raises:
        ValueError: If a stage is not a project role or that role cannot approve sheets
    """
    if stages is None:
        return None
    normalized = []
    for stage in stages:
        role = coerce_enum(ProjectRole, stage)
        if role is None:
            raise ValueError(f"Unknown approval stage: {stage!r}")
        if role not in STAGE_ROLES:
            raise ValueError(f"The {role.value} role cannot be an approval stage")
        normalized.append(role.value)
    return normalized


# PUBLIC_INTERFACE
def apply_settings_patch(settings, patch: Dict[str, Any], now: Optional[datetime] = None):
    """
    Apply a partial update to approval settings.

    Only keys present in ``patch`` change. An explicit ``approval_stages``
    replaces the stored list; ``None`` clears it.

    Args:
        settings: Settings row to mutate
        patch: Field name to new value
        now: Timestamp for ``updated_at``

    Returns:
        The mutated settings

    Raises:
        ValueError: On unknown fields, negative day counts or unknown stages
    """
    unknown = set(patch) - set(DEFAULT_APPROVAL_SETTINGS)
    if unknown:
        raise ValueError(f"Unknown approval settings: {', '.join(sorted(unknown))}")

    for key, value in patch.items():
        if value is None and key != "approval_stages":
            raise ValueError(f"{key} cannot be null")
        if key == "approval_stages":
            value = normalize_stages(value)
        elif key == "approval_mode":
            mode = coerce_enum(ApprovalMode, value)
            if mode is None:
                raise ValueError(f"Unknown approval mode: {value!r}")
            value = mode
        elif key == "auto_approve_after_days" and value < 0:
            raise ValueError("auto_approve_after_days must be >= 0")
        setattr(settings, key, value)

    settings.updated_at = now or utcnow()
    return settings


def get_approval_stages(settings) -> List[ProjectRole]:
    """Return the configured stages as project roles, skipping unknown values."""
    if settings is None or not settings.approval_stages:
        return []
    stages = (coerce_enum(ProjectRole, stage) for stage in settings.approval_stages)
    return [stage for stage in stages if stage is not None]


# PUBLIC_INTERFACE
def uses_multi_stage(settings) -> bool:
    """True when the project is in ``multi_stage`` mode with at least one stage."""
    if settings is None:
        return False
    return (coerce_enum(ApprovalMode, settings.approval_mode) is ApprovalMode.MULTI_STAGE
            and bool(get_approval_stages(settings)))


# PUBLIC_INTERFACE
def next_required_stage(stages: Iterable, completed: Iterable) -> Optional[ProjectRole]:
    """
    Find the first stage without a recorded approval.

    Args:
        stages: Required stages in order
        completed: Stages already approved

    Returns:
        Optional[ProjectRole]: The next stage, or None when all are complete
    """
    done = {coerce_enum(ProjectRole, stage) for stage in completed}
    for stage in stages:
        role = coerce_enum(ProjectRole, stage)
        if role is not None and role not in done:
            return role
    return None


# PUBLIC_INTERFACE
def approval_progress(settings, approvals: Iterable) -> ApprovalProgress:
    """
    Summarize a sheet's multi-stage approval state.

    Args:
        settings: The project's approval settings, or None
        approvals: Recorded stage approvals exposing ``stage``

    Returns:
        ApprovalProgress: Stages, completed stages and the next stage
    """
    stages = get_approval_stages(settings) if uses_multi_stage(settings) else []
    completed = []
    for approval in approvals:
        stage = coerce_enum(ProjectRole, approval.stage)
        if stage is not None and stage not in completed:
            completed.append(stage)
    next_stage = next_required_stage(stages, completed)
    return ApprovalProgress(
        stages=stages,
        completed_stages=completed,
        next_stage=next_stage,
        is_complete=next_stage is None,
    )


# PUBLIC_INTERFACE
def can_approve_stage(principal, membership, settings, approvals: Iterable) -> PermissionResult:
    """
    Decide whether a principal may record the next stage approval.

    Only the role named by the next required stage may approve it; system
    admins may approve whichever stage is next.

    Args:
        principal: Object exposing ``system_role``
        membership: The principal's project membership, or None
        settings: The project's approval settings
        approvals: Stage approvals already recorded for the sheet

    Returns:
        PermissionResult: The decision
    """
    progress = approval_progress(settings, approvals)
    if progress.next_stage is None:
        return PermissionResult.deny(STAGES_COMPLETE)
    if is_system_role(getattr(principal, "system_role", None)):
        return PermissionResult.allow()
    if membership is None:
        return PermissionResult.deny(NOT_A_MEMBER)
    if coerce_enum(ProjectRole, membership.role) is not progress.next_stage:
        return PermissionResult.deny(
            f"Waiting for approval by the {progress.next_stage.value} stage"
        )
    return PermissionResult.allow()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# PUBLIC_INTERFACE
def is_due_for_auto_approval(time_sheet, settings, now: Optional[datetime] = None) -> bool:
    """
    Check whether a submitted sheet has waited long enough to be auto-approved.

    Args:
        time_sheet: Sheet snapshot exposing ``status`` and ``submitted_date``
        settings: The project's approval settings, or None
        now: Reference time, defaults to the current UTC time

    Returns:
        bool: True once ``auto_approve_after_days`` (> 0) have passed since submission
    """
    if settings is None or not settings.auto_approve_after_days:
        return False
    if coerce_enum(TimeSheetStatus, time_sheet.status) is not TimeSheetStatus.SUBMITTED:
        return False
    if time_sheet.submitted_date is None:
        return False
    due_at = _as_utc(time_sheet.submitted_date) + timedelta(days=settings.auto_approve_after_days)
    return due_at <= _as_utc(now or utcnow())
