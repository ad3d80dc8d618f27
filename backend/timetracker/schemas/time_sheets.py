"""
Time sheet workflow Pydantic schemas.

Defines request/response models for time sheets, their entries and the
approval decisions shown alongside them.
"""
from datetime import date as DateType, datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from uuid import UUID

from ..database.models import EntryStatus, TimeSheetStatus
from ..workflow.approval_settings import ApprovalProgress
from ..workflow.results import PermissionResult
from ..workflow.time_sheet import SheetApprovalCheck


class TimeEntryResponse(BaseModel):
    """Time entry response schema."""
    id: UUID = Field(..., description="Time entry ID")
    project_id: Optional[UUID] = Field(None, description="Project ID")
    organisation_id: Optional[UUID] = Field(None, description="Organisation ID")
    title: str = Field(..., description="Work title")
    hours: float = Field(..., description="Hours worked")
    date: DateType = Field(..., description="Day the work was done")
    status: EntryStatus = Field(..., description="Review status")
    status_changed_at: Optional[datetime] = Field(None, description="Last status change")
    status_changed_by: Optional[UUID] = Field(None, description="User who last changed the status")
    approved_date: Optional[datetime] = Field(None, description="Approval timestamp")
    created_by: Optional[UUID] = Field(None, description="Author of the entry")

    class Config:
        from_attributes = True


class TimeSheetEntryResponse(BaseModel):
    """An entry as it appears within one sheet."""
    entry: TimeEntryResponse = Field(..., description="The time entry")
    approved_in_sheet: bool = Field(..., description="Whether the entry is approved in this sheet")
    approved_in_sheet_at: Optional[datetime] = Field(None, description="When it was approved in this sheet")
    approved_in_sheet_by: Optional[UUID] = Field(None, description="Who approved it in this sheet")


class TimeSheetResponse(BaseModel):
    """Time sheet response schema."""
    id: UUID = Field(..., description="Time sheet ID")
    project_id: Optional[UUID] = Field(None, description="Project ID")
    organisation_id: Optional[UUID] = Field(None, description="Organisation ID")
    account_id: Optional[str] = Field(None, description="Account ID")
    title: str = Field(..., description="Sheet title")
    status: TimeSheetStatus = Field(..., description="Workflow status")
    submitted_date: Optional[datetime] = Field(None, description="Submission timestamp")
    approved_date: Optional[datetime] = Field(None, description="Approval timestamp")
    rejected_date: Optional[datetime] = Field(None, description="Rejection timestamp")
    rejection_reason: Optional[str] = Field(None, description="Why the sheet was rejected")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    class Config:
        from_attributes = True


class TimeSheetPermissions(BaseModel):
    """Workflow decisions for the current user."""
    approve: PermissionResult = Field(..., description="Approve decision, including entry eligibility")
    reject: PermissionResult = Field(..., description="Reject decision")
    revert: PermissionResult = Field(..., description="Revert-to-draft decision")


class TimeSheetDetailResponse(BaseModel):
    """Time sheet with its entries and the current user's workflow options."""
    time_sheet: TimeSheetResponse = Field(..., description="The time sheet")
    entries: List[TimeSheetEntryResponse] = Field(..., description="Entries in the sheet")
    total_hours: float = Field(..., description="Sum of entry hours")
    eligibility: SheetApprovalCheck = Field(..., description="Entry-composition approval check")
    permissions: TimeSheetPermissions = Field(..., description="Workflow decisions")
    has_client_interaction: bool = Field(..., description="Whether a client or reviewer has acted")
    approval_progress: ApprovalProgress = Field(..., description="Multi-stage approval progress")


class RejectTimeSheetRequest(BaseModel):
    """Time sheet rejection request schema."""
    reason: Optional[str] = Field(None, max_length=2000, description="Reason shown to the expert")


class ApproveTimeSheetRequest(BaseModel):
    """Time sheet approval request schema."""
    notes: Optional[str] = Field(None, max_length=2000, description="Notes recorded with a stage approval")


class EntryActionRequest(BaseModel):
    """Entry approve/question/resolve request schema."""
    message: Optional[str] = Field(None, max_length=5000, description="Optional message posted with the action")
