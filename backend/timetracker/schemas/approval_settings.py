"""
Approval settings Pydantic schemas.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from uuid import UUID

from ..database.models import ApprovalMode, ProjectRole


class ApprovalSettingsResponse(BaseModel):
    """Project approval settings response schema."""
    project_id: UUID = Field(..., description="Project ID")
    approval_mode: ApprovalMode = Field(..., description="How sheets get approved")
    auto_approve_after_days: int = Field(..., description="Days after submission before auto-approval, 0 disables it")
    require_all_entries_approved: bool = Field(..., description="Whether every entry must be approved")
    allow_self_approve_no_client: bool = Field(..., description="Whether experts may self-approve without a client")
    approval_stages: Optional[List[ProjectRole]] = Field(None, description="Ordered approver roles for multi-stage mode")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    class Config:
        from_attributes = True


class ApprovalSettingsUpdateRequest(BaseModel):
    """Partial update of project approval settings; omitted fields are left unchanged."""
    approval_mode: Optional[ApprovalMode] = Field(None, description="How sheets get approved")
    auto_approve_after_days: Optional[int] = Field(None, ge=0, description="Days before auto-approval")
    require_all_entries_approved: Optional[bool] = Field(None, description="Whether every entry must be approved")
    allow_self_approve_no_client: Optional[bool] = Field(None, description="Whether experts may self-approve without a client")
    approval_stages: Optional[List[ProjectRole]] = Field(None, description="Ordered approver roles; null clears them")
