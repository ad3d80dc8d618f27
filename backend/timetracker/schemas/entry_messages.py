"""
Entry message Pydantic schemas.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from uuid import UUID

from ..database.models import EntryStatus


class EntryMessageCreateRequest(BaseModel):
    """Entry message creation request schema."""
    content: str = Field(..., min_length=1, max_length=5000, description="Message text")
    parent_message_id: Optional[UUID] = Field(None, description="Message this one replies to")
    status_change: Optional[EntryStatus] = Field(None, description="Status applied to the entry with this message")


class EntryMessageResponse(BaseModel):
    """Entry message response schema."""
    id: UUID = Field(..., description="Message ID")
    time_entry_id: UUID = Field(..., description="Time entry ID")
    author_id: UUID = Field(..., description="Author ID")
    content: str = Field(..., description="Message text")
    parent_message_id: Optional[UUID] = Field(None, description="Parent message ID")
    status_change: Optional[EntryStatus] = Field(None, description="Status applied with this message")
    created_at: datetime = Field(..., description="Creation timestamp")

    class Config:
        from_attributes = True
