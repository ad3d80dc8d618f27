"""
Decision values returned by every workflow check.
"""
from typing import Optional
from pydantic import BaseModel, Field


class PermissionResult(BaseModel):
    """
    Outcome of a permission or workflow check.

    A denial is an ordinary result, not an error. ``reason`` is meant for
    display only; callers branch on ``allowed``.
    """
    allowed: bool = Field(..., description="Whether the action is permitted")
    reason: Optional[str] = Field(None, description="Human-readable explanation of a denial")

    @classmethod
    def allow(cls) -> "PermissionResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "PermissionResult":
        return cls(allowed=False, reason=reason)
