"""
Authentication dependencies for FastAPI endpoints.

Provides the current principal, decoded from the bearer token, and helpers
for resolving that principal's membership of a project.
"""
import logging
from typing import List, Optional, Tuple
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from uuid import UUID

from ..database.models import ProjectMember, SystemRole
from ..database.repositories import find_membership, get_roster
from .jwt_handler import JWTHandler
from .permissions import can_on_project, coerce_enum

logger = logging.getLogger(__name__)

security = HTTPBearer()


class CurrentUser:
    """Current user information from JWT token."""

    def __init__(self, id: UUID, email: Optional[str], system_role: Optional[str] = None):
        self.id = id
        self.email = email
        self.system_role = coerce_enum(SystemRole, system_role)

    def __repr__(self):
        return f"<CurrentUser(id={self.id}, system_role={self.system_role})>"


# PUBLIC_INTERFACE
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CurrentUser:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        CurrentUser: Current user information

    Raises:
        HTTPException: If token is invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = JWTHandler.verify_token(credentials.credentials)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        return CurrentUser(
            id=UUID(user_id),
            email=payload.get("email"),
            system_role=payload.get("system_role")
        )
    except ValueError:
        raise credentials_exception


def load_project_context(
    db: Session, project_id, current_user: CurrentUser
) -> Tuple[List[ProjectMember], Optional[ProjectMember]]:
    """
    Load a project's roster and the current user's membership in it.

    Args:
        db: Database session
        project_id: Project ID, may be None for sheets outside a project
        current_user: Current authenticated user

    Returns:
        Tuple[List[ProjectMember], Optional[ProjectMember]]: Roster and membership
    """
    roster = get_roster(db, project_id)
    return roster, find_membership(roster, current_user.id)


def require_project_permission(current_user: CurrentUser, membership, permission):
    """
    Raise 403 unless the user holds ``permission`` on the project.

    Raises:
        HTTPException: If the permission is missing
    """
    if not can_on_project(current_user, membership, permission):
        logger.info("User %s lacks %s", current_user.id, permission.value)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions"
        )
