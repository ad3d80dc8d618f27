"""
SQLAlchemy database models for the time sheet review service.

Defines the tables the approval workflow reads from and writes to: users,
organisations, projects and their memberships, time entries, time sheets and
the sheet/entry link table, per-project approval settings, stage approvals and
entry messages.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Date, Text, Float,
    ForeignKey, JSON, UniqueConstraint, Index, Enum, CheckConstraint, Uuid
)
from sqlalchemy.orm import declarative_base, relationship
import enum

Base = declarative_base()


class SystemRole(str, enum.Enum):
    """Platform-wide roles, independent of any project."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"


class ProjectRole(str, enum.Enum):
    """Roles a user can hold within a single project."""
    OWNER = "owner"
    EXPERT = "expert"
    REVIEWER = "reviewer"
    CLIENT = "client"
    VIEWER = "viewer"


class EntryStatus(str, enum.Enum):
    """Review state of a single time entry."""
    PENDING = "pending"
    QUESTIONED = "questioned"
    APPROVED = "approved"


class TimeSheetStatus(str, enum.Enum):
    """Submission lifecycle of a time sheet."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalMode(str, enum.Enum):
    """How time sheets of a project get approved."""
    REQUIRED = "required"
    OPTIONAL = "optional"
    SELF_APPROVE = "self_approve"
    MULTI_STAGE = "multi_stage"


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class User(Base):
    """Platform user. ``system_role`` is null for regular users."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    handle = Column(String(100), nullable=True)
    system_role = Column(Enum(SystemRole), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    memberships = relationship("ProjectMember", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"


class Organisation(Base):
    """Organisation owning projects, entries and sheets."""
    __tablename__ = "organisations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    projects = relationship("Project", back_populates="organisation", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Organisation(id={self.id}, name='{self.name}')>"


class Project(Base):
    """Project grouping members, entries and sheets."""
    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organisation_id = Column(Uuid, ForeignKey("organisations.id"), nullable=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    organisation = relationship("Organisation", back_populates="projects")
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    approval_settings = relationship(
        "ProjectApprovalSettings", back_populates="project", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"


class ProjectMember(Base):
    """A user's role within one project."""
    __tablename__ = "project_members"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(ProjectRole), nullable=False, default=ProjectRole.VIEWER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    project = relationship("Project", back_populates="members")
    user = relationship("User", back_populates="memberships")

    # Constraints
    __table_args__ = (
        UniqueConstraint('project_id', 'user_id', name='uq_project_member'),
        Index('idx_project_member_user', 'user_id'),
    )

    def __repr__(self):
        return f"<ProjectMember(project_id={self.project_id}, user_id={self.user_id}, role='{self.role}')>"


class TimeEntry(Base):
    """A unit of logged work and its review status."""
    __tablename__ = "time_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id"), nullable=True)
    organisation_id = Column(Uuid, ForeignKey("organisations.id"), nullable=True)
    title = Column(String(255), nullable=False)
    hours = Column(Float, nullable=False)
    date = Column(Date, nullable=False)
    status = Column(Enum(EntryStatus), nullable=False, default=EntryStatus.PENDING)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)
    status_changed_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    # Non-null exactly while status is approved, except after a sheet-level approval
    approved_date = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    last_edited_at = Column(DateTime(timezone=True), nullable=True)
    version_id = Column(Integer, nullable=False)

    # Relationships
    sheet_links = relationship("TimeSheetEntry", back_populates="time_entry", cascade="all, delete-orphan")
    messages = relationship("EntryMessage", back_populates="time_entry", cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        CheckConstraint('hours > 0', name='ck_time_entry_hours_positive'),
        Index('idx_time_entry_project', 'project_id'),
        Index('idx_time_entry_status', 'status'),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<TimeEntry(id={self.id}, status='{self.status}', project_id={self.project_id})>"


class TimeSheet(Base):
    """Aggregation of time entries submitted together for approval."""
    __tablename__ = "time_sheets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id"), nullable=True)
    organisation_id = Column(Uuid, ForeignKey("organisations.id"), nullable=True)
    account_id = Column(String(64), nullable=True)
    title = Column(String(255), nullable=False)
    status = Column(Enum(TimeSheetStatus), nullable=False, default=TimeSheetStatus.DRAFT)
    submitted_date = Column(DateTime(timezone=True), nullable=True)
    approved_date = Column(DateTime(timezone=True), nullable=True)
    rejected_date = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
    version_id = Column(Integer, nullable=False)

    # Relationships
    entry_links = relationship("TimeSheetEntry", back_populates="time_sheet", cascade="all, delete-orphan")
    stage_approvals = relationship(
        "TimeSheetApproval", back_populates="time_sheet", cascade="all, delete-orphan",
        order_by="TimeSheetApproval.approved_at"
    )

    # Constraints
    __table_args__ = (
        Index('idx_time_sheet_project', 'project_id'),
        Index('idx_time_sheet_status', 'status'),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<TimeSheet(id={self.id}, status='{self.status}', project_id={self.project_id})>"


class TimeSheetEntry(Base):
    """Link between a sheet and an entry, carrying the sheet-scoped approval mirror."""
    __tablename__ = "time_sheet_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    time_sheet_id = Column(Uuid, ForeignKey("time_sheets.id", ondelete="CASCADE"), nullable=False)
    time_entry_id = Column(Uuid, ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False)
    approved_in_sheet = Column(Boolean, nullable=False, default=False)
    approved_in_sheet_at = Column(DateTime(timezone=True), nullable=True)
    approved_in_sheet_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    time_sheet = relationship("TimeSheet", back_populates="entry_links")
    time_entry = relationship("TimeEntry", back_populates="sheet_links")

    # Constraints
    __table_args__ = (
        UniqueConstraint('time_sheet_id', 'time_entry_id', name='uq_time_sheet_entry'),
    )

    def __repr__(self):
        return f"<TimeSheetEntry(time_sheet_id={self.time_sheet_id}, time_entry_id={self.time_entry_id})>"


class TimeSheetApproval(Base):
    """One completed stage of a multi-stage sheet approval."""
    __tablename__ = "time_sheet_approvals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    time_sheet_id = Column(Uuid, ForeignKey("time_sheets.id", ondelete="CASCADE"), nullable=False)
    stage = Column(Enum(ProjectRole), nullable=False)
    approved_by = Column(Uuid, ForeignKey("users.id"), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    notes = Column(Text, nullable=True)

    # Relationships
    time_sheet = relationship("TimeSheet", back_populates="stage_approvals")

    # Constraints
    __table_args__ = (
        UniqueConstraint('time_sheet_id', 'stage', name='uq_time_sheet_approval_stage'),
    )

    def __repr__(self):
        return f"<TimeSheetApproval(time_sheet_id={self.time_sheet_id}, stage='{self.stage}')>"


class ProjectApprovalSettings(Base):
    """Per-project approval configuration, created lazily with defaults."""
    __tablename__ = "project_approval_settings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(Uuid, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True)
    approval_mode = Column(Enum(ApprovalMode), nullable=False, default=ApprovalMode.REQUIRED)
    auto_approve_after_days = Column(Integer, nullable=False, default=0)
    require_all_entries_approved = Column(Boolean, nullable=False, default=True)
    allow_self_approve_no_client = Column(Boolean, nullable=False, default=False)
    approval_stages = Column(JSON, nullable=True)  # Ordered list of project role values
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="approval_settings")

    # Constraints
    __table_args__ = (
        CheckConstraint('auto_approve_after_days >= 0', name='ck_auto_approve_days_non_negative'),
    )

    def __repr__(self):
        return f"<ProjectApprovalSettings(project_id={self.project_id}, mode='{self.approval_mode}')>"


class EntryMessage(Base):
    """Threaded comment on a time entry, optionally tagging a status change."""
    __tablename__ = "entry_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    time_entry_id = Column(Uuid, ForeignKey("time_entries.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    parent_message_id = Column(Uuid, ForeignKey("entry_messages.id"), nullable=True)
    status_change = Column(Enum(EntryStatus), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    time_entry = relationship("TimeEntry", back_populates="messages")

    # Constraints
    __table_args__ = (
        Index('idx_entry_message_entry_created', 'time_entry_id', 'created_at'),
    )

    def __repr__(self):
        return f"<EntryMessage(id={self.id}, time_entry_id={self.time_entry_id})>"
