"""
Pytest configuration and fixtures for backend testing.

Provides an in-memory database, a FastAPI test client bound to it, a factory
for seeding projects, rosters, entries and sheets, and bearer-token headers.
"""
import pytest
from datetime import date
from types import SimpleNamespace
from typing import Callable, Dict, Generator, Iterable
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..api.main import app
from ..auth.jwt_handler import JWTHandler
from ..database.connection import create_tables, drop_tables, get_db
from ..database.models import (
    EntryMessage, EntryStatus, Project, ProjectMember, ProjectRole, SystemRole,
    TimeEntry, TimeSheet, TimeSheetEntry, TimeSheetStatus, User
)


@pytest.fixture(scope="function")
def engine():
    """Create an in-memory SQLite engine with all tables."""
    test_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    create_tables(bind=test_engine)
    yield test_engine
    drop_tables(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a database session for seeding and assertions."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """Create FastAPI test client with database dependency override."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class WorkflowFactory:
    """Seeds workflow rows; every helper commits."""

    def __init__(self, db: Session):
        self.db = db
        self._counter = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, handle: str = None, system_role: SystemRole = None) -> User:
        self._counter += 1
        handle = handle or f"user{self._counter}"
        return self._save(User(email=f"{handle}@example.com", handle=handle, system_role=system_role))

    def project(self, name: str = "Website relaunch") -> Project:
        return self._save(Project(name=name))

    def member(self, project: Project, user: User, role: ProjectRole) -> ProjectMember:
        return self._save(ProjectMember(project_id=project.id, user_id=user.id, role=role))

    def entry(self, project: Project, created_by: User, hours: float = 2.0,
              status: EntryStatus = EntryStatus.PENDING, title: str = "Implement feature") -> TimeEntry:
        return self._save(TimeEntry(
            project_id=project.id,
            title=title,
            hours=hours,
            date=date(2024, 1, 15),
            status=status,
            created_by=created_by.id
        ))

    def sheet(self, project: Project, entries: Iterable[TimeEntry] = (),
              status: TimeSheetStatus = TimeSheetStatus.SUBMITTED, created_by: User = None) -> TimeSheet:
        time_sheet = TimeSheet(
            project_id=project.id,
            title="January",
            status=status,
            created_by=created_by.id if created_by else None
        )
        for entry in entries:
            time_sheet.entry_links.append(TimeSheetEntry(time_entry_id=entry.id))
        return self._save(time_sheet)

    def message(self, entry: TimeEntry, author: User, content: str = "Looks fine") -> EntryMessage:
        return self._save(EntryMessage(time_entry_id=entry.id, author_id=author.id, content=content))

    def team(self, with_client: bool = True) -> SimpleNamespace:
        """A project with one member per role, plus an outsider and a system admin."""
        project = self.project()
        team = SimpleNamespace(project=project)
        roles = [ProjectRole.OWNER, ProjectRole.EXPERT, ProjectRole.REVIEWER, ProjectRole.VIEWER]
        if with_client:
            roles.append(ProjectRole.CLIENT)
        for role in roles:
            user = self.user(handle=role.value)
            self.member(project, user, role)
            setattr(team, role.value, user)
        team.outsider = self.user(handle="outsider")
        team.admin = self.user(handle="admin", system_role=SystemRole.ADMIN)
        return team


@pytest.fixture
def factory(db_session) -> WorkflowFactory:
    """Provide the workflow seeding factory."""
    return WorkflowFactory(db_session)


@pytest.fixture
def team(factory) -> SimpleNamespace:
    """Project team including a client."""
    return factory.team(with_client=True)


@pytest.fixture
def team_without_client(factory) -> SimpleNamespace:
    """Project team with no client member."""
    return factory.team(with_client=False)


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """Build bearer headers for a seeded user."""
    def _headers(user: User) -> Dict[str, str]:
        system_role = user.system_role.value if user.system_role else None
        token = JWTHandler.create_user_token(user.id, user.email, system_role)
        return {"Authorization": f"Bearer {token}"}
    return _headers
