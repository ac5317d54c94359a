"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from fieldaudit.audit import AuditRecorder, AuditRepository, set_recorder, setup_audit_listeners
from fieldaudit.config import Settings
from fieldaudit.core.database import Base
from tests.models import Category, Document, Email, Invoice, QuietInvoice, Tag, User  # noqa: F401


@pytest.fixture(scope="session", autouse=True)
def audit_listeners() -> None:
    """Install the session listeners once for the whole run."""
    setup_audit_listeners()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, no_audit=False, render_on_write=True)


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Create an in-memory SQLite engine with a fresh schema.

    Yields:
        The engine
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def make_session(engine: Engine) -> Generator[Callable[[Settings], Session], None, None]:
    """Open sessions whose recorder uses the given settings.

    Yields:
        Factory taking Settings and returning a new session
    """
    sessions: list[Session] = []

    def factory(settings: Settings) -> Session:
        session = Session(engine, expire_on_commit=False)
        set_recorder(session, AuditRecorder(session, settings=settings))
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.rollback()
        session.close()


@pytest.fixture
def db(make_session: Callable[[Settings], Session], settings: Settings) -> Session:
    """Session with automatic auditing."""
    return make_session(settings)


@pytest.fixture
def repo(db: Session) -> AuditRepository:
    """Audit repository over the test session."""
    return AuditRepository(db)


@pytest.fixture
def user(db: Session) -> User:
    """A persisted user."""
    user = User(name="User One")
    db.add(user)
    db.commit()
    return user
