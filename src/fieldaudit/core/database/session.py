"""Database engine and session management."""

from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fieldaudit.config import Settings, get_settings


def create_db_engine(settings: Settings | None = None) -> Engine:
    """Create an engine for the configured database.

    In-memory SQLite shares one connection across the pool so that
    the schema survives between sessions.

    Args:
        settings: Settings to use (defaults to the cached settings)

    Returns:
        A new SQLAlchemy engine
    """
    settings = settings or get_settings()
    url = settings.database_url

    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=settings.database_echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        url,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


@lru_cache
def get_engine() -> Engine:
    """Get the cached engine for the configured database."""
    return create_db_engine()


# Session factory; bind per call or via session_scope()
session_factory = sessionmaker(
    expire_on_commit=False,
)


@contextmanager
def session_scope(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Provide a transactional session.

    Commits on success and rolls back on error. Audit records queued
    by the session listeners are written by the final commit.

    Usage:
        with session_scope() as session:
            session.add(invoice)
    """
    session = session_factory(bind=engine or get_engine())
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
