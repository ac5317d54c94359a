"""Database layer - session management, base models, and mixins."""

from fieldaudit.core.database.base import AuditMixin, Base, TimestampMixin, UUIDMixin
from fieldaudit.core.database.session import (
    create_db_engine,
    get_engine,
    session_factory,
    session_scope,
)
from fieldaudit.core.database.types import SecretString


__all__ = [
    "AuditMixin",
    "Base",
    "SecretString",
    "TimestampMixin",
    "UUIDMixin",
    "create_db_engine",
    "get_engine",
    "session_factory",
    "session_scope",
]
