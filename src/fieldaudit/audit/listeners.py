"""Automatic audit capture via SQLAlchemy event listeners.

Provides automatic tracking of model changes for models that
inherit from AuditMixin. Prior values are captured before each flush
and records are added after it; they are written by the next flush,
which session.commit() performs.
"""

from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.orm import Mapper, Session, configure_mappers

from fieldaudit.audit.recorder import AuditRecorder
from fieldaudit.core.database.base import Base


log = structlog.get_logger()

RECORDER_KEY = "fieldaudit.recorder"
PENDING_KEY = "fieldaudit.pending"


def get_recorder(session: Session) -> AuditRecorder:
    """Get the recorder bound to a session, creating a default one.

    Args:
        session: SQLAlchemy session

    Returns:
        The session's recorder
    """
    recorder = session.info.get(RECORDER_KEY)
    if recorder is None:
        recorder = AuditRecorder(session)
        session.info[RECORDER_KEY] = recorder
    return recorder


def set_recorder(session: Session, recorder: AuditRecorder) -> None:
    """Bind a configured recorder to a session."""
    session.info[RECORDER_KEY] = recorder


def _should_audit(obj: Any) -> bool:
    """Check if an object should be audited.

    Args:
        obj: SQLAlchemy model instance

    Returns:
        True if the object has __audit__ = True
    """
    return getattr(obj, "__audit__", False)


def _before_flush(session: Session, _flush_context: Any, _instances: Any) -> None:
    """Snapshot prior values of everything about to be written."""
    recorder = get_recorder(session)
    pending = session.info.setdefault(PENDING_KEY, [])

    # Track new objects
    for obj in session.new:
        if _should_audit(obj):
            recorder.snapshot_before_write(obj)
            pending.append((obj, "insert"))

    # Track modified objects
    for obj in session.dirty:
        if _should_audit(obj) and session.is_modified(obj):
            recorder.snapshot_before_write(obj)
            pending.append((obj, "update"))

    # Track deleted objects
    for obj in session.deleted:
        if _should_audit(obj):
            pending.append((obj, "delete"))


def _after_flush_postexec(session: Session, _flush_context: Any) -> None:
    """Record the writes of the completed flush."""
    pending = session.info.pop(PENDING_KEY, [])
    if not pending:
        return

    recorder = get_recorder(session)
    for obj, operation in pending:
        if operation == "delete":
            recorder.record_deleted(obj)
        else:
            recorder.record_after_write(obj, was_update=operation == "update")


def _discard_pending(session: Session, _previous_transaction: Any) -> None:
    """Drop captured state of a flush that was rolled back."""
    session.info.pop(PENDING_KEY, None)
    recorder = session.info.get(RECORDER_KEY)
    if recorder is not None:
        recorder.discard_snapshots()


def _noop_set(_target: Any, _value: Any, _oldvalue: Any, _initiator: Any) -> None:
    pass


def _enable_active_history(mapper: Mapper[Any], class_: type) -> None:
    """Load prior values of expired attributes before they are replaced."""
    if not getattr(class_, "__audit__", False):
        return
    for prop in mapper.column_attrs:
        attr = getattr(class_, prop.key)
        if not event.contains(attr, "set", _noop_set):
            event.listen(attr, "set", _noop_set, active_history=True)


_SESSION_LISTENERS = (
    ("before_flush", _before_flush),
    ("after_flush_postexec", _after_flush_postexec),
    ("after_soft_rollback", _discard_pending),
)


def setup_audit_listeners() -> None:
    """Set up SQLAlchemy event listeners for automatic auditing.

    Call this during application startup to enable automatic
    audit logging for models with __audit__ = True. Safe to call
    more than once.
    """
    for identifier, fn in _SESSION_LISTENERS:
        if not event.contains(Session, identifier, fn):
            event.listen(Session, identifier, fn)

    if not event.contains(Mapper, "mapper_configured", _enable_active_history):
        event.listen(Mapper, "mapper_configured", _enable_active_history)

    # Mappers configured before setup get active history now
    configure_mappers()
    for mapper in _audited_mappers():
        _enable_active_history(mapper, mapper.class_)

    log.info("audit_listeners_installed")


def remove_audit_listeners() -> None:
    """Remove every listener installed by setup_audit_listeners.

    The active_history flag already set on audited attributes stays on.
    """
    for identifier, fn in _SESSION_LISTENERS:
        if event.contains(Session, identifier, fn):
            event.remove(Session, identifier, fn)

    if event.contains(Mapper, "mapper_configured", _enable_active_history):
        event.remove(Mapper, "mapper_configured", _enable_active_history)

    for mapper in _audited_mappers():
        for prop in mapper.column_attrs:
            attr = getattr(mapper.class_, prop.key)
            if event.contains(attr, "set", _noop_set):
                event.remove(attr, "set", _noop_set)

    log.info("audit_listeners_removed")


def _audited_mappers() -> list[Mapper[Any]]:
    return [m for m in Base.registry.mappers if getattr(m.class_, "__audit__", False)]


__all__ = [
    "PENDING_KEY",
    "RECORDER_KEY",
    "get_recorder",
    "remove_audit_listeners",
    "set_recorder",
    "setup_audit_listeners",
]
