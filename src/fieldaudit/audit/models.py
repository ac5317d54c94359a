"""Audit record database model.

Stores one row per audit event: a subject entity was created, deleted,
had one field changed, or a custom event was attached to it.
"""

import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text, event, inspect
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fieldaudit.core.constants import (
    MAX_ACTOR_ID_LENGTH,
    MAX_ACTOR_NAME_LENGTH,
    MAX_EVENT_NAME_LENGTH,
    MAX_EVENT_TYPE_LENGTH,
    MAX_FIELD_IDENT_LENGTH,
    MAX_SUBJECT_ID_LENGTH,
    MAX_SUBJECT_TYPE_LENGTH,
)
from fieldaudit.core.database.base import Base, UUIDMixin
from fieldaudit.core.errors import ImmutableAuditRecordError


class AuditEventType(str, Enum):
    """Kind of audit event."""

    CREATED = "CREATED"
    DELETED = "DELETED"
    FIELD_CHANGED = "FIELD_CHANGED"
    CUSTOM = "CUSTOM"


_last_timestamp: datetime | None = None
_timestamp_lock = threading.Lock()


def next_timestamp() -> datetime:
    """Return the current UTC time, strictly later than the previous call.

    Records written within the same microsecond still sort newest-first
    in the order they were created.
    """
    global _last_timestamp

    with _timestamp_lock:
        now = datetime.now(timezone.utc)
        if _last_timestamp is not None and now <= _last_timestamp:
            now = _last_timestamp + timedelta(microseconds=1)
        _last_timestamp = now
        return now


class AuditRecord(Base, UUIDMixin):
    """A single audit event for a subject entity.

    The subject is referenced weakly by type and id, so records
    outlive the entity they describe.

    Attributes:
        subject_type: Table name of the audited entity
        subject_id: Primary key of the audited entity, as text
        event_type: CREATED, DELETED, FIELD_CHANGED or CUSTOM
        event_name: Name of a CUSTOM event (e.g. ADD_TAG)
        field_ident: Changed field, only for FIELD_CHANGED
        change_data: {field_type, old_value, new_value} for FIELD_CHANGED,
            an open mapping for other events
        actor_id: Who triggered the event (nullable for system actions)
        actor_name: Display name of the actor at write time
        rendered_message: Human-readable text, if rendered
        created_at: When the event was recorded
    """

    __tablename__ = "audit_records"
    __table_args__ = (
        Index("ix_audit_records_subject", "subject_type", "subject_id"),
    )

    # What was audited
    subject_type: Mapped[str] = mapped_column(
        String(MAX_SUBJECT_TYPE_LENGTH),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(
        String(MAX_SUBJECT_ID_LENGTH),
        nullable=False,
        index=True,
    )

    # What happened
    event_type: Mapped[AuditEventType] = mapped_column(
        SAEnum(AuditEventType, native_enum=False, length=MAX_EVENT_TYPE_LENGTH),
        nullable=False,
        index=True,
    )
    event_name: Mapped[str | None] = mapped_column(
        String(MAX_EVENT_NAME_LENGTH),
        nullable=True,
        index=True,
    )
    field_ident: Mapped[str | None] = mapped_column(
        String(MAX_FIELD_IDENT_LENGTH),
        nullable=True,
    )

    # Data
    change_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )

    # Who did it
    actor_id: Mapped[str | None] = mapped_column(
        String(MAX_ACTOR_ID_LENGTH),
        nullable=True,
        index=True,
    )
    actor_name: Mapped[str | None] = mapped_column(
        String(MAX_ACTOR_NAME_LENGTH),
        nullable=True,
    )

    rendered_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=next_timestamp,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AuditRecord(id={self.id}, event_type={self.event_type}, "
            f"subject_type={self.subject_type}, subject_id={self.subject_id})>"
        )


# Columns that may still be written after the record is persisted
_BACKFILL_COLUMNS = frozenset({"rendered_message"})


@event.listens_for(AuditRecord, "before_update")
def _prevent_modification(_mapper: Any, _connection: Any, target: AuditRecord) -> None:
    """Reject updates to anything but the rendered message."""
    state = inspect(target)
    changed = [
        attr.key
        for attr in state.attrs
        if attr.key not in _BACKFILL_COLUMNS and attr.history.has_changes()
    ]
    if changed:
        raise ImmutableAuditRecordError(
            details={"record_id": str(target.id), "fields": changed}
        )
