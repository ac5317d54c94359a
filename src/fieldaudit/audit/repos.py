"""Audit record repository for database operations."""

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fieldaudit.audit.metadata import EntityMetadata
from fieldaudit.audit.models import AuditEventType, AuditRecord
from fieldaudit.audit.renderer import MessageRenderer


class AuditRepository:
    """Repository for AuditRecord database operations.

    Records are returned newest first. Queries go by subject type and id
    only, so history stays available after the subject is deleted.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_id(self, record_id: UUID) -> AuditRecord | None:
        """Get an audit record by ID.

        Args:
            record_id: The record's UUID

        Returns:
            AuditRecord if found, None otherwise
        """
        return self.session.get(AuditRecord, record_id)

    def list_for_subject(
        self,
        subject_type: str,
        subject_id: Any,
        event_type: AuditEventType | None = None,
        limit: int | None = None,
    ) -> Sequence[AuditRecord]:
        """List records for a subject, newest first.

        Args:
            subject_type: Table name of the subject
            subject_id: Primary key of the subject
            event_type: Optional event type filter
            limit: Maximum number of records

        Returns:
            Matching records
        """
        stmt = (
            select(AuditRecord)
            .where(
                AuditRecord.subject_type == subject_type,
                AuditRecord.subject_id == str(subject_id),
            )
            .order_by(AuditRecord.created_at.desc())
        )
        if event_type:
            stmt = stmt.where(AuditRecord.event_type == event_type)
        if limit:
            stmt = stmt.limit(limit)
        return self.session.execute(stmt).scalars().all()

    def count_for_subject(
        self,
        subject_type: str,
        subject_id: Any,
        event_type: AuditEventType | None = None,
    ) -> int:
        """Count records for a subject.

        Args:
            subject_type: Table name of the subject
            subject_id: Primary key of the subject
            event_type: Optional event type filter

        Returns:
            Number of matching records
        """
        stmt = (
            select(func.count())
            .select_from(AuditRecord)
            .where(
                AuditRecord.subject_type == subject_type,
                AuditRecord.subject_id == str(subject_id),
            )
        )
        if event_type:
            stmt = stmt.where(AuditRecord.event_type == event_type)
        return self.session.execute(stmt).scalar_one()

    def list_for_entity(
        self,
        entity: Any,
        event_type: AuditEventType | None = None,
        limit: int | None = None,
    ) -> Sequence[AuditRecord]:
        """List records for a mapped entity instance, newest first."""
        metadata = EntityMetadata.for_subject(entity)
        return self.list_for_subject(
            metadata.subject_type,
            metadata.identity_of(),
            event_type=event_type,
            limit=limit,
        )

    def count(self, event_type: AuditEventType | None = None) -> int:
        """Count all records, optionally of one event type."""
        stmt = select(func.count()).select_from(AuditRecord)
        if event_type:
            stmt = stmt.where(AuditRecord.event_type == event_type)
        return self.session.execute(stmt).scalar_one()

    def backfill_rendered_message(
        self,
        record: AuditRecord,
        renderer: MessageRenderer,
        subject: Any,
    ) -> AuditRecord:
        """Render a record without a message and store the text.

        Records that already have a message are left untouched.

        Args:
            record: The record to fill in
            renderer: Renderer to use
            subject: Subject entity, or its class if it was deleted

        Returns:
            The record
        """
        if record.rendered_message is None:
            record.rendered_message = renderer.render(record, subject)
            self.session.flush()
        return record
