"""Audit recording.

The recorder turns lifecycle events and detected field changes into
AuditRecord rows added to the session. Entities integrate through a
two-phase contract:

    recorder.snapshot_before_write(invoice)
    session.flush()
    recorder.record_after_write(invoice, was_update=True)

The session listeners in fieldaudit.audit.listeners make these calls
automatically for every AuditMixin model.
"""

from collections.abc import Callable
from typing import Any

import structlog
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from fieldaudit.audit.classification import Classification, FieldClassifier
from fieldaudit.audit.context import Actor, get_current_actor
from fieldaudit.audit.detector import ChangeDetector, DetectedChange
from fieldaudit.audit.metadata import (
    EntityMetadata,
    dirty_snapshot,
    type_name,
    value_pair,
)
from fieldaudit.audit.models import AuditEventType, AuditRecord, next_timestamp
from fieldaudit.audit.renderer import MessageRenderer
from fieldaudit.audit.serializers import encode_temporal, to_json_compatible
from fieldaudit.config import Settings, get_settings
from fieldaudit.core.errors import AuditConfigurationError


log = structlog.get_logger()

ActorGetter = Callable[[], Actor | None]


class AuditRecorder:
    """Write audit records for one session.

    Args:
        session: Session the records are added to
        settings: Settings (suppression, comparison and render options)
        actor_getter: Returns the acting user, or None for system changes
        classifier: Field classifier shared with detection and rendering
        renderer: Renderer used when render_on_write is enabled
    """

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        actor_getter: ActorGetter | None = None,
        classifier: FieldClassifier | None = None,
        renderer: MessageRenderer | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.actor_getter = actor_getter or get_current_actor
        self.classifier = classifier or FieldClassifier()
        self.detector = ChangeDetector(
            classifier=self.classifier,
            loose_string_comparison=self.settings.loose_string_comparison,
        )
        self.renderer = renderer or MessageRenderer(
            session=session,
            settings=self.settings,
            classifier=self.classifier,
        )
        self._snapshots: dict[int, dict[str, Any]] = {}

    # Suppression

    def is_suppressed(self, entity: Any) -> bool:
        """Check the global and per-entity no-audit switches.

        Args:
            entity: The subject entity

        Returns:
            True if either switch is on
        """
        if self.settings.no_audit:
            return True
        return bool(getattr(entity, "__no_audit__", False))

    def _suppressed(self, entity: Any, operation: str) -> bool:
        if not self.is_suppressed(entity):
            return False
        log.debug(
            "audit_suppressed",
            operation=operation,
            model=type(entity).__name__,
        )
        return True

    # Two-phase lifecycle

    def snapshot_before_write(self, entity: Any) -> dict[str, Any]:
        """Capture prior values before the entity is written.

        For a new entity every field's prior value is None.

        Args:
            entity: Entity about to be inserted or updated

        Returns:
            The snapshot (empty when auditing is suppressed)
        """
        if self._suppressed(entity, "snapshot_before_write"):
            return {}

        state = inspect(entity)
        if state.persistent or state.deleted:
            snapshot = dirty_snapshot(entity)
        else:
            snapshot = dict.fromkeys(EntityMetadata.for_subject(entity).field_names())

        self._snapshots[id(entity)] = snapshot
        return snapshot

    def record_after_write(self, entity: Any, was_update: bool) -> list[AuditRecord]:
        """Record the outcome of a write.

        A new entity yields a CREATED record followed by one record per
        initially set field; an update yields one record per changed field.

        Args:
            entity: The written entity
            was_update: False if the entity was inserted

        Returns:
            Records added to the session

        Raises:
            AuditConfigurationError: If no snapshot was taken first
        """
        if self._suppressed(entity, "record_after_write"):
            self._snapshots.pop(id(entity), None)
            return []

        snapshot = self._snapshots.pop(id(entity), None)
        if snapshot is None:
            raise AuditConfigurationError(
                "record_after_write called without snapshot_before_write",
                details={"model": type(entity).__name__},
            )

        records: list[AuditRecord] = []
        if not was_update:
            created = self._build_record(entity, AuditEventType.CREATED)
            records.append(self._persist(created, entity))
        records.extend(self._record_field_changes(entity, snapshot))
        return records

    def discard_snapshots(self) -> None:
        """Forget snapshots of writes that did not complete."""
        self._snapshots.clear()

    # Lifecycle events

    def record_created(self, entity: Any) -> list[AuditRecord]:
        """Record that an entity was created."""
        if self._suppressed(entity, "record_created"):
            return []
        return [self._persist(self._build_record(entity, AuditEventType.CREATED), entity)]

    def record_deleted(self, entity: Any) -> list[AuditRecord]:
        """Record that an entity was deleted."""
        if self._suppressed(entity, "record_deleted"):
            return []
        self._snapshots.pop(id(entity), None)
        return [self._persist(self._build_record(entity, AuditEventType.DELETED), entity)]

    def record_field_changes(
        self,
        entity: Any,
        prior_values: dict[str, Any],
    ) -> list[AuditRecord]:
        """Record one FIELD_CHANGED record per changed field.

        Args:
            entity: Entity in its state after the write
            prior_values: Field name to value before the write

        Returns:
            Records added to the session
        """
        if self._suppressed(entity, "record_field_changes"):
            return []
        return self._record_field_changes(entity, prior_values)

    def _record_field_changes(
        self,
        entity: Any,
        prior_values: dict[str, Any],
    ) -> list[AuditRecord]:
        records = []
        metadata = EntityMetadata.for_subject(entity)
        for change in self.detector.detect_changes(prior_values, entity):
            record = self._build_record(
                entity,
                AuditEventType.FIELD_CHANGED,
                field_ident=change.field_name,
                change_data=self._encode_change(metadata, change),
            )
            records.append(self._persist(record, entity))
        return records

    def _encode_change(self, metadata: EntityMetadata, change: DetectedChange) -> dict[str, Any]:
        kind = change.classification.kind
        field_type = type_name(metadata.field(change.field_name).type_)

        if kind is Classification.RECORD_NO_VALUE:
            old_value, new_value = None, None
        elif kind is Classification.RECORD_TEMPORAL:
            old_value = encode_temporal(change.prior_value)
            new_value = encode_temporal(change.current_value)
        else:
            old_value = to_json_compatible(change.prior_value)
            new_value = to_json_compatible(change.current_value)

        return {
            "field_type": field_type,
            "old_value": old_value,
            "new_value": new_value,
        }

    # Custom events

    def record_custom_event(
        self,
        entity: Any,
        event_name: str,
        data: dict[str, Any] | None = None,
    ) -> list[AuditRecord]:
        """Record an arbitrary named event.

        Args:
            entity: The subject entity
            event_name: Event name (e.g. "INVOICE_SENT")
            data: Free-form payload

        Returns:
            Records added to the session
        """
        if self._suppressed(entity, "record_custom_event"):
            return []
        record = self._build_record(
            entity,
            AuditEventType.CUSTOM,
            event_name=event_name,
            change_data=to_json_compatible(data or {}),
        )
        return [self._persist(record, entity)]

    def record_link_added(
        self,
        entity: Any,
        linked: Any,
        title_field: str | None = None,
    ) -> list[AuditRecord]:
        """Record that a many-to-many partner was linked (ADD_<MODEL>)."""
        return self._record_link("ADD", entity, linked, title_field)

    def record_link_removed(
        self,
        entity: Any,
        linked: Any,
        title_field: str | None = None,
    ) -> list[AuditRecord]:
        """Record that a many-to-many partner was unlinked (REMOVE_<MODEL>)."""
        return self._record_link("REMOVE", entity, linked, title_field)

    def _record_link(
        self,
        action: str,
        entity: Any,
        linked: Any,
        title_field: str | None,
    ) -> list[AuditRecord]:
        if self._suppressed(entity, f"record_link_{action.lower()}"):
            return []

        linked_meta = EntityMetadata.for_subject(linked)
        title = linked_meta.field(title_field or linked_meta.title_field).name
        data = {
            "kind": "link",
            "action": action,
            "id": linked_meta.identity_of(),
            "name": getattr(linked, title),
            "model": linked_meta.qualified_name,
            "caption": linked_meta.model_caption,
        }
        record = self._build_record(
            entity,
            AuditEventType.CUSTOM,
            event_name=f"{action}_{type(linked).__name__.upper()}",
            change_data=to_json_compatible(data),
        )
        return [self._persist(record, entity)]

    def record_secondary_change(
        self,
        action: str,
        entity: Any,
        secondary: Any,
        field: str = "value",
        subject_type: str | None = None,
        subject_id: Any = None,
    ) -> list[AuditRecord]:
        """Record a change to a satellite model such as an email address.

        Nothing is written unless the satellite has a value or the field
        changed. Secondaries may provide ``audit_value_pair(field)``
        returning (prior, current); otherwise attribute history is used.

        Args:
            action: ADD, CHANGE or REMOVE
            entity: The owning entity
            secondary: The satellite entity
            field: Satellite field holding its value
            subject_type: Attach the record to this subject type instead
            subject_id: Attach the record to this subject id instead
                (only used together with subject_type)

        Returns:
            Records added to the session
        """
        if self._suppressed(entity, "record_secondary_change"):
            return []

        pair = getattr(secondary, "audit_value_pair", None)
        if callable(pair):
            prior, current = pair(field)
            changed = prior != current
        else:
            prior, current, changed = value_pair(secondary, field)

        if not current and not changed:
            return []

        action = action.upper()
        secondary_meta = EntityMetadata.for_subject(secondary)
        data = {
            "kind": "secondary",
            "action": action,
            "old_value": prior if changed and prior is not None else "",
            "new_value": current,
            "model": secondary_meta.qualified_name,
            "caption": secondary_meta.model_caption,
        }
        record = self._build_record(
            entity,
            AuditEventType.CUSTOM,
            event_name=f"{action}_{type(secondary).__name__.upper()}",
            change_data=to_json_compatible(data),
        )
        if subject_type and subject_id is not None:
            record.subject_type = subject_type
            record.subject_id = str(subject_id)
        return [self._persist(record, entity)]

    # Internals

    def _build_record(
        self,
        entity: Any,
        event_type: AuditEventType,
        event_name: str | None = None,
        field_ident: str | None = None,
        change_data: dict[str, Any] | None = None,
    ) -> AuditRecord:
        metadata = EntityMetadata.for_subject(entity)
        actor = self.actor_getter()

        return AuditRecord(
            subject_type=metadata.subject_type,
            subject_id=metadata.identity_of(),
            event_type=event_type,
            event_name=event_name,
            field_ident=field_ident,
            change_data=change_data if change_data is not None else {},
            actor_id=str(actor.id) if actor is not None and actor.id is not None else None,
            actor_name=actor.name if actor is not None else None,
            created_at=next_timestamp(),
        )

    def _persist(self, record: AuditRecord, entity: Any) -> AuditRecord:
        if self.settings.render_on_write:
            record.rendered_message = self.renderer.render(record, entity)

        self.session.add(record)

        log.info(
            "audit_record_created",
            event_type=record.event_type.value,
            event_name=record.event_name,
            subject_type=record.subject_type,
            subject_id=record.subject_id,
            field=record.field_ident,
        )
        return record
