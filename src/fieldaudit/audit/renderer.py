"""Human-readable messages for audit records.

Rendering re-derives the field's classification from the entity's current
metadata, so enumerated labels and reference titles reflect the data as it
is now. Missing referenced rows, unknown enumeration keys and unparseable
timestamps degrade to raw or empty text; rendering never raises for them.
"""

import json
import re
from collections.abc import Callable, Hashable, Mapping
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, object_session

from fieldaudit.audit.classification import (
    Classification,
    FieldClassifier,
    TemporalGranularity,
)
from fieldaudit.audit.metadata import EntityMetadata, FieldInfo, humanize
from fieldaudit.audit.models import AuditEventType, AuditRecord
from fieldaudit.audit.schemas import FieldChange, MessageTemplates
from fieldaudit.audit.serializers import decode_temporal
from fieldaudit.config import Settings, get_settings


log = structlog.get_logger()

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

# (record, subject, renderer) -> message
CustomRenderer = Callable[[AuditRecord, Any, "MessageRenderer"], str]


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders in one pass.

    Substituted text is not scanned again, and placeholders without a
    value are kept as they are.

    Example:
        render_template('set "{fieldName}"', {"fieldName": "Total"})
        # 'set "Total"'
    """

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return str(values[key])

    return _PLACEHOLDER.sub(replace, template)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict | list):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


class MessageRenderer:
    """Render audit records to text.

    Args:
        session: Session for reference title lookups (defaults to the
            subject's session)
        settings: Settings providing the date and time formats
        templates: Message templates
        classifier: Classifier used to re-derive field treatment
        custom_renderers: Render callables for CUSTOM records, by event name
    """

    def __init__(
        self,
        session: Session | None = None,
        settings: Settings | None = None,
        templates: MessageTemplates | None = None,
        classifier: FieldClassifier | None = None,
        custom_renderers: Mapping[str, CustomRenderer] | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.templates = templates or MessageTemplates()
        self.classifier = classifier or FieldClassifier()
        self.custom_renderers: dict[str, CustomRenderer] = dict(custom_renderers or {})

    def register(self, event_name: str, renderer: CustomRenderer) -> None:
        """Register a render callable for a custom event name."""
        self.custom_renderers[event_name] = renderer

    def render(self, record: AuditRecord, subject: Any) -> str:
        """Render one record.

        Args:
            record: The audit record
            subject: The subject entity, or its mapped class when the
                entity no longer exists

        Returns:
            The message text
        """
        metadata = EntityMetadata.for_subject(subject)
        event_type = AuditEventType(record.event_type)

        if event_type is AuditEventType.CREATED:
            return render_template(
                self.templates.created_template,
                {"modelCaption": metadata.model_caption},
            )
        if event_type is AuditEventType.DELETED:
            return render_template(
                self.templates.deleted_template,
                {"modelCaption": metadata.model_caption},
            )
        if event_type is AuditEventType.CUSTOM:
            return self._render_custom(record, subject, metadata)
        return self._render_field_change(record, subject, metadata)

    def _render_field_change(
        self,
        record: AuditRecord,
        subject: Any,
        metadata: EntityMetadata,
    ) -> str:
        ident = record.field_ident or ""
        change = FieldChange.from_payload(record.change_data)

        # Fields no longer on the model render as plain values
        if not metadata.has_field(ident):
            return self._render_scalar(humanize(ident) if ident else ident, change)

        info = metadata.field(ident)
        classification = self.classifier.classify(metadata, ident)
        kind = classification.kind

        if kind is Classification.RECORD_NO_VALUE:
            return render_template(
                self.templates.changed_without_value_template,
                {"fieldName": info.caption},
            )
        if kind is Classification.RECORD_REFERENCE:
            return self._render_reference(info, change, subject)
        if kind is Classification.RECORD_ENUMERATED:
            return self._render_enumerated(info.caption, info.values, change)
        if kind is Classification.RECORD_TEMPORAL:
            return self._render_temporal(
                info.caption,
                classification.granularity or TemporalGranularity.DATETIME,
                change,
            )
        if kind is Classification.RECORD_STRUCTURED or change.field_type == "json":
            return self._render_structured(info.caption, change)
        return self._render_scalar(info.caption, change)

    def _changed_or_set(self, caption: str, old: str, new: str) -> str:
        if old == "":
            return render_template(
                self.templates.set_template,
                {"fieldName": caption, "newValue": new},
            )
        return render_template(
            self.templates.changed_template,
            {"fieldName": caption, "oldValue": old, "newValue": new},
        )

    def _render_scalar(self, caption: str, change: FieldChange) -> str:
        # A False old value counts as unset, like None and ""
        old = "" if change.old_value is False else _text(change.old_value)
        return self._changed_or_set(
            caption,
            old,
            _text(change.new_value),
        )

    def _render_structured(self, caption: str, change: FieldChange) -> str:
        def encode(value: Any) -> str:
            return json.dumps(value, separators=(",", ":")) if value else ""

        return self._changed_or_set(
            caption,
            encode(change.old_value),
            encode(change.new_value),
        )

    def _render_enumerated(
        self,
        caption: str,
        values: Mapping[Any, Any],
        change: FieldChange,
    ) -> str:
        new_label = _label(values, change.new_value)
        if change.old_value is None or change.old_value == "":
            return render_template(
                self.templates.set_template,
                {"fieldName": caption, "newValue": new_label},
            )
        return render_template(
            self.templates.changed_template,
            {
                "fieldName": caption,
                "oldValue": _label(values, change.old_value),
                "newValue": new_label,
            },
        )

    def _render_temporal(
        self,
        caption: str,
        granularity: TemporalGranularity,
        change: FieldChange,
    ) -> str:
        fmt = {
            TemporalGranularity.TIME: self.settings.time_format,
            TemporalGranularity.DATE: self.settings.date_format,
            TemporalGranularity.DATETIME: self.settings.datetime_format,
        }[granularity]

        new_moment = decode_temporal(change.new_value)
        new = new_moment.strftime(fmt) if new_moment else _text(change.new_value)

        old_moment = decode_temporal(change.old_value)
        if old_moment is None:
            return render_template(
                self.templates.set_template,
                {"fieldName": caption, "newValue": new},
            )
        return render_template(
            self.templates.changed_template,
            {"fieldName": caption, "oldValue": old_moment.strftime(fmt), "newValue": new},
        )

    def _render_reference(self, info: FieldInfo, change: FieldChange, subject: Any) -> str:
        session = self._session_for(subject)
        old = self._reference_text(session, info.referenced_class, change.old_value)
        new = self._reference_text(session, info.referenced_class, change.new_value)
        return self._changed_or_set(info.caption, old, new)

    def _reference_text(self, session: Session | None, model: type, identifier: Any) -> str:
        if identifier is None or identifier == "":
            return ""
        title = self._load_title(session, model, identifier)
        if title is None:
            log.debug(
                "audit_reference_unresolved",
                model=model.__name__,
                identifier=str(identifier),
            )
            return _text(identifier)
        return _text(title)

    def _load_title(self, session: Session | None, model: type, identifier: Any) -> Any:
        """Load the display title of a referenced row, or None if unavailable."""
        if session is None:
            return None

        metadata = EntityMetadata(model)
        if not metadata.has_field(metadata.title_field):
            return None
        title_column = getattr(model, metadata.field(metadata.title_field).name)
        primary_key = metadata.mapper.primary_key[0]
        key = _coerce_identifier(primary_key, identifier)
        if key is None:
            return None

        pk_attr = getattr(model, metadata.mapper.get_property_by_column(primary_key).key)
        with session.no_autoflush:
            row = session.execute(
                select(pk_attr, title_column).where(pk_attr == key)
            ).first()
        if row is None:
            return None
        return row[1]

    def _session_for(self, subject: Any) -> Session | None:
        if self.session is not None:
            return self.session
        if isinstance(subject, type):
            return None
        return object_session(subject)

    def _render_custom(
        self,
        record: AuditRecord,
        subject: Any,
        metadata: EntityMetadata,
    ) -> str:
        name = record.event_name or ""
        custom = self.custom_renderers.get(name)
        if custom is not None:
            return custom(record, subject, self)

        data = record.change_data if isinstance(record.change_data, dict) else {}
        kind = data.get("kind")

        if kind == "link":
            template = (
                self.templates.unlinked_template
                if data.get("action") == "REMOVE"
                else self.templates.linked_template
            )
            return render_template(
                template,
                {"modelCaption": data.get("caption", ""), "title": _text(data.get("name"))},
            )

        if kind == "secondary":
            caption = _text(data.get("caption"))
            action = data.get("action")
            if action == "ADD":
                return render_template(
                    self.templates.linked_template,
                    {"modelCaption": caption, "title": _text(data.get("new_value"))},
                )
            if action == "REMOVE":
                return render_template(
                    self.templates.unlinked_template,
                    {"modelCaption": caption, "title": _text(data.get("old_value"))},
                )
            return self._changed_or_set(
                caption,
                _text(data.get("old_value")),
                _text(data.get("new_value")),
            )

        return render_template(self.templates.custom_template, {"eventName": name})


def _label(values: Mapping[Any, Any], key: Any) -> str:
    """Label for an enumeration key; keys match by value or by text."""
    if key is None:
        return ""
    if isinstance(key, Hashable) and key in values:
        return _text(values[key])
    for candidate, label in values.items():
        if str(candidate) == str(key):
            return _text(label)
    return ""


def _coerce_identifier(column: Any, identifier: Any) -> Any:
    """Convert a stored identifier to the primary key's Python type.

    Returns None if the value cannot be converted.
    """
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return identifier
    if isinstance(identifier, python_type):
        return identifier
    try:
        return python_type(identifier)
    except (TypeError, ValueError):
        return None
