"""Field-level change auditing for SQLAlchemy models.

Usage:
    from fieldaudit.audit import setup_audit_listeners

    setup_audit_listeners()

    with session_scope() as session:
        session.add(invoice)  # CREATED plus one record per set field
"""

from fieldaudit.audit.classification import (
    Classification,
    FieldClassification,
    FieldClassifier,
    TemporalGranularity,
)
from fieldaudit.audit.context import (
    Actor,
    acting_as,
    clear_current_actor,
    get_current_actor,
    set_current_actor,
)
from fieldaudit.audit.detector import ChangeDetector, DetectedChange
from fieldaudit.audit.listeners import (
    get_recorder,
    remove_audit_listeners,
    set_recorder,
    setup_audit_listeners,
)
from fieldaudit.audit.metadata import EntityMetadata, FieldInfo
from fieldaudit.audit.models import AuditEventType, AuditRecord
from fieldaudit.audit.recorder import AuditRecorder
from fieldaudit.audit.renderer import MessageRenderer, render_template
from fieldaudit.audit.repos import AuditRepository
from fieldaudit.audit.schemas import FieldChange, MessageTemplates


__all__ = [
    "Actor",
    "AuditEventType",
    "AuditRecord",
    "AuditRecorder",
    "AuditRepository",
    "ChangeDetector",
    "Classification",
    "DetectedChange",
    "EntityMetadata",
    "FieldChange",
    "FieldClassification",
    "FieldClassifier",
    "FieldInfo",
    "MessageRenderer",
    "MessageTemplates",
    "TemporalGranularity",
    "acting_as",
    "clear_current_actor",
    "get_current_actor",
    "get_recorder",
    "remove_audit_listeners",
    "render_template",
    "set_current_actor",
    "set_recorder",
    "setup_audit_listeners",
]
