"""Error hierarchy for the audit layer."""

from fieldaudit.core.errors.exceptions import (
    AuditConfigurationError,
    AuditError,
    FieldNotFoundError,
    ImmutableAuditRecordError,
)


__all__ = [
    "AuditConfigurationError",
    "AuditError",
    "FieldNotFoundError",
    "ImmutableAuditRecordError",
]
