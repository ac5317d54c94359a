"""Exceptions raised by the audit layer.

Only integration mistakes are raised: a field requested by name that does
not exist, an entity that is not mapped, a record written before its subject
has an identity. Missing referenced data at render time is never an error.
"""

from typing import Any


class AuditError(Exception):
    """Base exception for all audit errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
    """

    message: str = "An unexpected audit error occurred"
    error_code: str = "audit_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class AuditConfigurationError(AuditError):
    """Raised when an entity cannot be audited as configured.

    Example:
        raise AuditConfigurationError(
            "Entity has no identity yet",
            details={"subject_type": "invoices"},
        )
    """

    message = "Audit is misconfigured for this entity"
    error_code = "audit_configuration_error"


class FieldNotFoundError(AuditError):
    """Raised when a field is requested by name but is not mapped.

    Example:
        raise FieldNotFoundError(model="Invoice", field="totl")
    """

    message = "Field not found"
    error_code = "field_not_found"

    def __init__(
        self,
        message: str | None = None,
        model: str | None = None,
        field: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if model:
            details["model"] = model
        if field:
            details["field"] = field
        super().__init__(message=message, details=details, **kwargs)


class ImmutableAuditRecordError(AuditError):
    """Raised when a persisted audit record is modified.

    Only ``rendered_message`` may be written after creation.
    """

    message = "Audit records cannot be modified after creation"
    error_code = "immutable_audit_record"
