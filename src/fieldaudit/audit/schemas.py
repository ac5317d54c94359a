"""Pydantic schemas for audit payloads and message templates."""

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class FieldChange(BaseModel):
    """Payload of a FIELD_CHANGED record.

    Attributes:
        field_type: Storage type name of the field at write time
        old_value: Encoded value before the change
        new_value: Encoded value after the change
    """

    model_config = ConfigDict(extra="ignore")

    field_type: str | None = None
    old_value: Any = None
    new_value: Any = None

    @field_validator("field_type", mode="before")
    @classmethod
    def coerce_field_type(cls, v: Any) -> str | None:
        """Accept any stored value as the type name."""
        if v is None:
            return None
        return str(v)

    @classmethod
    def from_payload(cls, payload: Any) -> "FieldChange":
        """Build from a stored change_data value.

        Anything that is not a mapping yields an empty change, so
        malformed rows still render.
        """
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)


class MessageTemplates(BaseModel):
    """Message templates with ``{placeholder}`` substitution.

    Placeholders: fieldName, oldValue, newValue, modelCaption, title,
    eventName. Unknown placeholders are left in the output unchanged.
    """

    changed_template: str = 'changed "{fieldName}" from "{oldValue}" to "{newValue}"'
    set_template: str = 'set "{fieldName}" to "{newValue}"'
    changed_without_value_template: str = 'changed "{fieldName}"'
    created_template: str = "created {modelCaption}"
    deleted_template: str = "deleted {modelCaption}"
    linked_template: str = 'added {modelCaption} "{title}"'
    unlinked_template: str = 'removed {modelCaption} "{title}"'
    custom_template: str = "{eventName}"
