"""Entity metadata read from SQLAlchemy mappers.

Everything the audit layer needs to know about a field (type, primary
key, referenced entity, enumerated labels, caption) comes from the mapper
and from ``Column.info``:

    status: Mapped[str] = mapped_column(
        String(20),
        info={"caption": "Status", "values": {"draft": "Draft", "sent": "Sent"}},
    )

Recognised ``info`` keys: ``caption``, ``values``, ``secret``,
``never_persist`` and ``text_like``.
"""

import re
from dataclasses import dataclass, field as dataclass_field
from typing import Any

from sqlalchemy import Column, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper
from sqlalchemy.orm.interfaces import MANYTOONE
from sqlalchemy.types import String, Text, TypeDecorator, TypeEngine

from fieldaudit.core.constants import DEFAULT_TITLE_FIELD
from fieldaudit.core.database.types import SecretString
from fieldaudit.core.errors import AuditConfigurationError, FieldNotFoundError


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def humanize(name: str) -> str:
    """Turn an attribute name into a caption.

    Example:
        humanize("due_date")  # "Due Date"
        humanize("user_id")   # "User"
    """
    if name.endswith("_id") and len(name) > 3:
        name = name[:-3]
    return name.replace("_", " ").strip().title()


def unwrap_type(type_: TypeEngine[Any]) -> TypeEngine[Any]:
    """Return the underlying type of a TypeDecorator."""
    while isinstance(type_, TypeDecorator):
        impl = type_.impl
        type_ = impl() if isinstance(impl, type) else impl
    return type_


def type_name(type_: TypeEngine[Any]) -> str:
    """Storage type name as written to change payloads (e.g. "string")."""
    return str(getattr(unwrap_type(type_), "__visit_name__", type(type_).__name__)).lower()


@dataclass
class FieldInfo:
    """Audit-relevant facts about one mapped field."""

    name: str
    column: Any
    type_: TypeEngine[Any]
    caption: str
    is_primary_key: bool = False
    never_persist: bool = False
    is_secret: bool = False
    values: dict[Any, Any] = dataclass_field(default_factory=dict)
    referenced_class: type | None = None
    text_like: bool = False

    @property
    def is_reference(self) -> bool:
        """Whether the field is a foreign key to another mapped entity."""
        return self.referenced_class is not None


class EntityMetadata:
    """Metadata for a mapped entity class, optionally bound to an instance.

    Instance-level switches (``__no_audit__``, ``skip_field_from_audit``)
    are read from the bound entity when there is one. Nothing is cached,
    so changes to ``Column.info`` at runtime are seen immediately.

    Args:
        model: Mapped class
        entity: Optional instance of the class

    Raises:
        AuditConfigurationError: If the class is not mapped
    """

    def __init__(self, model: type, entity: Any = None) -> None:
        try:
            mapper = inspect(model)
        except NoInspectionAvailable as e:
            raise AuditConfigurationError(
                f"{getattr(model, '__name__', model)!s} is not a mapped class",
                details={"model": getattr(model, "__name__", str(model))},
            ) from e
        if not isinstance(mapper, Mapper):
            raise AuditConfigurationError(
                "Audit metadata requires a mapped class",
                details={"model": str(model)},
            )
        self.model = model
        self.entity = entity
        self.mapper: Mapper[Any] = mapper

    @classmethod
    def for_subject(cls, subject: Any) -> "EntityMetadata":
        """Build metadata from either a mapped class or an instance of one."""
        if isinstance(subject, type):
            return cls(subject)
        return cls(type(subject), subject)

    @property
    def _switches(self) -> Any:
        return self.entity if self.entity is not None else self.model

    def field_names(self) -> list[str]:
        """Names of all mapped column attributes, in mapper order."""
        return [prop.key for prop in self.mapper.column_attrs]

    def has_field(self, name: str) -> bool:
        """Check whether a column attribute with this name is mapped."""
        return name in self.mapper.column_attrs

    def field(self, name: str) -> FieldInfo:
        """Describe one field.

        Raises:
            FieldNotFoundError: If no column attribute has this name
        """
        if not self.has_field(name):
            raise FieldNotFoundError(
                f"{self.model.__name__} has no field {name!r}",
                model=self.model.__name__,
                field=name,
            )

        prop = self.mapper.column_attrs[name]
        column = prop.columns[0]
        info = dict(getattr(column, "info", {}) or {})
        info.update(prop.info or {})
        type_ = column.type
        base_type = unwrap_type(type_)

        is_column = isinstance(column, Column)
        values = info.get("values") or {}

        return FieldInfo(
            name=name,
            column=column,
            type_=type_,
            caption=info.get("caption") or humanize(name),
            is_primary_key=bool(is_column and column.primary_key),
            never_persist=(not is_column) or bool(info.get("never_persist")),
            is_secret=isinstance(type_, SecretString) or bool(info.get("secret")),
            values=dict(values),
            referenced_class=self._referenced_class(column) if is_column else None,
            text_like=isinstance(base_type, String | Text) or bool(info.get("text_like")),
        )

    def fields(self) -> list[FieldInfo]:
        """Describe every mapped field."""
        return [self.field(name) for name in self.field_names()]

    def _referenced_class(self, column: Column[Any]) -> type | None:
        if not column.foreign_keys:
            return None

        # Prefer the many-to-one relationship that owns this column
        for rel in self.mapper.relationships:
            if rel.direction is MANYTOONE and column in rel.local_columns:
                return rel.mapper.class_

        # Otherwise any mapper over the referenced table
        target = next(iter(column.foreign_keys)).column.table
        for mapper in self.mapper.registry.mappers:
            if mapper.local_table is target:
                return mapper.class_
        return None

    @property
    def model_caption(self) -> str:
        """Display caption of the entity type (e.g. "Invoice Line")."""
        caption = getattr(self.model, "__caption__", None)
        if caption:
            return str(caption)
        return _CAMEL_BOUNDARY.sub(" ", self.model.__name__)

    @property
    def title_field(self) -> str:
        """Field holding the entity's display title."""
        return getattr(self.model, "__title_field__", None) or DEFAULT_TITLE_FIELD

    @property
    def subject_type(self) -> str:
        """Subject type stored on audit records."""
        return str(self.mapper.local_table.name)

    @property
    def qualified_name(self) -> str:
        """Importable name of the entity class."""
        return f"{self.model.__module__}.{self.model.__qualname__}"

    @property
    def is_auditable(self) -> bool:
        """Whether the class opted into auditing."""
        return bool(getattr(self.model, "__audit__", False))

    @property
    def no_audit(self) -> bool:
        """Whether auditing is switched off for this entity."""
        return bool(getattr(self._switches, "__no_audit__", False))

    def is_excluded(self, name: str) -> bool:
        """Check the entity's skip list and skip predicate for a field."""
        if name in tuple(getattr(self.model, "__audit_skip_fields__", ()) or ()):
            return True

        predicate = getattr(self._switches, "skip_field_from_audit", None)
        if callable(predicate) and self.entity is not None:
            return bool(predicate(name))
        return False

    def identity_of(self, entity: Any | None = None) -> str:
        """Primary key of an instance as text.

        Composite keys are joined with commas.

        Raises:
            AuditConfigurationError: If the instance has no primary key yet
        """
        entity = entity if entity is not None else self.entity
        state = inspect(entity)
        identity = state.identity
        if identity is None:
            identity = self.mapper.primary_key_from_instance(entity)
        if identity is None or any(part is None for part in identity):
            raise AuditConfigurationError(
                "Entity has no identity yet",
                details={"subject_type": self.subject_type},
            )
        return ",".join(str(part) for part in identity)


def dirty_snapshot(entity: Any) -> dict[str, Any]:
    """Prior values of every changed column attribute.

    Foreign keys changed through a many-to-one relationship are included
    with their current (pre-flush) value, since the column itself is only
    synchronised during flush.

    Args:
        entity: A persistent instance with pending changes

    Returns:
        Mapping of field name to its value before the pending changes
    """
    state = inspect(entity)
    mapper = state.mapper
    snapshot: dict[str, Any] = {}

    for prop in mapper.column_attrs:
        history = state.attrs[prop.key].history
        if history.has_changes():
            snapshot[prop.key] = history.deleted[0] if history.deleted else None

    for rel in mapper.relationships:
        if rel.direction is not MANYTOONE:
            continue
        if not state.attrs[rel.key].history.has_changes():
            continue
        for column in rel.local_columns:
            prop = mapper.get_property_by_column(column)
            if prop.key not in snapshot:
                snapshot[prop.key] = getattr(entity, prop.key)

    return snapshot


def value_pair(entity: Any, name: str) -> tuple[Any, Any, bool]:
    """Prior and current value of one attribute.

    Args:
        entity: Any mapped instance
        name: Attribute name

    Returns:
        (prior value, current value, whether the attribute changed)
    """
    current = getattr(entity, name)
    history = inspect(entity).attrs[name].history
    if not history.has_changes():
        return current, current, False
    prior = history.deleted[0] if history.deleted else None
    return prior, current, True
