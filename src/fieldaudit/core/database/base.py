"""SQLAlchemy declarative base and common mixins."""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDMixin:
    """Mixin that adds a UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        index=True,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class AuditMixin:
    """Marker mixin to enable automatic audit logging.

    Models that inherit from this mixin will have their creation,
    field changes and deletion captured as audit records. The session
    listeners in fieldaudit.audit.listeners check the __audit__
    attribute to determine if a model should be audited.

    Class-level switches:
        __no_audit__: Disable auditing for this model (or one instance)
        __audit_skip_fields__: Field names never written to the audit log
        __caption__: Display caption used in messages (default: class name)
        __title_field__: Field used as display title when referenced

    Models may also define ``skip_field_from_audit(self, field_name)``
    to exclude fields dynamically.

    Example:
        class Invoice(Base, UUIDMixin, AuditMixin):
            __tablename__ = "invoices"
            __audit_skip_fields__ = ("updated_at",)
            name: Mapped[str] = mapped_column(String(255))
    """

    # Marker attribute checked by audit listeners
    __audit__: ClassVar[bool] = True
    __no_audit__: ClassVar[bool] = False
    __audit_skip_fields__: ClassVar[tuple[str, ...]] = ()
