"""Tests for entity metadata."""

import pytest

from fieldaudit.audit.metadata import (
    EntityMetadata,
    dirty_snapshot,
    humanize,
    type_name,
    value_pair,
)
from fieldaudit.core.errors import AuditConfigurationError, FieldNotFoundError
from tests.models import Email, Invoice, QuietInvoice, Tag, User


class TestHumanize:
    """Tests for caption generation."""

    def test_snake_case(self):
        """Test that underscores become spaces and words are capitalised."""
        assert humanize("due_date") == "Due Date"

    def test_foreign_key_suffix(self):
        """Test that a trailing _id is dropped."""
        assert humanize("user_id") == "User"

    def test_bare_id(self):
        """Test that a field named id keeps its name."""
        assert humanize("id") == "Id"


class TestEntityMetadata:
    """Tests for EntityMetadata."""

    def test_unmapped_class(self):
        """Test that unmapped classes are rejected."""
        with pytest.raises(AuditConfigurationError):
            EntityMetadata(dict)

    def test_unknown_field(self):
        """Test that explicit lookups of unknown fields raise."""
        metadata = EntityMetadata(Invoice)
        assert not metadata.has_field("totl")
        with pytest.raises(FieldNotFoundError) as exc_info:
            metadata.field("totl")
        assert exc_info.value.details == {"model": "Invoice", "field": "totl"}

    def test_field_facts(self):
        """Test the facts collected for individual fields."""
        metadata = EntityMetadata(Invoice)

        assert metadata.field("id").is_primary_key
        assert metadata.field("draft_token").never_persist
        assert metadata.field("kind").never_persist
        assert metadata.field("access_code").is_secret
        assert metadata.field("user_id").referenced_class is User
        assert metadata.field("priority").caption == "ValuesTest"
        assert metadata.field("status").values["sent"] == "Sent"
        assert metadata.field("notes").text_like
        assert not metadata.field("total").text_like

    def test_fields_lists_every_column(self):
        """Test that fields() describes every mapped column attribute."""
        names = [info.name for info in EntityMetadata(Invoice).fields()]
        assert "user_id" in names
        assert "user" not in names

    def test_captions(self):
        """Test model captions from __caption__ or the class name."""
        assert EntityMetadata(User).model_caption == "User"
        assert EntityMetadata(QuietInvoice).model_caption == "Quiet Invoice"

    def test_title_field(self):
        """Test the default title field."""
        assert EntityMetadata(Tag).title_field == "name"

    def test_subject_type_and_name(self):
        """Test the subject type and qualified class name."""
        metadata = EntityMetadata(Email)
        assert metadata.subject_type == "emails"
        assert metadata.qualified_name == "tests.models.Email"

    def test_no_audit_switches(self):
        """Test class and instance level no-audit switches."""
        assert EntityMetadata(QuietInvoice).no_audit
        invoice = Invoice()
        assert not EntityMetadata.for_subject(invoice).no_audit
        invoice.__no_audit__ = True
        assert EntityMetadata.for_subject(invoice).no_audit

    def test_identity(self, db):
        """Test that identities are the primary key as text."""
        tag = Tag(name="x")
        db.add(tag)
        db.flush()
        assert EntityMetadata.for_subject(tag).identity_of() == str(tag.id)

    def test_identity_missing(self):
        """Test that an unsaved entity has no identity."""
        with pytest.raises(AuditConfigurationError):
            EntityMetadata.for_subject(Tag(name="x")).identity_of()

    def test_type_name(self):
        """Test storage type names."""
        table = Invoice.__table__
        assert type_name(table.c.name.type) == "string"
        assert type_name(table.c.details.type) == "json"
        assert type_name(table.c.access_code.type) == "string"
        assert type_name(table.c.sent_at.type) == "datetime"


class TestHistory:
    """Tests for prior values read from attribute history."""

    def test_dirty_snapshot(self, db):
        """Test that only changed fields appear with their prior values."""
        invoice = Invoice(name="a", total=1)
        db.add(invoice)
        db.commit()

        invoice.name = "b"
        assert dirty_snapshot(invoice) == {"name": "a"}

    def test_value_pair(self, db):
        """Test prior and current values of a satellite field."""
        email = Email(value="a@x.io")
        db.add(email)
        db.commit()

        assert value_pair(email, "value") == ("a@x.io", "a@x.io", False)
        email.value = "b@x.io"
        assert value_pair(email, "value") == ("a@x.io", "b@x.io", True)
