"""Tests for the audit record model."""

import pytest

from fieldaudit.audit.models import AuditEventType, AuditRecord, next_timestamp
from fieldaudit.core.errors import ImmutableAuditRecordError


def make_record(**kwargs) -> AuditRecord:
    """Build a CUSTOM record with defaults."""
    values = {
        "subject_type": "invoices",
        "subject_id": "1",
        "event_type": AuditEventType.CUSTOM,
        "event_name": "SOMETHING",
        "change_data": {"a": 1},
    }
    values.update(kwargs)
    return AuditRecord(**values)


class TestNextTimestamp:
    """Tests for record timestamps."""

    def test_strictly_increasing(self):
        """Test that consecutive timestamps never repeat."""
        stamps = [next_timestamp() for _ in range(1000)]
        assert all(a < b for a, b in zip(stamps, stamps[1:]))

    def test_timezone_aware(self):
        """Test that timestamps carry a timezone."""
        assert next_timestamp().tzinfo is not None


class TestAuditRecord:
    """Tests for persisting audit records."""

    def test_defaults_on_insert(self, db):
        """Test that id and created_at are generated."""
        record = make_record()
        db.add(record)
        db.commit()

        assert record.id is not None
        assert record.created_at is not None
        assert record.rendered_message is None

    def test_repr(self):
        """Test the debug representation."""
        assert "subject_type=invoices, subject_id=1" in repr(make_record())

    def test_rendered_message_can_be_backfilled(self, db):
        """Test that rendered_message may be written after creation."""
        record = make_record()
        db.add(record)
        db.commit()

        record.rendered_message = "SOMETHING"
        db.commit()
        db.refresh(record)
        assert record.rendered_message == "SOMETHING"

    def test_other_columns_are_immutable(self, db):
        """Test that changing anything else is rejected."""
        record = make_record()
        db.add(record)
        db.commit()

        record.subject_id = "2"
        with pytest.raises(ImmutableAuditRecordError) as exc_info:
            db.commit()
        assert exc_info.value.details["fields"] == ["subject_id"]
