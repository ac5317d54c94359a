"""Tests for installing and removing the audit listeners."""

from sqlalchemy import event
from sqlalchemy.orm import Mapper, Session

from fieldaudit.audit.listeners import (
    _after_flush_postexec,
    _before_flush,
    _discard_pending,
    _enable_active_history,
    _noop_set,
    remove_audit_listeners,
    setup_audit_listeners,
)
from tests.models import Invoice


def installed() -> list[bool]:
    """Which of the audit hooks are currently installed."""
    return [
        event.contains(Session, "before_flush", _before_flush),
        event.contains(Session, "after_flush_postexec", _after_flush_postexec),
        event.contains(Session, "after_soft_rollback", _discard_pending),
        event.contains(Mapper, "mapper_configured", _enable_active_history),
        event.contains(Invoice.name, "set", _noop_set),
    ]


class TestSetup:
    """Tests for setup_audit_listeners."""

    def test_installs_every_hook(self):
        """Test that session, mapper and attribute hooks are installed."""
        assert all(installed())

    def test_repeated_setup(self):
        """Test that calling setup again leaves the hooks installed."""
        setup_audit_listeners()
        assert all(installed())


class TestRemove:
    """Tests for remove_audit_listeners."""

    def test_removes_every_hook(self):
        """Test that removal undoes session, mapper and attribute hooks."""
        try:
            remove_audit_listeners()
            assert not any(installed())
        finally:
            setup_audit_listeners()
        assert all(installed())

    def test_no_records_after_removal(self, db, repo):
        """Test that writes are not audited once the hooks are removed."""
        try:
            remove_audit_listeners()
            db.add(Invoice(name="Quiet"))
            db.commit()
        finally:
            setup_audit_listeners()
        assert repo.count() == 0
