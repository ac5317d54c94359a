"""Tests for change detection."""

from datetime import date

from fieldaudit.audit.classification import Classification, TemporalGranularity
from fieldaudit.audit.detector import ChangeDetector, strictly_equal
from tests.models import Invoice


class TestStrictlyEqual:
    """Tests for the strict equality baseline."""

    def test_same_type_and_value(self):
        """Test that equal values of one type are equal."""
        assert strictly_equal("a", "a")
        assert strictly_equal(None, None)

    def test_type_mismatch(self):
        """Test that equal-comparing values of different types differ."""
        assert not strictly_equal(1, True)
        assert not strictly_equal(1, 1.0)
        assert not strictly_equal(1, "1")
        assert not strictly_equal(None, "")


class TestDetectChanges:
    """Tests for ChangeDetector.detect_changes."""

    def test_unchanged_field_is_ignored(self):
        """Test that a field equal to its prior value is not reported."""
        invoice = Invoice(name="Same", total=5)
        changes = ChangeDetector().detect_changes({"name": "Same", "total": 5}, invoice)
        assert changes == []

    def test_changed_field(self):
        """Test that a changed field is reported with both values."""
        invoice = Invoice(total=200)
        changes = ChangeDetector().detect_changes({"total": 100}, invoice)

        assert len(changes) == 1
        change = changes[0]
        assert change.field_name == "total"
        assert change.prior_value == 100
        assert change.current_value == 200
        assert change.classification.kind is Classification.RECORD_SCALAR

    def test_type_change_is_a_change(self):
        """Test that "100" -> 100 counts as a change."""
        invoice = Invoice(total=100)
        changes = ChangeDetector().detect_changes({"total": "100"}, invoice)
        assert [c.field_name for c in changes] == ["total"]

    def test_skipped_fields_never_reported(self):
        """Test that skipped fields are dropped whatever their values."""
        invoice = Invoice(internal_ref="new", draft_token="new")
        prior = {
            "id": "old",
            "internal_ref": "old",
            "draft_token": "old",
            "created_at": None,
            "missing": 1,
        }
        assert ChangeDetector().detect_changes(prior, invoice) == []

    def test_order_follows_prior_values(self):
        """Test that changes are reported in snapshot order."""
        invoice = Invoice(total=2, name="b", notes="y")
        prior = {"notes": "x", "total": 1, "name": "a"}
        changes = ChangeDetector().detect_changes(prior, invoice)
        assert [c.field_name for c in changes] == ["notes", "total", "name"]

    def test_classification_is_attached(self):
        """Test that each change carries its field's classification."""
        invoice = Invoice(due_date=date(2020, 1, 1), status="sent")
        changes = ChangeDetector().detect_changes({"due_date": None, "status": "draft"}, invoice)

        by_name = {c.field_name: c.classification for c in changes}
        assert by_name["due_date"].kind is Classification.RECORD_TEMPORAL
        assert by_name["due_date"].granularity is TemporalGranularity.DATE
        assert by_name["status"].kind is Classification.RECORD_ENUMERATED


class TestLooseStringComparison:
    """Tests for the null/empty-string carve-out."""

    def test_enabled_treats_null_and_empty_as_equal(self):
        """Test that None -> "" on a text field is not a change when enabled."""
        detector = ChangeDetector(loose_string_comparison=True)
        assert detector.detect_changes({"name": None}, Invoice(name="")) == []
        assert detector.detect_changes({"notes": ""}, Invoice(notes=None)) == []

    def test_disabled_records_null_to_empty(self):
        """Test that None -> "" on a text field is a change when disabled."""
        detector = ChangeDetector(loose_string_comparison=False)
        changes = detector.detect_changes({"name": None}, Invoice(name=""))
        assert [c.field_name for c in changes] == ["name"]

    def test_only_applies_to_text_fields(self):
        """Test that non-text fields keep strict comparison."""
        detector = ChangeDetector(loose_string_comparison=True)
        changes = detector.detect_changes({"total": None}, Invoice(total=""))
        assert [c.field_name for c in changes] == ["total"]

    def test_text_like_info_flag(self, monkeypatch):
        """Test that info={"text_like": True} opts a column into the carve-out."""
        monkeypatch.setitem(Invoice.__table__.c.total.info, "text_like", True)
        detector = ChangeDetector(loose_string_comparison=True)
        assert detector.detect_changes({"total": None}, Invoice(total="")) == []

    def test_real_text_change_still_recorded(self):
        """Test that the carve-out does not hide real changes."""
        detector = ChangeDetector(loose_string_comparison=True)
        changes = detector.detect_changes({"name": ""}, Invoice(name="Acme"))
        assert [c.field_name for c in changes] == ["name"]
