"""Change detection over a dirty snapshot."""

from typing import Any, NamedTuple

from fieldaudit.audit.classification import FieldClassification, FieldClassifier
from fieldaudit.audit.metadata import EntityMetadata


class DetectedChange(NamedTuple):
    """A field whose value really changed."""

    field_name: str
    prior_value: Any
    current_value: Any
    classification: FieldClassification


def strictly_equal(a: Any, b: Any) -> bool:
    """Equal in both type and value (so 1 != True and 1 != "1")."""
    return type(a) is type(b) and a == b


class ChangeDetector:
    """Compare prior values against an entity's current state.

    Args:
        classifier: Classifier deciding which fields are audited
        loose_string_comparison: Treat None and "" as equal for
            text-like fields
    """

    def __init__(
        self,
        classifier: FieldClassifier | None = None,
        loose_string_comparison: bool = False,
    ) -> None:
        self.classifier = classifier or FieldClassifier()
        self.loose_string_comparison = loose_string_comparison

    def detect_changes(
        self,
        prior_values: dict[str, Any],
        entity: Any,
    ) -> list[DetectedChange]:
        """Detect audit-worthy changes.

        Args:
            prior_values: Field name to value before the write
            entity: The entity after the write

        Returns:
            One entry per changed, non-skipped field, in the order of
            prior_values
        """
        metadata = EntityMetadata.for_subject(entity)
        changes: list[DetectedChange] = []

        for name, prior in prior_values.items():
            classification = self.classifier.classify(metadata, name)
            if classification.is_skipped:
                continue

            current = getattr(entity, name)
            if strictly_equal(prior, current):
                continue
            if self._loosely_equal(metadata, name, prior, current):
                continue

            changes.append(DetectedChange(name, prior, current, classification))

        return changes

    def _loosely_equal(
        self,
        metadata: EntityMetadata,
        name: str,
        prior: Any,
        current: Any,
    ) -> bool:
        if not self.loose_string_comparison:
            return False
        if prior not in (None, "") or current not in (None, ""):
            return False
        return metadata.field(name).text_like
