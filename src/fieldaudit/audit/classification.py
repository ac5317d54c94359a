"""Field classification.

Each field is classified once per detection or render and the result
decides whether it is audited and how its values are encoded and rendered.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.types import JSON, Date, DateTime, Time

from fieldaudit.audit.metadata import EntityMetadata, unwrap_type


class Classification(str, Enum):
    """Audit treatment of a field."""

    SKIP = "skip"
    RECORD_NO_VALUE = "no_value"
    RECORD_SCALAR = "scalar"
    RECORD_TEMPORAL = "temporal"
    RECORD_ENUMERATED = "enumerated"
    RECORD_REFERENCE = "reference"
    RECORD_STRUCTURED = "structured"


class TemporalGranularity(str, Enum):
    """Precision a temporal field is displayed at."""

    TIME = "time"
    DATE = "date"
    DATETIME = "datetime"


@dataclass(frozen=True)
class FieldClassification:
    """A classification, with the granularity for temporal fields."""

    kind: Classification
    granularity: TemporalGranularity | None = None

    @property
    def is_skipped(self) -> bool:
        return self.kind is Classification.SKIP


SKIP = FieldClassification(Classification.SKIP)


class FieldClassifier:
    """Decide the audit treatment of a field.

    The checks run in a fixed order and the first match wins, so that
    references and enumerations are recognised before their storage type
    is considered.

    Args:
        skip_fields: Field names never audited, for any entity
    """

    def __init__(self, skip_fields: Iterable[str] = ()) -> None:
        self.skip_fields = frozenset(skip_fields)

    def classify(self, metadata: EntityMetadata, field_name: str) -> FieldClassification:
        """Classify one field of an entity.

        Unknown fields are skipped rather than rejected.

        Args:
            metadata: Metadata of the entity (bound to an instance when
                instance-level skip predicates should apply)
            field_name: Attribute name

        Returns:
            The field's classification
        """
        if not metadata.has_field(field_name):
            return SKIP

        info = metadata.field(field_name)
        if info.is_primary_key or info.never_persist:
            return SKIP

        if field_name in self.skip_fields or metadata.is_excluded(field_name):
            return SKIP

        if info.is_secret:
            return FieldClassification(Classification.RECORD_NO_VALUE)

        if info.is_reference:
            return FieldClassification(Classification.RECORD_REFERENCE)

        if info.values:
            return FieldClassification(Classification.RECORD_ENUMERATED)

        granularity = temporal_granularity(info.type_)
        if granularity is not None:
            return FieldClassification(Classification.RECORD_TEMPORAL, granularity)

        if isinstance(unwrap_type(info.type_), JSON):
            return FieldClassification(Classification.RECORD_STRUCTURED)

        return FieldClassification(Classification.RECORD_SCALAR)


def temporal_granularity(type_: object) -> TemporalGranularity | None:
    """Granularity of a column type, or None if it is not temporal."""
    base = unwrap_type(type_)  # type: ignore[arg-type]
    if isinstance(base, DateTime):
        return TemporalGranularity.DATETIME
    if isinstance(base, Date):
        return TemporalGranularity.DATE
    if isinstance(base, Time):
        return TemporalGranularity.TIME
    return None
