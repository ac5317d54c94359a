"""Value encoding for audit payloads.

Field values are stored in a JSON column, so everything written to
``change_data`` is first reduced to JSON primitives. Temporal values get
an absolute, timezone-aware ISO-8601 encoding regardless of the field's
granularity; truncation to a date or a time of day happens at render time.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from fieldaudit.core.constants import TIME_ANCHOR_DATE


def to_json_compatible(value: Any) -> Any:
    """Serialize a value to JSON-compatible primitives.

    Recursively converts non-JSON-serializable types to their
    string or primitive representations.

    Args:
        value: Any value to serialize

    Returns:
        JSON-serializable representation of the value
    """
    # Pass through JSON primitives
    if value is None or isinstance(value, str | int | float | bool):
        return value

    # Handle specific types that need conversion
    result: Any
    if isinstance(value, UUID):
        result = str(value)
    elif isinstance(value, datetime | date | time):
        result = value.isoformat()
    elif isinstance(value, Decimal):
        result = str(value)
    elif isinstance(value, Enum):
        result = to_json_compatible(value.value)
    elif isinstance(value, dict):
        result = {str(k): to_json_compatible(v) for k, v in value.items()}
    elif isinstance(value, list | tuple | set | frozenset):
        result = [to_json_compatible(item) for item in value]
    else:
        # Fallback: convert to string
        result = str(value)

    return result


def encode_temporal(value: Any) -> Any:
    """Encode a date, time or datetime as an aware ISO-8601 timestamp.

    Naive values are taken to be UTC. Dates become midnight of that day,
    times of day are anchored on 1970-01-01.

    Args:
        value: A temporal value, or anything else

    Returns:
        ISO-8601 text for temporal values, None for None, otherwise the
        JSON-compatible form of the value
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time())
    elif isinstance(value, time):
        moment = datetime.combine(TIME_ANCHOR_DATE, value)
    else:
        return to_json_compatible(value)

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def decode_temporal(value: Any) -> datetime | None:
    """Parse a stored timestamp.

    Args:
        value: Text written by encode_temporal

    Returns:
        The parsed datetime, or None if the value is empty or unparseable
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
