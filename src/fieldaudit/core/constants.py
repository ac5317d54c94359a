"""Package-wide constants.

This module defines constants used throughout the package
to avoid magic numbers and ensure consistency.
"""

from datetime import date


# String field lengths
MAX_SUBJECT_TYPE_LENGTH = 100
MAX_SUBJECT_ID_LENGTH = 255
MAX_EVENT_TYPE_LENGTH = 20
MAX_EVENT_NAME_LENGTH = 100
MAX_FIELD_IDENT_LENGTH = 255
MAX_ACTOR_ID_LENGTH = 255
MAX_ACTOR_NAME_LENGTH = 255

# Entity conventions
DEFAULT_TITLE_FIELD = "name"

# Rendering formats (strftime)
DEFAULT_TIME_FORMAT = "%H:%M"
DEFAULT_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_DATETIME_FORMAT = "%Y-%m-%d %H:%M"

# Time-of-day values are stored as full timestamps on this date
TIME_ANCHOR_DATE = date(1970, 1, 1)

# Logging
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
