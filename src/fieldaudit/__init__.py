"""fieldaudit - field-level audit trails for SQLAlchemy models."""

__version__ = "0.1.0"
