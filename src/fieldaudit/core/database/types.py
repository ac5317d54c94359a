"""Custom column types."""

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class SecretString(TypeDecorator[str]):
    """String column holding a secret, e.g. a password hash.

    Changes to columns of this type are audited without their values.
    """

    impl = String
    cache_ok = True
