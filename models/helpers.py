"""Contains all models commonly used across different modules."""
import pytz

from enum import Enum

from datetime import datetime


class UserRole(str, Enum):
    """Enumeration of system roles a bot user can hold."""
    OWNER = "owner"
    ADMIN = "admin"
    MOD = "mod"
    WHITELIST = "whitelist"


class AttemptType(str, Enum):
    """Kind of identifier a login attempt record is keyed on."""
    IP = "ip"
    USER = "user"


class TokenType(str, Enum):
    """Enum for the two bearer token classes."""

    ACCESS = "access"
    REFRESH = "refresh"


def utc_now() -> datetime:
    """Current time as a naive UTC datetime, the form MongoDB hands back."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def to_timestamp(value: datetime) -> int:
    """Convert a naive UTC datetime to whole seconds since the epoch."""
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return int(value.timestamp())
