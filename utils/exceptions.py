"""Error types raised by the authentication core."""

from fastapi import status


class ConfigurationError(Exception):
    """Raised at startup when required secrets are missing or too weak."""


class AuthError(Exception):
    """Base class for authentication failures surfaced to API clients.

    ``message`` is always safe to show to the caller.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Authentication failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedRequest(AuthError):
    default_message = "Validation error"


class InvalidSignature(AuthError):
    default_message = "Invalid Telegram authentication data"


class StaleAssertion(AuthError):
    default_message = "Telegram authentication data has expired. Please log in again."


class PrincipalNotRegistered(AuthError):
    default_message = "User not registered. Please register via the bot first."


class InsufficientPermission(AuthError):
    default_message = "You do not have permission to access the dashboard"


class RateLimited(AuthError):
    default_message = "Too many failed login attempts. Please try again later."

    def __init__(self, minutes_left: int | None = None):
        message = None
        if minutes_left is not None:
            message = (
                "Too many failed login attempts. "
                f"Please try again in {minutes_left} minute(s)."
            )
        self.minutes_left = minutes_left
        super().__init__(message)


class InvalidToken(AuthError):
    """Forged, expired, malformed or revoked token. Deliberately undifferentiated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"
