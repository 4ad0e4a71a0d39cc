"""Error taxonomy for booking-platform integration, rebooking and messaging."""

from typing import Optional


class SalonRecoveryError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(SalonRecoveryError):
    """A required payload field is missing or malformed (fatal to one event only)."""


class UnsupportedPlatformError(SalonRecoveryError):
    """Unknown platform identifier at the adapter-selection boundary."""

    def __init__(self, platform: str):
        super().__init__(f"Unsupported platform: {platform}")
        self.platform = platform


class NormalizationError(SalonRecoveryError):
    """A platform value could not be mapped into the canonical model."""


class BookingPlatformError(SalonRecoveryError):
    """An error reported by (or while talking to) a booking platform."""

    retryable = False

    def __init__(self, message: str, platform: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.code = code


class AuthenticationError(BookingPlatformError):
    """Authentication with the platform failed; the adapter is disconnected."""


class InvalidCredentialsError(AuthenticationError):
    """Configured credentials were rejected by the platform."""


class UnauthorizedError(AuthenticationError):
    """The stored token is no longer accepted; re-authentication is required."""


class RateLimitExceededError(BookingPlatformError):
    """The platform API rate limit was hit."""

    retryable = True


class PlatformAPIError(BookingPlatformError):
    """Any other platform error, carrying the platform's own message."""


class AdapterTimeoutError(BookingPlatformError):
    """A platform call did not complete in time (transient)."""

    retryable = True


class MessageNotFoundError(SalonRecoveryError, KeyError):
    """No scheduled message exists with the given id."""

    def __init__(self, message_id: str):
        super().__init__(message_id)
        self.message_id = message_id

    def __str__(self) -> str:
        return f"Scheduled message {self.message_id} not found"


class InvalidMessageTransitionError(SalonRecoveryError):
    """A scheduled message cannot move from its current status to the requested one."""

    def __init__(self, message_id: str, current: str, requested: str):
        super().__init__(f"Scheduled message {message_id} is {current}; cannot change to {requested}")
        self.message_id = message_id
        self.current = current
        self.requested = requested
