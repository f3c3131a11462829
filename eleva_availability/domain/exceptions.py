"""
Domain-specific exception hierarchy for the availability resolver.
"""


class AvailabilityError(Exception):
    """Base class for all application-level errors."""


class CalendarAPIError(AvailabilityError):
    """Raised when calendar data cannot be fetched or parsed."""


class AuthenticationError(AvailabilityError):
    """Raised when authentication or token handling fails."""


class ScheduleValidationError(AvailabilityError, ValueError):
    """Raised when a schedule is rejected at the write boundary."""
