"""
Exception hierarchy for DelayWatch.

Provider errors are raised by the flight data client and caught per airport
by the poll cycle. Validation errors reject bad input at the API boundary.
Persistence errors wrap database failures in the store.
"""


class DelayWatchError(Exception):
    """Base class for all DelayWatch errors."""


class ProviderError(DelayWatchError):
    """Flight data provider failed to return a usable snapshot."""

    status_code = 502


class ProviderAuthError(ProviderError):
    """Provider rejected our credentials (or none are configured)."""

    status_code = 401


class ProviderRateLimitError(ProviderError):
    """Provider rate limit or monthly quota exceeded."""

    status_code = 429


class ProviderTransientError(ProviderError):
    """Network failure, timeout, server error, or malformed payload."""


class ValidationError(DelayWatchError):
    """User-supplied value rejected at the boundary."""


class PersistenceError(DelayWatchError):
    """Reading from or writing to the durable store failed."""
