"""Exception types shared across coach-sync."""


class CoachSyncError(Exception):
    """Base class for coach-sync errors."""


class ConfigurationError(CoachSyncError):
    """Raised when required configuration (secrets, credentials) is missing."""


class NotFoundError(CoachSyncError):
    """Raised when a referenced row does not exist."""


class InvalidTimeError(CoachSyncError, ValueError):
    """Raised for malformed day keys or HH:MM strings."""


class UpstreamError(CoachSyncError):
    """A transient failure talking to the activity provider."""

    def __init__(self, message: str, status_code: int | None = None, code: str = "UPSTREAM_ERROR"):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class RateLimitedError(UpstreamError):
    """The provider rejected the request with a rate limit."""

    def __init__(self, message: str = "Strava rate limit hit. Try again later."):
        super().__init__(message, status_code=429, code="STRAVA_RATE_LIMITED")


def is_rate_limit_error(error: BaseException | str) -> bool:
    """Classify an exception (or a recorded message) as a rate-limit failure."""
    if isinstance(error, RateLimitedError):
        return True
    if isinstance(error, UpstreamError) and error.status_code == 429:
        return True
    return "rate limit" in str(error).lower()


class ConflictError(CoachSyncError):
    """Raised when an entry is not in a state that allows the requested change."""
