"""Custom exception hierarchy for Stellar.

All application exceptions inherit from :class:`StellarError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "lastfm", "deezer") caused the failure.

The hierarchy is organized by engine concern:

    StellarError  (base -- catch-all for any Stellar error)
    +-- ProviderError            (a provider call failed or returned garbage)
    |   +-- ProviderUnavailableError (external service down / unreachable)
    |   +-- RateLimitError           (provider rate-limit exceeded)
    +-- DiscoveryError           (galaxy run produced zero candidates)
    +-- InsufficientDataError    (universe run lacks artists or tag data)
    +-- RunCancelledError        (run timed out or caller went away)
    +-- ConfigurationError       (startup / missing config)

Per-artist provider failures are degraded to "no data" inside the queued
provider wrapper; only the run-level errors (DiscoveryError,
InsufficientDataError, RunCancelledError) reach callers of the engine.
"""


class StellarError(Exception):
    """Base exception for all Stellar errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[lastfm] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(StellarError):
    """Raised when a provider call fails or returns a malformed response."""

    def __init__(
        self,
        message: str = "Provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(ProviderError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ProviderError):
    """Raised when an API rate limit is exceeded.

    Last.fm reports this as error code 29 inside an HTTP 200 body; Deezer
    uses quota error code 4.  ``retry_after`` holds the provider's
    Retry-After delay in seconds when it sent one.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        self._retry_after = retry_after
        super().__init__(message=message, provider_name=provider_name)

    @property
    def retry_after(self) -> float | None:
        return self._retry_after


# ---------------------------------------------------------------------------
# Run-level errors surfaced to engine callers
# ---------------------------------------------------------------------------

class DiscoveryError(StellarError):
    """Raised when a galaxy run finds no candidates after every strategy."""

    def __init__(
        self,
        message: str = "No artists discovered. Try different or more well-known artists.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InsufficientDataError(StellarError):
    """Raised when a universe corpus is too small or lacks tag data to cluster."""

    def __init__(
        self,
        message: str = "Could not fetch enough tag data. Try adding more well-known artists.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RunCancelledError(StellarError):
    """Raised inside a run after it was cancelled or timed out.

    Queued provider tasks belonging to the run are rejected with this error;
    tasks already in flight are allowed to finish and their results dropped.
    """

    def __init__(
        self,
        message: str = "Run was cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(StellarError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
