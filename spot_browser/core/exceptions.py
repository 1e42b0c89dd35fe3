"""
Exception classes for spot-browser.

Every error raised by the browser derives from SpotBrowserError, which
carries a human-readable message and a details dictionary for logging.

Exception Hierarchy:
    SpotBrowserError (base)
        ConfigError - Settings file or credential issues
        AuthError - OAuth authorization / refresh failures
        ListenerError - OAuth callback listener could not start
        ApiError - A single upstream request failed
            UnauthorizedError - HTTP 401, access token rejected
            RateLimitedError - HTTP 429, upstream asks us to slow down
            TransportError - Network, TLS or timeout failure
            DecodeError - Response did not match the expected shape
            OtherApiError - Anything else the upstream reported

Stale loading sessions are not errors: their replies are dropped silently
by the container controller and never surface as exceptions.
"""


class SpotBrowserError(Exception):
    """
    Base exception for all spot-browser errors.

    Attributes:
        message: Human-readable error description.
        details: Dictionary with additional context (status codes, URLs,
                 the wrapped exception text).

    Example:
        try:
            store.refresh()
        except SpotBrowserError as e:
            logger.error(f"Refresh failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotBrowserError):
    """
    Raised when the settings file is unreadable or holds invalid values.

    Example:
        raise ConfigError(
            "'show_notifications' must be a boolean",
            details={'field': 'show_notifications', 'value': 'maybe'}
        )
    """
    pass


class AuthError(SpotBrowserError):
    """
    Raised when the OAuth flow cannot produce a usable token.

    Common causes:
        - Client id/secret missing or rejected by the accounts service
        - No refresh token stored (user never logged in)
        - Callback code rejected during exchange
    """
    pass


class ListenerError(SpotBrowserError):
    """Raised when no port in the callback range can be bound."""
    pass


class ApiError(SpotBrowserError):
    """
    Base class for failures of a single upstream request.

    The transport raises exactly one ApiError subclass per failed call and
    never retries on its own; classification into repeat/wait/forward is
    the retry policy's job.

    Attributes:
        http_status: HTTP status code when the upstream answered, else None.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        http_status: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.http_status = http_status
        if http_status is not None:
            self.details.setdefault("http_status", http_status)


class UnauthorizedError(ApiError):
    """HTTP 401: the access token is missing, expired or revoked."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message, details, http_status=401)


class RateLimitedError(ApiError):
    """
    HTTP 429: the upstream asked the client to slow down.

    Attributes:
        retry_after: Seconds from the Retry-After header, or None when
                     the header was absent or unparseable.
    """

    def __init__(
        self,
        message: str,
        retry_after: int | None = None,
        details: dict | None = None
    ) -> None:
        super().__init__(message, details, http_status=429)
        self.retry_after = retry_after


class TransportError(ApiError):
    """Network, TLS or timeout failure before a response was received."""
    pass


class DecodeError(ApiError):
    """The response body did not have the expected structure."""
    pass


class OtherApiError(ApiError):
    """Any other upstream failure (4xx/5xx not covered above)."""
    pass
