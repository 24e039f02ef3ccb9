"""Error taxonomy shared by the sync client and the webhook receiver.

Webhook-side errors (AuthenticationError, MalformedPayloadError) are mapped
to HTTP 401/400 at the webhook boundary and never reach event handlers.
Client-side errors (TransportError, ApiError, MalformedResponseError) always
propagate to the caller; nothing in this package retries on its own.
"""

from __future__ import annotations


class PoboError(Exception):
    """Base class for all pobo_sync errors."""


class ConfigError(PoboError):
    """A required credential or setting is missing at startup."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required configuration: {', '.join(self.missing)}")


class AuthenticationError(PoboError):
    """Webhook signature is missing or does not match the payload."""


class MalformedPayloadError(PoboError):
    """Verified webhook body is not valid JSON or lacks required fields."""


class TransportError(PoboError):
    """Network failure while talking to the remote API."""

    def __init__(self, message: str, *, timeout: bool = False) -> None:
        self.timeout = timeout
        super().__init__(message)


class ApiError(PoboError):
    """Remote API answered with HTTP status >= 400."""

    def __init__(self, http_status: int, body: str, retry_after: float | None = None) -> None:
        self.http_status = http_status
        self.body = body
        self.retry_after = retry_after
        super().__init__(f"API error: HTTP {http_status} - {body}")


class MalformedResponseError(PoboError):
    """Remote API answered 2xx with a body that does not match the documented shape."""
