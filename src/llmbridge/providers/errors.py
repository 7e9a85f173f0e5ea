"""Error taxonomy shared by all providers.

Both vendors' HTTP failures are classified into one :class:`ProviderError`
shape. The kind is derived from the HTTP status alone, so the verdict is the
same whichever vendor produced the body, and even when the body is not JSON.
"""

import json
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class BridgeError(Exception):
    """Base error for all provider-layer failures."""


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    INVALID_REQUEST = "invalid_request"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


class ProviderError(BridgeError):
    """A classified API failure.

    ``retryable`` is advisory: the provider layer never retries on its own.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        *,
        retryable: bool = False,
        status_code: int | None = None,
        error_type: str | None = None,
    ) -> None:
        self.message = message
        self.kind = kind
        self.retryable = retryable
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message)

    @classmethod
    def malformed_response(cls, detail: str = "") -> "ProviderError":
        """A 2xx response whose body could not be decoded."""
        return cls(
            "Failed to parse response" + (f": {detail}" if detail else ""),
            ErrorKind.UNKNOWN,
        )

    @classmethod
    def missing_api_key(cls, provider: str) -> "ProviderError":
        return cls(f"{provider} API key is not configured", ErrorKind.AUTHENTICATION)

    def __repr__(self) -> str:
        return (
            f"ProviderError({self.message!r}, kind={self.kind.value}, "
            f"retryable={self.retryable}, status_code={self.status_code})"
        )


class RequestCancelledError(BridgeError):
    """The in-flight request was cancelled through its cancellation token."""

    def __init__(self) -> None:
        super().__init__("Request was cancelled")


# (kind, retryable, message prefix) per status class
_AUTH = (ErrorKind.AUTHENTICATION, False, "Authentication failed")
_RATE = (ErrorKind.RATE_LIMIT, True, "Rate limit exceeded")
_INVALID = (ErrorKind.INVALID_REQUEST, False, "Invalid request")
_SERVER = (ErrorKind.SERVER_ERROR, True, "Server error")


def _status_verdict(status_code: int) -> tuple[ErrorKind, bool, str]:
    if status_code in (401, 403):
        return _AUTH
    if status_code == 429:
        return _RATE
    if status_code == 400:
        return _INVALID
    if status_code >= 500:
        return _SERVER
    return ErrorKind.UNKNOWN, False, f"API error ({status_code})"


def _extract_error(body: str) -> tuple[str, str | None] | None:
    """Pull ``(message, type)`` out of a vendor error body.

    Anthropic nests ``{"error": {"type", "message"}}``; Gemini nests
    ``{"error": {"code", "message", "status"}}`` and has no ``type``.
    Returns ``None`` when the body is not JSON.
    """
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return None

    message = "Unknown error"
    error_type: str | None = None
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        if isinstance(error.get("message"), str) and error["message"]:
            message = error["message"]
        if isinstance(error.get("type"), str):
            error_type = error["type"]
    return message, error_type


def classify_http_error(status_code: int, body: str, vendor: str = "") -> ProviderError:
    """Map an HTTP status plus vendor error body to a :class:`ProviderError`."""
    kind, retryable, prefix = _status_verdict(status_code)
    extracted = _extract_error(body)
    if extracted is None:
        error = ProviderError(
            f"API error ({status_code}): {body}",
            kind,
            retryable=retryable,
            status_code=status_code,
        )
    else:
        message, error_type = extracted
        error = ProviderError(
            f"{prefix}: {message}",
            kind,
            retryable=retryable,
            status_code=status_code,
            error_type=error_type,
        )
    logger.warning(
        "%s request failed with HTTP %d (%s): %s",
        vendor or "Provider",
        status_code,
        kind.value,
        error.message,
    )
    return error
