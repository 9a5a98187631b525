"""Error taxonomy for completion requests and the classifier that maps
HTTP outcomes onto it.

Every failure a caller can observe is a :class:`CompletionError`.  The
classifier functions never raise; they return the error so the
transport can decide whether to raise it or report it through a
stream's error channel.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Base class for every error surfaced by chatstream.

    Attributes:
        message: Human-readable description, safe to show to a user.
        code: Stable identifier for programmatic handling.
        status_code: HTTP status when the error came from a response.
        retryable: Whether repeating the same request may succeed.
        suggestion: Optional remediation hint for the user.
        details: Extra context (server error type, raw body, ...).
    """

    code = "completion_error"
    retryable = False
    suggestion: str | None = None

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        if suggestion is not None:
            self.suggestion = suggestion
        self.details = details or {}

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"status_code={self.status_code})"
        )


class InvalidRequestError(CompletionError):
    """The request could not be built from what the caller passed."""

    code = "invalid_request"


class DuplicateStreamError(InvalidRequestError):
    """A stream with this identifier is still active; cancel it first."""

    code = "duplicate_stream"

    def __init__(self, stream_id):
        super().__init__(
            f"Stream {stream_id!r} is already active",
            suggestion="Cancel the active stream before starting a new one.",
        )
        self.stream_id = stream_id


class MissingAPIKeyError(InvalidRequestError):
    code = "missing_api_key"
    suggestion = "Set OPENROUTER_API_KEY or pass api_key to the provider."

    def __init__(
        self,
        message: str = "API key is required. Please add your OpenRouter API key.",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


class InvalidResponseError(CompletionError):
    """The server answered with a body we could not interpret."""

    code = "invalid_response"

    def __init__(self, message: str = "Invalid response from server", **kwargs):
        super().__init__(message, **kwargs)


class RateLimitError(CompletionError):
    """HTTP 429.

    Attributes:
        retry_after: Seconds to wait, from the ``Retry-After`` header,
            or ``None`` when the server did not say.
    """

    code = "rate_limited"
    retryable = True

    def __init__(self, retry_after: int | None = None, **kwargs):
        if retry_after is not None:
            message = (
                f"Rate limited. Please wait {retry_after} seconds "
                "before trying again."
            )
            suggestion = f"Wait {retry_after} seconds and try again."
        else:
            message = "Rate limited. Please try again in a few moments."
            suggestion = (
                "Wait for the rate limit to reset, or upgrade your plan "
                "for higher limits."
            )
        kwargs.setdefault("status_code", 429)
        kwargs.setdefault("suggestion", suggestion)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class InsufficientCreditsError(CompletionError):
    code = "insufficient_credits"
    suggestion = (
        "Add credits to your OpenRouter account to continue using the service."
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("status_code", 402)
        super().__init__(
            "Insufficient credits. Please add credits to your OpenRouter account.",
            **kwargs,
        )


class ModelNotFoundError(CompletionError):
    code = "model_not_found"
    suggestion = "Choose a different model."

    def __init__(self, **kwargs):
        kwargs.setdefault("status_code", 404)
        super().__init__(
            "The selected model is not available. "
            "Please choose a different model.",
            **kwargs,
        )


class ContextLengthExceededError(CompletionError):
    code = "context_length_exceeded"
    suggestion = (
        "Try shortening your message or selecting a model with a larger "
        "context window."
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("status_code", 413)
        super().__init__(
            "Message too long for this model. Please shorten your message "
            "or choose a model with a larger context window.",
            **kwargs,
        )


_STATUS_MESSAGES = {
    400: ("Bad request", "Invalid request parameters"),
    401: ("Authentication failed", "Please check your API key"),
    403: ("Access forbidden", "Insufficient permissions"),
    404: ("Model not found", "The requested model is not available"),
    429: ("Rate limit exceeded", "Please try again later"),
    500: ("Server error", "The service is experiencing issues"),
    502: ("Service unavailable", "The service is temporarily unavailable"),
    503: ("Service unavailable", "The service is temporarily unavailable"),
    504: ("Service unavailable", "The service is temporarily unavailable"),
}

_STATUS_SUGGESTIONS = {
    401: "Check your API key and make sure it's valid.",
    429: "Wait a moment and try again, or upgrade your plan.",
}


class HTTPStatusError(CompletionError):
    """Any non-200 status without a dedicated class.

    Attributes:
        server_message: The server's own error text, surfaced verbatim.
    """

    code = "http_error"

    def __init__(self, status_code: int, server_message: str | None = None, **kwargs):
        if status_code == 401:
            message = "Authentication failed: Please check your API key"
        elif status_code in _STATUS_MESSAGES:
            title, fallback = _STATUS_MESSAGES[status_code]
            message = f"{title}: {server_message or fallback}"
        else:
            message = f"HTTP error {status_code}: {server_message or 'Unknown error'}"
        if status_code >= 500:
            kwargs.setdefault(
                "suggestion",
                "This is a temporary server issue. Please try again in a few minutes.",
            )
        elif status_code in _STATUS_SUGGESTIONS:
            kwargs.setdefault("suggestion", _STATUS_SUGGESTIONS[status_code])
        super().__init__(message, status_code=status_code, **kwargs)
        self.server_message = server_message
        self.retryable = status_code >= 500 or status_code == 408


class NetworkError(CompletionError):
    """The transport failed before or during the response."""

    code = "network_error"
    retryable = True
    suggestion = "Check your internet connection and try again."


class StreamingInterruptedError(CompletionError):
    """The body ended without a finish reason or ``[DONE]``, or the
    connection dropped after body text had started to arrive.

    Attributes:
        partial_content: Text delivered before the stream broke off.
    """

    code = "streaming_interrupted"
    suggestion = "Check your internet connection and try sending the message again."

    def __init__(self, partial_content: str = "", **kwargs):
        super().__init__(
            "Connection was interrupted during streaming.", **kwargs
        )
        self.partial_content = partial_content


def parse_retry_after(value: str | None) -> int | None:
    """Parse a ``Retry-After`` header given in whole seconds."""
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        logger.debug(f"Ignoring non-integer Retry-After: {value!r}")
        return None
    return max(seconds, 0)


def extract_error_message(body: bytes | str | None) -> str | None:
    """Pull the human-readable message out of a JSON error body.

    Accepts ``{"error": {"message": ...}}`` and ``{"message": ...}``.
    """
    if not body:
        return None
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if data.get("message"):
        return str(data["message"])
    return None


def classify_response(
    status_code: int,
    headers: Mapping[str, str] | None = None,
    body: bytes | str | None = None,
) -> CompletionError:
    """Map a non-200 response onto the error taxonomy."""
    headers = httpx.Headers(headers or {})
    server_message = extract_error_message(body)
    details = {"server_message": server_message} if server_message else {}

    if status_code == 429:
        return RateLimitError(
            retry_after=parse_retry_after(headers.get("retry-after")),
            details=details,
        )
    if status_code == 402:
        return InsufficientCreditsError(details=details)
    if status_code == 404:
        return ModelNotFoundError(details=details)
    if status_code == 413:
        return ContextLengthExceededError(details=details)
    return HTTPStatusError(status_code, server_message, details=details)


def classify_transport_error(exc: Exception) -> NetworkError:
    """Map an ``httpx`` transport exception onto :class:`NetworkError`."""
    if isinstance(exc, httpx.TimeoutException):
        message = "Request timed out. Please try again."
    elif isinstance(exc, httpx.ConnectError):
        message = (
            "Could not connect to the server. "
            "Please check your network and try again."
        )
    else:
        message = f"Network error: {str(exc) or type(exc).__name__}"
    return NetworkError(message, details={"exception": type(exc).__name__})
