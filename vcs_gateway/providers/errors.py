"""Provider-agnostic error normalization.

Maps heterogeneous failures raised while talking to either backend into a
single StandardError taxonomy with a retryability verdict. Classification
is a pure function of the HTTP status, response headers and body: the same
response produces the same code and verdict whether it came from GitHub
or Gitea. The provider name only flavors the human-readable message.

Key Exports:
    normalize_error: Convert any raised exception into a StandardError.
    classify_status: Map an HTTP status (plus rate-limit info) to a code.
    extract_rate_limit: Pull rate-limit metadata out of response headers.
    is_retryable_error: Retryability query usable on errors of any shape.
    is_error_type: Code equality query.
    format_for_logging: Flatten an error into structlog keyword arguments.

Example:
    >>> try:
    ...     response.raise_for_status()
    ... except httpx.HTTPStatusError as e:
    ...     std = normalize_error(e, "github")
    ...     std.code
    <ErrorCode.NOT_FOUND: 'NOT_FOUND'>
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from vcs_gateway.enums import ErrorCode
from vcs_gateway.exceptions import ProviderRequestError
from vcs_gateway.models.domain import RateLimitInfo, StandardError

# status -> (label, default detail)
_STATUS_MESSAGES: dict[int, tuple[str, str]] = {
    400: ("Bad request", "Invalid request parameters"),
    401: ("Unauthorized", "Check your token and permissions"),
    403: ("Forbidden", "Insufficient permissions for this operation"),
    404: ("Not found", "Resource doesn't exist or has been deleted"),
    405: ("Method not allowed", "Operation not supported by this endpoint"),
    409: ("Conflict", "Resource already exists or is in use"),
    410: ("Gone", "Resource is no longer available"),
    422: ("Validation failed", "Request data was rejected"),
    429: ("Rate limited", "Too many requests"),
}

_RETRYABLE_CODES = frozenset(
    {
        ErrorCode.RATE_LIMITED,
        ErrorCode.SERVER_ERROR,
        ErrorCode.NETWORK_ERROR,
    }
)


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def extract_rate_limit(headers: Mapping[str, str]) -> RateLimitInfo | None:
    """Extract rate-limit metadata from response headers.

    Reads ``x-ratelimit-limit``, ``x-ratelimit-remaining``,
    ``x-ratelimit-reset`` (epoch seconds) and ``retry-after`` (seconds).
    Both backends use the same header names.

    Args:
        headers: Response headers (case-insensitive mapping)

    Returns:
        RateLimitInfo, or None when no rate-limit header is present
    """
    lowered = {key.lower(): value for key, value in headers.items()}
    limit = _parse_int(lowered.get("x-ratelimit-limit"))
    remaining = _parse_int(lowered.get("x-ratelimit-remaining"))
    reset_epoch = _parse_int(lowered.get("x-ratelimit-reset"))

    retry_after: float | None = None
    raw_retry_after = lowered.get("retry-after")
    if raw_retry_after is not None:
        try:
            retry_after = float(raw_retry_after)
        except ValueError:
            # HTTP-date form; not worth parsing, the reset header is preferred
            retry_after = None

    if limit is None and remaining is None and reset_epoch is None and retry_after is None:
        return None

    reset_at = datetime.fromtimestamp(reset_epoch, tz=timezone.utc) if reset_epoch is not None else None
    return RateLimitInfo(limit=limit, remaining=remaining, reset_at=reset_at, retry_after=retry_after)


def classify_status(status_code: int, rate_limit: RateLimitInfo | None = None) -> tuple[ErrorCode, bool]:
    """Map an HTTP status to a taxonomy code and retryability verdict.

    A 403 counts as rate limiting when the backend reports the quota is
    exhausted (``remaining == 0``) or asks the client to back off with
    ``retry-after``.

    Args:
        status_code: HTTP status code of the failed response
        rate_limit: Rate-limit metadata extracted from the same response

    Returns:
        Tuple of (code, retryable)
    """
    if status_code == 401:
        code = ErrorCode.UNAUTHORIZED
    elif status_code == 403:
        exhausted = rate_limit is not None and (rate_limit.remaining == 0 or rate_limit.retry_after is not None)
        code = ErrorCode.RATE_LIMITED if exhausted else ErrorCode.FORBIDDEN
    elif status_code == 404:
        code = ErrorCode.NOT_FOUND
    elif status_code == 429:
        code = ErrorCode.RATE_LIMITED
    elif 500 <= status_code <= 599:
        code = ErrorCode.SERVER_ERROR
    elif 400 <= status_code <= 499:
        code = ErrorCode.VALIDATION_ERROR
    else:
        code = ErrorCode.UNKNOWN_ERROR

    return code, code in _RETRYABLE_CODES


def _response_detail(response: httpx.Response) -> str | None:
    """Pull the backend's own error text out of a response body."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] or None

    if isinstance(body, dict):
        for key in ("message", "error", "error_description"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def _status_message(
    provider_name: str,
    status_code: int,
    code: ErrorCode,
    detail: str | None,
    rate_limit: RateLimitInfo | None,
) -> str:
    if code == ErrorCode.RATE_LIMITED:
        message = f"{provider_name}: Rate limited - {detail or 'Too many requests'}"
        if rate_limit is not None and rate_limit.reset_at is not None:
            message += f". Reset at: {rate_limit.reset_at.isoformat()}"
        return message

    if code == ErrorCode.SERVER_ERROR:
        return f"{provider_name}: Server error ({status_code}) - {detail or 'Backend failed to process the request'}"

    label, default_detail = _STATUS_MESSAGES.get(status_code, (f"HTTP {status_code}", "Request failed"))
    return f"{provider_name}: {label} - {detail or default_detail}"


def _normalize_response(exc: BaseException, response: httpx.Response, provider_name: str) -> StandardError:
    rate_limit = extract_rate_limit(response.headers)
    code, retryable = classify_status(response.status_code, rate_limit)
    detail = _response_detail(response)

    return StandardError(
        code=code,
        message=_status_message(provider_name, response.status_code, code, detail, rate_limit),
        provider=provider_name,
        status_code=response.status_code,
        retryable=retryable,
        rate_limit=rate_limit,
        original_error=exc,
    )


def _network_detail(exc: BaseException) -> str:
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return "Request timed out"
    if isinstance(exc, httpx.ConnectError):
        return f"Connection failed: {exc}" if str(exc) else "Connection failed"
    return str(exc) or type(exc).__name__


def normalize_error(raw_error: BaseException, provider_name: str) -> StandardError:
    """Normalize any raised exception into a StandardError.

    Classification rules:
        - ``httpx.HTTPStatusError``: by status code (see classify_status)
        - ``httpx.RequestError``, ``TimeoutError``, ``ConnectionError``:
          no response was received, so NETWORK_ERROR (always retryable)
        - already-normalized ProviderRequestError: returned unchanged
        - anything else: UNKNOWN_ERROR (not retryable)

    Args:
        raw_error: The exception raised while performing a request
        provider_name: Name of the provider, used in the message

    Returns:
        StandardError describing the failure
    """
    if isinstance(raw_error, ProviderRequestError):
        return raw_error.error

    if isinstance(raw_error, httpx.HTTPStatusError):
        return _normalize_response(raw_error, raw_error.response, provider_name)

    if isinstance(raw_error, (httpx.RequestError, TimeoutError, ConnectionError)):
        return StandardError(
            code=ErrorCode.NETWORK_ERROR,
            message=f"{provider_name}: Network error - {_network_detail(raw_error)}",
            provider=provider_name,
            retryable=True,
            original_error=raw_error,
        )

    return StandardError(
        code=ErrorCode.UNKNOWN_ERROR,
        message=f"{provider_name}: Unexpected error - {raw_error or type(raw_error).__name__}",
        provider=provider_name,
        retryable=False,
        original_error=raw_error,
    )


def create_error(raw_error: BaseException, provider_name: str) -> ProviderRequestError:
    """Normalize ``raw_error`` and wrap it in the exception providers raise."""
    return ProviderRequestError(normalize_error(raw_error, provider_name))


def is_retryable_error(error: Any) -> bool:
    """Return whether an error is worth retrying.

    Accepts a StandardError, a ProviderRequestError, or any object exposing
    a boolean ``retryable`` attribute. Objects without one are not
    retryable. The answer depends only on the error itself, so repeated
    calls agree.
    """
    if isinstance(error, (StandardError, ProviderRequestError)):
        return error.retryable
    return getattr(error, "retryable", False) is True


def is_error_type(error: Any, code: ErrorCode | str) -> bool:
    """Return whether ``error`` carries the given taxonomy code."""
    try:
        expected = ErrorCode(code)
    except ValueError:
        return False
    return getattr(error, "code", None) == expected


def format_for_logging(error: StandardError | ProviderRequestError) -> dict[str, Any]:
    """Flatten an error into keyword arguments for a structlog call."""
    std = error.error if isinstance(error, ProviderRequestError) else error
    fields: dict[str, Any] = {
        "error_code": std.code.value,
        "provider": std.provider,
        "status_code": std.status_code,
        "retryable": std.retryable,
        "error": std.message,
    }
    if std.rate_limit is not None:
        fields["rate_limit_remaining"] = std.rate_limit.remaining
        fields["rate_limit_reset"] = std.rate_limit.reset_at.isoformat() if std.rate_limit.reset_at else None
    return fields
