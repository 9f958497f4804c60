"""
API error taxonomy.

Every failure the client can see from the remote API is one of the classes below.
Transient ones (network, timeout, rate limit, 5xx) are marked retryable; the rest
surface directly to the caller. Limit errors drive the paywall.
"""
import enum
import json
from dataclasses import dataclass

import httpx


class APIErrorCode(str, enum.Enum):
    unauthorized = "UNAUTHORIZED"
    restricted_access = "RESTRICTED_ACCESS"
    internal_server_error = "INTERNAL_SERVER_ERROR"
    daily_limit_reached = "DAILY_LIMIT_REACHED"
    total_limit_reached = "TOTAL_LIMIT_REACHED"
    invalid_cursor = "INVALID_CURSOR"
    moment_not_found = "MOMENT_NOT_FOUND"
    forbidden = "FORBIDDEN"
    invalid_request = "INVALID_REQUEST"
    enrichment_in_progress = "ENRICHMENT_IN_PROGRESS"

    @classmethod
    def parse(cls, value) -> "APIErrorCode | None":
        try:
            return cls(value)
        except ValueError:
            return None


class SyncErrorMessages:
    daily_limit_reached = "Daily limit reached"
    total_limit_reached = "Total limit reached"
    upgrade_required = "Limit reached"
    enrichment_failed = "Couldn't fetch extra encouragement this time."


def is_limit_error_message(message: str | None) -> bool:
    """True when a persisted sync error came from a usage limit."""
    return bool(message) and "limit" in message.lower()


class APIError(Exception):
    """Base class for every remote API failure."""

    default_message = "Something went wrong."

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        is_retryable: bool = False,
        code: APIErrorCode | None = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.code = code


class NetworkError(APIError):
    default_message = "Network request failed. Please check your connection."

    def __init__(self, message: str | None = None):
        super().__init__(message, None, True)


class RequestTimeoutError(APIError):
    default_message = "Request timed out. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message, 408, True)


class OfflineError(APIError):
    """No connectivity at all; retrying will not help until the user acts."""

    default_message = "No internet connection. Please check your network settings."

    def __init__(self, message: str | None = None):
        super().__init__(message, None, False)


class AuthError(APIError):
    default_message = "Authentication failed."

    def __init__(self, message: str | None = None, status_code: int = 401, code: APIErrorCode | None = None):
        super().__init__(message, status_code, False, code)


class ValidationError(APIError):
    default_message = "Validation failed."

    def __init__(
        self,
        message: str | None = None,
        errors: dict[str, list[str]] | None = None,
        status_code: int = 400,
        code: APIErrorCode | None = None,
    ):
        super().__init__(message, status_code, False, code)
        self.errors = errors


class NotFoundError(APIError):
    default_message = "Resource not found."

    def __init__(self, message: str | None = None, status_code: int = 404, code: APIErrorCode | None = None):
        super().__init__(message, status_code, False, code)


class RateLimitError(APIError):
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int | None = None):
        super().__init__(message, 429, True)
        self.retry_after = retry_after


class ServerError(APIError):
    default_message = "Server error. Please try again."

    def __init__(self, message: str | None = None, status_code: int = 500, code: APIErrorCode | None = None):
        super().__init__(message, status_code, True, code)


class UserIdError(APIError):
    default_message = "User ID is required but not set."


class LimitReachedError(APIError):
    """Free-plan usage limit hit; the paywall should be shown."""

    def __init__(self, message: str | None = None, status_code: int | None = 429, code: APIErrorCode | None = None):
        super().__init__(message, status_code, False, code)


class DailyLimitReachedError(LimitReachedError):
    default_message = SyncErrorMessages.daily_limit_reached

    def __init__(self, message: str | None = None, status_code: int | None = 429):
        super().__init__(message, status_code, APIErrorCode.daily_limit_reached)


class TotalLimitReachedError(LimitReachedError):
    default_message = SyncErrorMessages.total_limit_reached

    def __init__(self, message: str | None = None, status_code: int | None = 403):
        super().__init__(message, status_code, APIErrorCode.total_limit_reached)


class EnrichmentInProgressError(APIError):
    """409 from the enrich endpoint: praise is already being generated."""

    default_message = "Enrichment already in progress."

    def __init__(self, message: str | None = None):
        super().__init__(message, 409, False, APIErrorCode.enrichment_in_progress)


class DecodingError(APIError):
    default_message = "Failed to decode server response"

    def __init__(self, message: str | None = None, cause: Exception | None = None):
        super().__init__(message, None, False)
        self.cause = cause


def _parse_error_body(response: httpx.Response) -> tuple[str | None, APIErrorCode | None, dict | None]:
    """Return (message, code, raw json) from an error body; tolerant of any shape."""
    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type:
        text = response.text.strip() if response.content else ""
        return (text or None), None, None
    try:
        data = response.json()
    except (json.JSONDecodeError, ValueError):
        return None, None, None
    if not isinstance(data, dict):
        return None, None, None
    err = data.get("error")
    if isinstance(err, dict):
        return err.get("message"), APIErrorCode.parse(err.get("code")), data
    message = data.get("message") or (err if isinstance(err, str) else None)
    return message, APIErrorCode.parse(data.get("code")), data


def error_from_response(response: httpx.Response) -> APIError:
    """Map a non-2xx response to the matching APIError subclass."""
    status = response.status_code
    message, code, data = _parse_error_body(response)
    message = message or f"Request failed with status {status}"

    # Error code from the envelope wins over the bare status
    if code == APIErrorCode.daily_limit_reached:
        return DailyLimitReachedError(message, status)
    if code == APIErrorCode.total_limit_reached:
        return TotalLimitReachedError(message, status)
    if code == APIErrorCode.moment_not_found:
        return NotFoundError(message, status, code)
    if code in (APIErrorCode.unauthorized, APIErrorCode.forbidden):
        return AuthError(message, status, code)
    if code == APIErrorCode.enrichment_in_progress or status == 409:
        return EnrichmentInProgressError(message)

    if status in (400, 422):
        errors = data.get("errors") if isinstance(data, dict) else None
        return ValidationError(message, errors if isinstance(errors, dict) else None, status, code)
    if status in (401, 403):
        return AuthError(message, status, code)
    if status == 404:
        return NotFoundError(message, status, code)
    if status == 408:
        return RequestTimeoutError(message)
    if status == 429:
        try:
            retry_after = int(response.headers.get("retry-after", "60"))
        except ValueError:
            retry_after = 60
        return RateLimitError(message, retry_after)
    if status in (500, 502, 503, 504):
        return ServerError(message, status, code)
    return APIError(message, status, status >= 500, code)


def is_retryable_error(exc: BaseException) -> bool:
    return isinstance(exc, APIError) and exc.is_retryable


@dataclass(frozen=True)
class ErrorMessage:
    title: str
    message: str
    action: str | None
    is_retryable: bool


def user_friendly_error(exc: BaseException) -> ErrorMessage:
    """Turn any exception into copy that can be shown to the user."""
    if isinstance(exc, OfflineError):
        return ErrorMessage(
            "No Connection",
            "You're currently offline. Please check your internet connection and try again.",
            "Check Connection",
            False,
        )
    if isinstance(exc, NetworkError):
        return ErrorMessage(
            "Connection Failed",
            "We couldn't reach the server. Please check your connection and try again.",
            "Retry",
            True,
        )
    if isinstance(exc, RequestTimeoutError):
        return ErrorMessage("Request Timed Out", "The request took too long. Please try again.", "Try Again", True)
    if isinstance(exc, AuthError):
        return ErrorMessage("Authentication Required", "Please restart the app to continue.", "Restart App", False)
    if isinstance(exc, ValidationError):
        if exc.errors:
            message = ", ".join(m for msgs in exc.errors.values() for m in msgs)
        else:
            message = exc.message
        return ErrorMessage(
            "Invalid Input", message or "Please check your input and try again.", "Go Back", False
        )
    if isinstance(exc, NotFoundError):
        return ErrorMessage(
            "Not Found",
            "The item you're looking for doesn't exist or has been removed.",
            "Go Back",
            False,
        )
    if isinstance(exc, RateLimitError):
        minutes = -(-exc.retry_after // 60) if exc.retry_after else 1
        return ErrorMessage(
            "Too Many Requests",
            f"You're doing that too often. Please wait {minutes} minute{'s' if minutes > 1 else ''} and try again.",
            "Wait",
            False,
        )
    if isinstance(exc, LimitReachedError):
        return ErrorMessage("Limit Reached", exc.message, "Upgrade", False)
    if isinstance(exc, ServerError):
        return ErrorMessage(
            "Server Error",
            "Something went wrong on our end. We're working on it. Please try again in a moment.",
            "Try Again",
            True,
        )
    if isinstance(exc, UserIdError):
        return ErrorMessage("Setup Error", "Please restart the app to continue.", "Restart App", False)
    if isinstance(exc, APIError):
        return ErrorMessage(
            "Something Went Wrong",
            exc.message or "An unexpected error occurred. Please try again.",
            "Try Again" if exc.is_retryable else "Go Back",
            exc.is_retryable,
        )
    return ErrorMessage(
        "Unexpected Error",
        str(exc) or "Something unexpected happened. Please try again.",
        "Try Again",
        True,
    )
