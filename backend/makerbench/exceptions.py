"""
MakerBench Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) map each type
       to an HTTP status code and render the JSON error envelope:

           {"success": false, "error": "<message>", "details": {...},
            "request_id": "<id>"}

Exception Hierarchy:
    MakerBenchError (base)
    ├── ValidationError              → 400 Bad Request
    │   ├── InvalidUrlError          → 400 (malformed bookmark URL)
    │   └── TagValidationError       → 400 (tag empty after normalization)
    ├── AuthorizationError           → 403 Forbidden (moderation API)
    ├── NotFoundError                → 404 Not Found
    ├── ConflictError                → 409 Conflict (duplicate URL)
    ├── RateLimitExceededError       → 429 Too Many Requests
    ├── DatabaseError                → 500 Internal Server Error
    ├── FileStorageError             → 500 Internal Server Error
    ├── MetadataParseError           → 500 (stored metadata JSON unreadable)
    ├── MetadataStringifyError       → 500 (metadata not serializable)
    ├── ScreenshotServiceError       → handled inside the submission workflow
    └── CircuitBreakerOpenError      → handled inside the submission workflow
"""

from typing import Any, Dict, Optional


class MakerBenchError(Exception):
    """
    Base exception for all MakerBench application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info; returned as `details` only by the
                  handlers that explicitly expose it
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(MakerBenchError):
    """
    Raised when client input fails validation.

    When:    Malformed `limit`/`offset` query parameters, too many tag filters,
             over-long search text, invalid URLs or tag names.
    HTTP:    400 Bad Request

    Request-body schema failures are reported by FastAPI's own
    RequestValidationError instead and rendered as 422 with per-field details.

    Example response:
        {
            "success": false,
            "error": "Invalid 'limit' parameter: must be a positive integer",
            "details": {"field": "limit", "value": "abc"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidUrlError(ValidationError):
    """Raised when a bookmark URL is not an absolute http(s) URL."""

    def __init__(self, url: str):
        super().__init__(
            message=f"Invalid URL format: {url}",
            field="url",
            context={"url": url},
        )
        self.url = url


class TagValidationError(ValidationError):
    """Raised when a tag name is empty or becomes empty after normalization."""

    def __init__(self, message: str = "Tag name must be a non-empty string"):
        super().__init__(message=message, field="tags")


class AuthorizationError(MakerBenchError):
    """
    Raised when a moderation request carries no valid admin token.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "A valid admin token is required for this operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(MakerBenchError):
    """
    Raised when a requested resource does not exist.

    When:    Moderating an unknown bookmark ID, serving a missing screenshot.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(MakerBenchError):
    """
    Raised when a submission collides with an existing record.

    When:    A bookmark with the same normalized URL already exists.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "This URL has already been submitted",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(MakerBenchError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests (with a Retry-After header)
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class DatabaseError(MakerBenchError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic; the context
    (exception type, bookmark id) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(MakerBenchError):
    """
    Raised when screenshot files cannot be written or read.

    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MetadataParseError(MakerBenchError):
    """Raised when the stored metadata JSON cannot be decoded."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message=message)
        self.__cause__ = cause


class MetadataStringifyError(MakerBenchError):
    """Raised when a metadata mapping cannot be encoded as JSON."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message=message)
        self.__cause__ = cause


class ScreenshotServiceError(MakerBenchError):
    """
    Raised when the screenshot API cannot produce an image.

    When:    Missing API key, non-2xx response, timeout, or retries exhausted.
    Handling: The submission workflow catches it and stores the bookmark
              with the fallback image source; the error text is recorded in
              the bookmark's metadata column.
    """

    def __init__(
        self,
        message: str = "Screenshot capture failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CircuitBreakerOpenError(ScreenshotServiceError):
    """
    Raised when the screenshot circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for the recovery time)
        → After the recovery time → HALF-OPEN (allow one test call)
        → If test succeeds → CLOSED
        → If test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(
            message=(
                "Screenshot service is temporarily unavailable due to repeated failures. "
                f"Capture will be retried in approximately {recovery_time} seconds."
            ),
            context=ctx,
        )
        self.recovery_time = recovery_time
