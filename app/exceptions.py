"""
Exception hierarchy for the Content Library API.

Services raise these; ``app.error_handlers`` turns them into the uniform
error body using ``status_code``, ``error_code``, ``hint`` and ``details``.

    ContentLibraryException (500)
    ├── ValidationError (400)
    ├── ConflictError (400)
    ├── ResourceNotFoundError (404)
    ├── ConfigurationError (500)
    │   └── HistoryNotConfiguredError (400)
    └── UpstreamError (500)
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Machine-readable ``error_code`` values."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
    PROTECTED_RESOURCE = "PROTECTED_RESOURCE"
    HISTORY_NOT_CONFIGURED = "HISTORY_NOT_CONFIGURED"

    # 404
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"

    # 500
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"


def _truncate(value: Any, limit: int) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."


class ContentLibraryException(Exception):
    """
    Base class for every error the API reports on purpose.

    ``message`` and ``hint`` are shown to clients; ``internal_message``
    only reaches the log. Subclasses set ``status_code`` and the defaults.
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = dict(details or {})
        self.hint = hint
        self.internal_message = internal_message
        super().__init__(self.message)

    def _add_detail(self, key: str, value: Any) -> None:
        if value is not None:
            self.details[key] = value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, error_code={self.error_code.value})"


class ValidationError(ContentLibraryException):
    """Missing, empty or oversized input, or a schema lacking a needed field."""

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self._add_detail("field", field or None)
        self._add_detail("value", None if value is None else _truncate(value, 100))


class ConflictError(ContentLibraryException):
    """
    A category edit that clashes with the registry: a duplicate name or
    the protected "General" category. Reported as 400, like validation.
    """

    status_code = 400
    default_error_code = ErrorCode.RESOURCE_CONFLICT
    default_message = "Resource conflict"

    def __init__(self, message: Optional[str] = None, resource_type: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self._add_detail("resource_type", resource_type or None)


class ResourceNotFoundError(ContentLibraryException):
    """Unknown item id, category name or (content id, version) pair."""

    status_code = 404
    default_error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self._add_detail("resource_type", resource_type or None)
        self._add_detail("resource_id", resource_id[:36] if resource_id else None)


class ConfigurationError(ContentLibraryException):
    """A backing collection is missing, unshared or misconfigured. Not retryable."""

    status_code = 500
    default_error_code = ErrorCode.CONFIGURATION_ERROR
    default_message = "Document store is not configured"

    def __init__(
        self,
        message: Optional[str] = None,
        hint: Optional[str] = None,
        missing_vars: Optional[List[str]] = None,
        **kwargs: Any,
    ):
        self.missing_vars = list(missing_vars or [])
        super().__init__(message, hint=hint, **kwargs)


HISTORY_SETUP_HINT = (
    "Create a ContentHistory database in Notion and set "
    "NOTION_HISTORY_DATABASE_ID in environment variables"
)


class HistoryNotConfiguredError(ConfigurationError):
    """Restore was requested but there is no history collection."""

    status_code = 400
    default_error_code = ErrorCode.HISTORY_NOT_CONFIGURED
    default_message = "Version history not configured"

    def __init__(self, message: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(
            message,
            hint=hint or HISTORY_SETUP_HINT,
            missing_vars=["NOTION_HISTORY_DATABASE_ID"],
        )


class UpstreamError(ContentLibraryException):
    """
    A document store call failed part way through an operation.

    Nothing already written is rolled back. Bulk operations set
    ``succeeded`` and ``failed`` so callers can tell how far they got.
    """

    status_code = 500
    default_error_code = ErrorCode.UPSTREAM_ERROR
    default_message = "Document store request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        status: Optional[int] = None,
        succeeded: Optional[int] = None,
        failed: Optional[int] = None,
        original_error: Optional[Exception] = None,
        internal_message: Optional[str] = None,
        **kwargs: Any,
    ):
        if internal_message is None and original_error is not None:
            internal_message = str(original_error)
        super().__init__(message, internal_message=internal_message, **kwargs)
        self.status = status
        self.original_error = original_error
        self._add_detail("operation", operation or None)
        self._add_detail("succeeded", succeeded)
        self._add_detail("failed", failed)


def is_retryable_error(exc: Exception) -> bool:
    """
    Whether running the same request again may succeed.

    Category migrations only touch items still carrying the old label, so a
    retry after a partial upstream failure finishes the job.
    """
    return isinstance(exc, UpstreamError)


def get_safe_error_message(exc: Exception) -> str:
    """The client-facing message for ``exc``; never the text of a foreign exception."""
    if isinstance(exc, ContentLibraryException):
        return exc.message
    return "An unexpected error occurred. Please try again later."
