"""
Exception handlers that turn every failure into the uniform error body:

    {"success": false, "error": "...", "error_code": "...",
     "hint": "...", "details": {...}}

``hint`` and ``details`` are omitted when empty. Messages are scrubbed and
details are reduced to an allow-list before anything leaves the process;
the unabridged story goes to the log and, for 5xx, to Sentry.
"""

import logging
import os
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import ContentLibraryException, ErrorCode, get_safe_error_message
from .middleware.logging import get_request_id_from_request

logger = logging.getLogger(__name__)

IS_PRODUCTION = os.environ.get("ENVIRONMENT", "development").lower() == "production"

GENERIC_MESSAGE = "An error occurred while processing your request"
MAX_MESSAGE_LENGTH = 500
MAX_LIST_ITEMS = 10

# A message mentioning any of these is replaced wholesale.
_LEAKY = re.compile(
    r"api[_-]?key|secret|password|token|credential|bearer"
    r"|/home/|/Users/|/var/|/etc/"
    r"|\$\{?\w+\}?",
    re.IGNORECASE,
)
_FILE_PATH = re.compile(r"[/\\][\w./\\-]+\.\w+")
_IPV4 = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")

SAFE_DETAIL_KEYS = frozenset({
    "field", "value", "resource_type", "resource_id", "collection",
    "operation", "succeeded", "failed",
    "error_reference", "sentry_event_id",
})

_VALIDATION_PHRASES = {
    "missing": "is required",
    "string_type": "must be a string",
    "int_type": "must be an integer",
    "int_parsing": "must be an integer",
    "bool_type": "must be a boolean",
    "bool_parsing": "must be a boolean",
    "literal_error": "has an invalid value",
    "enum": "has an invalid value",
}

_CODES_BY_STATUS = {
    400: ErrorCode.VALIDATION_ERROR,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    409: ErrorCode.RESOURCE_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.UPSTREAM_ERROR,
    503: ErrorCode.UPSTREAM_ERROR,
    504: ErrorCode.UPSTREAM_ERROR,
}


def sanitize_error_message(message: str) -> str:
    """Make a message safe to show to API clients."""
    if not message:
        return message
    if _LEAKY.search(message):
        return GENERIC_MESSAGE

    message = _IPV4.sub("[ip]", _FILE_PATH.sub("[path]", message))
    if len(message) > MAX_MESSAGE_LENGTH:
        message = message[:MAX_MESSAGE_LENGTH] + "..."
    return message


def _safe_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_error_message(value)
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, list):
        return [v for v in value if isinstance(v, (str, bool, int, float))][:MAX_LIST_ITEMS]
    return None


def sanitize_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Keep allow-listed keys with primitive values (or lists of them), plus
    the ``errors`` list built from validation failures.
    """
    sanitized: Dict[str, Any] = {}
    for key, value in (details or {}).items():
        if key == "errors" and isinstance(value, list):
            sanitized[key] = [
                {k: str(err[k]) for k in ("field", "message") if k in err}
                for err in value[:MAX_LIST_ITEMS]
                if isinstance(err, dict)
            ]
        elif key in SAFE_DETAIL_KEYS:
            safe = _safe_value(value)
            if safe is not None:
                sanitized[key] = safe
    return sanitized


def format_pydantic_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic errors to ``{"field", "message"}`` pairs."""
    formatted = []
    for error in errors[:MAX_LIST_ITEMS]:
        path = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(path) or "request"

        error_type = error.get("type", "")
        phrase = _VALIDATION_PHRASES.get(error_type)
        if phrase is None and "enum" in error_type:
            phrase = _VALIDATION_PHRASES["enum"]

        if phrase:
            message = f"Field '{field}' {phrase}"
        else:
            message = sanitize_error_message(error.get("msg", "Invalid value"))
        formatted.append({"field": field, "message": message})
    return formatted


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    hint: Optional[str] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }
    # Hints are written by us, never derived from input.
    if hint:
        body["hint"] = hint
    safe_details = sanitize_details(details)
    if safe_details:
        body["details"] = safe_details
    return JSONResponse(status_code=status_code, content=body)


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Send ``exc`` to Sentry when a client is active; returns the event id."""
    if not sentry_sdk.get_client().is_active():
        return None

    try:
        with sentry_sdk.new_scope() as scope:
            if request is not None:
                scope.set_tag("request_id", get_request_id_from_request(request))
                scope.set_context("request", {
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": dict(request.query_params),
                })
            if extra_context:
                scope.set_context("extra", extra_context)
            return sentry_sdk.capture_exception(exc)
    except Exception as report_error:
        logger.warning("Could not report exception to Sentry: %s", report_error)
        return None


async def content_library_exception_handler(
    request: Request,
    exc: ContentLibraryException,
) -> JSONResponse:
    summary = f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
    if exc.internal_message:
        summary = f"{summary} ({exc.internal_message})"

    if exc.status_code >= 500:
        logger.error(summary, exc_info=exc)
        report_to_sentry(exc, request)
    else:
        logger.warning(summary)

    return create_error_response(
        exc.status_code,
        exc.message,
        exc.error_code.value,
        details=exc.details,
        hint=exc.hint,
    )


def _validation_response(request: Request, errors: List[Dict[str, Any]], status_code: int) -> JSONResponse:
    formatted = format_pydantic_errors(errors)
    logger.warning(
        "Rejected %s %s: %d validation error(s)",
        request.method,
        request.url.path,
        len(formatted),
    )
    if len(formatted) == 1:
        message = formatted[0]["message"]
    else:
        message = f"Validation failed with {len(formatted)} error(s)"
    return create_error_response(
        status_code,
        message,
        ErrorCode.VALIDATION_ERROR.value,
        details={"errors": formatted},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and query strings."""
    return _validation_response(request, exc.errors(), status.HTTP_422_UNPROCESSABLE_ENTITY)


async def pydantic_validation_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
    """Models validated inside a handler rather than by FastAPI."""
    return _validation_response(request, exc.errors(), status.HTTP_400_BAD_REQUEST)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, "HTTP %d on %s: %s", exc.status_code, request.url.path, detail)

    error_code = _CODES_BY_STATUS.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)
    return create_error_response(exc.status_code, detail, error_code.value)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last resort for anything not raised as a ContentLibraryException.

    The client gets a short reference that also appears in the log line
    and the Sentry event, never the exception text itself.
    """
    reference = uuid.uuid4().hex[:8]
    logger.error(
        "Unhandled %s [ref:%s] on %s %s",
        type(exc).__name__,
        reference,
        request.method,
        request.url.path,
        exc_info=exc,
    )

    details: Dict[str, Any] = {"error_reference": reference}
    event_id = report_to_sentry(exc, request, extra_context={"error_reference": reference})

    if IS_PRODUCTION:
        message = get_safe_error_message(exc)
    else:
        message = f"Internal server error: {type(exc).__name__}"
        if event_id:
            details["sentry_event_id"] = event_id

    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        message,
        ErrorCode.INTERNAL_ERROR.value,
        details=details,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every handler above to ``app``, most specific first."""
    app.add_exception_handler(ContentLibraryException, content_library_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, pydantic_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
