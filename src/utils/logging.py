"""
Logging setup shared by the API server and its services.

Log lines are JSON in production and colored text locally. Every record
carries the id of the request that produced it, and Notion credentials
are scrubbed before anything reaches a handler.
"""

import asyncio
import json
import logging
import os
import re
import sys
import time
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple

DEFAULT_SERVICE_NAME = "content-library-api"
REDACTED = "[REDACTED]"

# Bound per request by the HTTP middleware; empty outside a request.
_log_context: ContextVar[Dict[str, str]] = ContextVar("log_context", default={})

# (pattern, replacement) pairs, applied in order.
_REDACTIONS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"(authorization[\"']?\s*[:=]\s*)[^\n,}\"']+", re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r"(bearer\s+)[\w.~+/-]+=*", re.IGNORECASE), rf"\1{REDACTED}"),
    (
        re.compile(r"((?:api[_-]?key|secret|token|password)[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+", re.IGNORECASE),
        rf"\1{REDACTED}",
    ),
    (re.compile(r"\b(?:secret|ntn)_[A-Za-z0-9]{20,}"), REDACTED),
]

# Attributes every LogRecord has; anything else arrived through ``extra=``.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "request_id", "correlation_id"}

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def redact_sensitive_data(message: str) -> str:
    """Replace Notion tokens and credential-looking values with a marker."""
    if not message:
        return message
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return message


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class RequestContextFilter(logging.Filter):
    """Stamp each record with the current request and correlation ids."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _log_context.get()
        record.request_id = context.get("request_id") or "-"
        record.correlation_id = context.get("correlation_id") or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub credentials from the message template and its string arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for log aggregation.

    Keys: timestamp, level, logger, message, service, request_id,
    correlation_id, plus ``extra`` (fields passed via ``extra=``),
    ``exception`` and, from ERROR upwards, ``source``.
    """

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }

        extras = _record_extras(record)
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.levelno >= logging.ERROR:
            payload["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"

        return json.dumps(payload, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Readable single-line output for a local terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;35m",
    }
    GREY = "\033[90m"
    RESET = "\033[0m"

    def __init__(self):
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        request_id = getattr(record, "request_id", "-")[:8]

        line = (
            f"{self.GREY}{self.formatTime(record, self.datefmt)} {request_id:>8}{self.RESET} "
            f"{color}{record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )

        extras = _record_extras(record)
        if extras:
            line += f" {self.GREY}{extras}{self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _wants_json() -> bool:
    if _env_flag("LOG_FORMAT_JSON"):
        return True
    environment = os.environ.get("ENVIRONMENT") or os.environ.get("SENTRY_ENVIRONMENT", "")
    return environment.lower() in ("production", "prod")


def setup_logging(
    service_name: str = DEFAULT_SERVICE_NAME,
    log_level: Optional[int] = None,
    force_json: bool = False,
) -> logging.Logger:
    """
    Install a single stdout handler on the root logger.

    Call once at startup, before importing modules that log at import time.
    ``LOG_LEVEL`` and ``LOG_FORMAT_JSON`` are read from the environment
    unless overridden here.
    """
    level = _level_from_env() if log_level is None else log_level
    use_json = force_json or _wants_json()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JSONFormatter(service_name) if use_json else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    root.info(
        "Logging configured",
        extra={"log_level": logging.getLevelName(level), "json": use_json},
    )
    return root


def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> Token:
    """
    Bind ids to the current context; ``None`` leaves a value unchanged.

    Returns a token that can be handed to ``clear_request_context``.
    """
    context = dict(_log_context.get())
    if request_id is not None:
        context["request_id"] = request_id
    if correlation_id is not None:
        context["correlation_id"] = correlation_id
    return _log_context.set(context)


def clear_request_context(token: Optional[Token] = None) -> None:
    """Restore the context from before ``token`` was issued, or empty it."""
    if token is not None:
        _log_context.reset(token)
    else:
        _log_context.set({})


def get_request_id() -> Optional[str]:
    return _log_context.get().get("request_id")


def get_correlation_id() -> Optional[str]:
    return _log_context.get().get("correlation_id")


class Timer:
    """
    Measure a block and log ``"<name> completed in N.NNms"`` on exit.

        with Timer("category_scan", logger) as timer:
            items = await store.query_items("contents")
        timer.elapsed_ms
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.elapsed_ms: float = 0.0
        self._started = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        if self.logger is None:
            return
        self.logger.log(
            self.log_level,
            "%s completed in %.2fms",
            self.name,
            self.elapsed_ms,
            extra={
                "operation": self.name,
                "duration_ms": round(self.elapsed_ms, 2),
                "success": exc_type is None,
            },
        )


def timed(
    name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.DEBUG,
) -> Callable:
    """Decorate a coroutine function so each await is wrapped in a ``Timer``."""

    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"@timed expects a coroutine function, got {func!r}")
        operation = name or func.__qualname__
        target = logger or logging.getLogger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            with Timer(operation, target, log_level):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
