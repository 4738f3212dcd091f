"""Utility modules for the Content Library API."""

from .logging import (
    setup_logging,
    set_request_context,
    clear_request_context,
    get_request_id,
    get_correlation_id,
    Timer,
    timed,
    JSONFormatter,
    DevelopmentFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    redact_sensitive_data,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "get_request_id",
    "get_correlation_id",
    "Timer",
    "timed",
    "JSONFormatter",
    "DevelopmentFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
