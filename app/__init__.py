"""
Content Library Application Package

This package contains the FastAPI application components: exceptions and
their handlers, document stores, domain services and routes.
"""

from .error_handlers import register_exception_handlers
from .exceptions import (
    ConfigurationError,
    ConflictError,
    ContentLibraryException,
    ErrorCode,
    HistoryNotConfiguredError,
    ResourceNotFoundError,
    UpstreamError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Exception classes
    "ContentLibraryException",
    "ValidationError",
    "ConflictError",
    "ResourceNotFoundError",
    "ConfigurationError",
    "HistoryNotConfiguredError",
    "UpstreamError",
    "ErrorCode",
    # Error handlers
    "register_exception_handlers",
]
