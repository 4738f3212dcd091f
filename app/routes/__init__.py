"""API routes for the Content Library application."""

from .categories import router as categories_router
from .contents import router as contents_router
from .health import router as health_router
from .history import router as history_router

__all__ = [
    "categories_router",
    "contents_router",
    "health_router",
    "history_router",
]
