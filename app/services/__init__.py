"""Domain services for the Content Library application."""

from .bulk import run_bulk_updates
from .category_registry import CategoryRegistry, DeleteOutcome
from .content_service import ContentService, resolve_collection
from .version_ledger import VersionLedger

__all__ = [
    "CategoryRegistry",
    "ContentService",
    "DeleteOutcome",
    "VersionLedger",
    "resolve_collection",
    "run_bulk_updates",
]
