"""
FastAPI dependencies for the Content Library application.

Usage:
    from app.dependencies import get_content_service

    @router.get("/api/contents")
    async def list_contents(service: ContentService = Depends(get_content_service)):
        ...
"""

from fastapi import Depends

from app.services import ContentService
from app.storage import DocumentStore, get_document_store


def get_content_service(
    store: DocumentStore = Depends(get_document_store),
) -> ContentService:
    """A ContentService bound to the process-wide document store."""
    return ContentService(store)


__all__ = [
    "get_content_service",
    "get_document_store",
]
