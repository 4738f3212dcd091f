"""
Document store backends for the Content Library application.

``DocumentStoreFactory`` picks the backend from settings: Notion when
configured (or forced with ``STORE_BACKEND=notion``), the in-memory store
otherwise.
"""

import logging
from typing import Optional

from src.config import get_settings

from .base import DocumentStore
from .memory import InMemoryDocumentStore
from .notion import NotionDocumentStore

logger = logging.getLogger(__name__)


class DocumentStoreFactory:
    """
    Factory class for the document store.

    Holds one store per process so the Notion adapter's HTTP connection
    pool is shared across requests.
    """

    _instance: Optional[DocumentStore] = None

    @classmethod
    def get_store(cls) -> DocumentStore:
        """Get or create the document store instance."""
        if cls._instance is not None:
            return cls._instance

        settings = get_settings()
        if settings.store_backend == "notion":
            cls._instance = NotionDocumentStore.from_settings(settings.notion)
            logger.info("Using Notion document store")
        else:
            cls._instance = InMemoryDocumentStore(
                history_enabled=settings.store.memory_history_enabled,
            )
            logger.info("Notion not configured. Using in-memory document store.")

        return cls._instance

    @classmethod
    def set_store(cls, store: DocumentStore) -> None:
        """Install a specific store instance (tests, scripts)."""
        cls._instance = store

    @classmethod
    async def close(cls) -> None:
        """Close and forget the current store."""
        if cls._instance is not None:
            await cls._instance.close()
        cls._instance = None

    @classmethod
    def reset(cls) -> None:
        """Reset the store instance. Useful for testing."""
        cls._instance = None


def get_document_store() -> DocumentStore:
    """Get the document store instance."""
    return DocumentStoreFactory.get_store()


__all__ = [
    "DocumentStore",
    "DocumentStoreFactory",
    "InMemoryDocumentStore",
    "NotionDocumentStore",
    "get_document_store",
]
