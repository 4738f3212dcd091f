"""
Document store contract.

A document store offers per-item CRUD plus schema introspection and nothing
else: no multi-item transactions, no locking and no aggregate queries. Every
multi-step operation in the services layer is built from these calls.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.models.content import CategoryOption, CollectionSchema, StoredItem


class DocumentStore(ABC):
    """Abstract base class for document store implementations."""

    name: str = "abstract"
    # Upper bound on concurrent item writes issued by bulk operations.
    max_concurrency: int = 3

    @abstractmethod
    def is_configured(self, collection: str) -> bool:
        """Check whether ``collection`` is backed by the store."""
        pass

    @abstractmethod
    async def retrieve_schema(self, collection: str) -> CollectionSchema:
        """
        Introspect the schema of a collection.

        Raises:
            ConfigurationError: If the collection is not configured or unreachable.
        """
        pass

    @abstractmethod
    async def query_items(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[StoredItem]:
        """
        Return every item of a collection matching ``filters``.

        Filters are exact equality on logical field names and are ANDed.
        Implementations paginate internally until the result set is complete.
        """
        pass

    @abstractmethod
    async def retrieve_item(self, item_id: str) -> StoredItem:
        """
        Fetch a single item by id.

        Raises:
            ResourceNotFoundError: If no item has this id.
        """
        pass

    @abstractmethod
    async def create_item(self, collection: str, fields: Dict[str, Any]) -> str:
        """Create an item and return its store-assigned id."""
        pass

    @abstractmethod
    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> None:
        """Overwrite the given fields of an item, leaving the rest untouched."""
        pass

    @abstractmethod
    async def update_schema_options(
        self,
        collection: str,
        field_name: str,
        options: List[CategoryOption],
    ) -> None:
        """Replace the option list of a select field."""
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None
