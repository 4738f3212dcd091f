"""
Content Service.

Entry point for everything the HTTP layer does with content: listing,
creating, updating (versioned through the ledger when history is
available) and reordering items. Category and history operations are
forwarded to the registry and the ledger.

Each call introspects the collection schema once and passes the resulting
capability set to the field-mapping helpers.
"""

import logging
from typing import List, Optional

from app.exceptions import ErrorCode, ValidationError
from app.models.content import (
    COLLECTION_CONTENTS,
    COLLECTION_PROMPTS,
    CategoryOption,
    CategoryUsage,
    ContentFields,
    ContentItem,
    SchemaCapabilities,
    VersionSnapshot,
)
from app.models.requests import ContentCreateRequest, ContentPatch, ReorderEntry
from app.storage.base import DocumentStore

from .bulk import run_bulk_updates
from .category_registry import CategoryRegistry, DeleteOutcome
from .field_mapping import build_create_fields, build_patch_fields, read_content_item
from .version_ledger import VersionLedger

logger = logging.getLogger(__name__)


def resolve_collection(db: Optional[str]) -> str:
    """Map the ``db`` selector to a collection name; anything else is contents."""
    if db and db.strip().lower() == COLLECTION_PROMPTS:
        return COLLECTION_PROMPTS
    return COLLECTION_CONTENTS


class ContentService:
    """Content operations over a document store."""

    def __init__(
        self,
        store: DocumentStore,
        ledger: Optional[VersionLedger] = None,
        registry: Optional[CategoryRegistry] = None,
    ) -> None:
        self.store = store
        self.ledger = ledger or VersionLedger(store)
        self.registry = registry or CategoryRegistry(store)

    async def _capabilities(self, collection: str) -> SchemaCapabilities:
        schema = await self.store.retrieve_schema(collection)
        return schema.capabilities()

    # =========================================================================
    # Items
    # =========================================================================

    async def list_items(self, collection: str = COLLECTION_CONTENTS) -> List[ContentItem]:
        """All items, by ``sort_order`` then newest created first."""
        caps = await self._capabilities(collection)
        stored = await self.store.query_items(collection)
        items = [read_content_item(s, caps) for s in stored]

        if caps.has(ContentFields.CREATED):
            items.sort(key=lambda i: i.date_created, reverse=True)
        items.sort(key=lambda i: i.sort_order)
        return items

    async def create_item(
        self,
        payload: ContentCreateRequest,
        collection: str = COLLECTION_CONTENTS,
    ) -> str:
        """
        Create an item from ``payload``.

        Raises:
            ValidationError: If the collection has no title field.
        """
        caps = await self._capabilities(collection)
        if not caps.has(ContentFields.TITLE):
            raise ValidationError(
                "No 'Title' property in database",
                error_code=ErrorCode.SCHEMA_MISMATCH,
                hint="Create a Title column named exactly 'Title'",
            )

        item_id = await self.store.create_item(
            collection, build_create_fields(payload, caps)
        )
        logger.info(f"Created item {item_id} in {collection}")
        return item_id

    async def update_item(
        self,
        item_id: Optional[str],
        patch: ContentPatch,
        skip_history: bool = False,
        collection: str = COLLECTION_CONTENTS,
    ) -> int:
        """
        Apply a partial update.

        With history available, a version count field in the collection and
        ``skip_history`` unset, the current state is snapshotted and the
        version is bumped. Otherwise the patch is written as is and the
        version is left unchanged.

        Returns:
            The item's version number after the update.
        """
        if not item_id:
            raise ValidationError("Missing 'id' in request body", field="id")

        caps = await self._capabilities(collection)
        fields = build_patch_fields(patch, caps)
        current = read_content_item(await self.store.retrieve_item(item_id), caps)

        if self.ledger.versions(caps) and not skip_history:
            await self.ledger.record_snapshot(current)
            return await self.ledger.apply_update(current, fields, caps)

        await self.store.update_item(item_id, fields)
        logger.info(
            f"Updated {item_id} without versioning",
            extra={"content_id": item_id, "skip_history": skip_history},
        )
        return current.version_count

    async def reorder(
        self,
        entries: List[ReorderEntry],
        collection: str = COLLECTION_CONTENTS,
    ) -> int:
        """
        Write each entry's sort order concurrently; returns the count.

        Raises:
            ValidationError: If ``entries`` is empty or names an id twice.
        """
        if not entries:
            raise ValidationError("Missing 'items' array in request body", field="items")

        orders = {entry.id: entry.sort_order for entry in entries}
        if len(orders) != len(entries):
            raise ValidationError("Duplicate 'id' in 'items' array", field="items")

        caps = await self._capabilities(collection)
        if not caps.has(ContentFields.SORT_ORDER):
            raise ValidationError(
                "No 'SortOrder' property in database",
                error_code=ErrorCode.SCHEMA_MISMATCH,
                hint="Add a number property named 'SortOrder' to enable reordering",
            )

        return await run_bulk_updates(
            "reorder",
            list(orders),
            lambda item_id: self.store.update_item(
                item_id, {ContentFields.SORT_ORDER: orders[item_id]}
            ),
            max_concurrency=self.store.max_concurrency,
        )

    # =========================================================================
    # Categories
    # =========================================================================

    async def list_categories(self, collection: str = COLLECTION_CONTENTS) -> List[CategoryUsage]:
        return await self.registry.list_categories(collection)

    async def add_category(self, name: Optional[str], collection: str = COLLECTION_CONTENTS) -> CategoryOption:
        return await self.registry.add_category(collection, name)

    async def rename_category(
        self,
        old_name: Optional[str],
        new_name: Optional[str],
        collection: str = COLLECTION_CONTENTS,
    ) -> int:
        return await self.registry.rename_category(collection, old_name, new_name)

    async def delete_category(
        self,
        name: Optional[str],
        force: bool = False,
        collection: str = COLLECTION_CONTENTS,
    ) -> DeleteOutcome:
        return await self.registry.delete_category(collection, name, force)

    # =========================================================================
    # History
    # =========================================================================

    @property
    def history_enabled(self) -> bool:
        return self.ledger.enabled

    async def get_history(self, content_id: Optional[str]) -> List[VersionSnapshot]:
        if not content_id:
            raise ValidationError("Missing contentId parameter", field="contentId")
        return await self.ledger.get_history(content_id)

    async def restore_version(
        self,
        content_id: Optional[str],
        version_number: Optional[int],
    ) -> int:
        if not content_id or version_number is None:
            raise ValidationError("Missing contentId or versionNumber")
        return await self.ledger.restore_version(content_id, version_number)
