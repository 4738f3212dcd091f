"""
Category Registry.

Categories are the options of the select-type ``category`` field in a
collection's schema. Usage counts are not stored anywhere; ``list_categories``
derives them with a full scan of the collection on every call, which costs
O(n) in the number of items.

Renames and deletes migrate items first and touch the schema last, so a
failure part way through leaves items on the new label (rename) or on
"General" (delete) and the schema unchanged. Re-running the request
finishes the job.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional

from app.exceptions import (
    ConflictError,
    ErrorCode,
    ResourceNotFoundError,
    UpstreamError,
    ValidationError,
)
from app.models.content import (
    DEFAULT_COLOR,
    GENERAL_CATEGORY,
    MAX_CATEGORY_NAME_LENGTH,
    CategoryOption,
    CategoryUsage,
    ContentFields,
    FieldSpec,
    FieldType,
)
from app.storage.base import DocumentStore
from src.utils.logging import Timer

from .bulk import run_bulk_updates

logger = logging.getLogger(__name__)


@dataclass
class DeleteOutcome:
    """
    Result of a delete request.

    ``can_delete`` is False for a blocked probe (items still use the
    category and ``force`` was not set); nothing was changed in that case.
    """

    can_delete: bool
    count: int
    migrated_count: int = 0


def _normalize(name: Optional[str]) -> str:
    return (name or "").strip()


def _find(options: List[CategoryOption], name: str) -> Optional[CategoryOption]:
    for option in options:
        if option.name == name:
            return option
    return None


class CategoryRegistry:
    """List, add, rename and delete categories of a collection."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def _category_field(self, collection: str) -> Optional[FieldSpec]:
        schema = await self.store.retrieve_schema(collection)
        spec = schema.field(ContentFields.CATEGORY)
        if spec is None or spec.type != FieldType.SELECT:
            return None
        return spec

    async def _require_category_field(self, collection: str) -> FieldSpec:
        spec = await self._category_field(collection)
        if spec is None:
            raise ValidationError(
                "Category property not found or is not a select field",
                error_code=ErrorCode.SCHEMA_MISMATCH,
                details={"collection": collection},
                hint="Add a select property named 'Category' to the database",
            )
        return spec

    async def _item_ids_with(self, collection: str, name: str) -> List[str]:
        items = await self.store.query_items(collection, {ContentFields.CATEGORY: name})
        return [item.id for item in items]

    async def list_categories(self, collection: str) -> List[CategoryUsage]:
        """
        Every registered category with the number of items using it.

        Counts are exact, case-sensitive matches over a full scan. A
        collection without a select-type category field has no categories.
        """
        spec = await self._category_field(collection)
        if spec is None:
            return []

        with Timer(f"category_scan[{collection}]", logger) as timer:
            items = await self.store.query_items(collection)
            counts = Counter(
                item.fields.get(ContentFields.CATEGORY)
                for item in items
                if item.fields.get(ContentFields.CATEGORY)
            )

        logger.debug(
            f"Counted categories over {len(items)} item(s) in {timer.elapsed_ms:.0f}ms"
        )
        return [
            CategoryUsage(name=o.name, color=o.color, count=counts.get(o.name, 0))
            for o in spec.options
        ]

    async def add_category(self, collection: str, name: Optional[str]) -> CategoryOption:
        """Register a new category with the default color."""
        name = _normalize(name)
        if not name:
            raise ValidationError("Category name is required", field="name")
        if len(name) > MAX_CATEGORY_NAME_LENGTH:
            raise ValidationError(
                f"Category name must be {MAX_CATEGORY_NAME_LENGTH} characters or less",
                field="name",
                error_code=ErrorCode.VALUE_OUT_OF_RANGE,
            )

        spec = await self._require_category_field(collection)
        if any(o.name.lower() == name.lower() for o in spec.options):
            raise ConflictError(
                f"Category '{name}' already exists",
                resource_type="category",
                error_code=ErrorCode.DUPLICATE_RESOURCE,
            )

        option = CategoryOption(name=name, color=DEFAULT_COLOR)
        await self.store.update_schema_options(
            collection,
            ContentFields.CATEGORY,
            spec.options + [option],
        )
        logger.info(f"Added category '{name}' to {collection}")
        return option

    async def rename_category(
        self,
        collection: str,
        old_name: Optional[str],
        new_name: Optional[str],
    ) -> int:
        """
        Rename a category and migrate every item that uses it.

        Items are migrated first, then the option is renamed in the schema.

        Returns:
            Number of migrated items.
        """
        old_name = _normalize(old_name)
        new_name = _normalize(new_name)
        if not old_name or not new_name:
            raise ValidationError("Both oldName and newName are required")
        if old_name == GENERAL_CATEGORY:
            raise ConflictError(
                f'Cannot rename the default "{GENERAL_CATEGORY}" category',
                resource_type="category",
                error_code=ErrorCode.PROTECTED_RESOURCE,
            )
        if len(new_name) > MAX_CATEGORY_NAME_LENGTH:
            raise ValidationError(
                f"Category name must be {MAX_CATEGORY_NAME_LENGTH} characters or less",
                field="newName",
                error_code=ErrorCode.VALUE_OUT_OF_RANGE,
            )

        spec = await self._require_category_field(collection)
        if any(
            o.name.lower() == new_name.lower() and o.name != old_name
            for o in spec.options
        ):
            raise ConflictError(
                f"Category '{new_name}' already exists",
                resource_type="category",
                error_code=ErrorCode.DUPLICATE_RESOURCE,
            )
        if _find(spec.options, old_name) is None:
            raise ResourceNotFoundError(
                f"Category '{old_name}' not found",
                resource_type="category",
                error_code=ErrorCode.CATEGORY_NOT_FOUND,
            )

        item_ids = await self._item_ids_with(collection, old_name)
        logger.info(
            f"Renaming category '{old_name}' to '{new_name}' in {collection}: "
            f"migrating {len(item_ids)} item(s)"
        )
        updated = await run_bulk_updates(
            "rename_category",
            item_ids,
            lambda item_id: self.store.update_item(
                item_id, {ContentFields.CATEGORY: new_name}
            ),
            max_concurrency=self.store.max_concurrency,
        )

        renamed = [
            CategoryOption(
                name=new_name if o.name == old_name else o.name,
                color=o.color,
                id=o.id,
            )
            for o in spec.options
        ]
        try:
            await self.store.update_schema_options(collection, ContentFields.CATEGORY, renamed)
        except UpstreamError:
            logger.error(
                f"Migrated {updated} item(s) to '{new_name}' but the schema still "
                f"lists '{old_name}'"
            )
            raise

        logger.info(f"Renamed category '{old_name}' to '{new_name}' ({updated} item(s))")
        return updated

    async def delete_category(
        self,
        collection: str,
        name: Optional[str],
        force: bool = False,
    ) -> DeleteOutcome:
        """
        Delete a category, moving its items to "General".

        Without ``force`` a category that is still in use is left alone and
        the number of items using it is reported instead.
        """
        name = _normalize(name)
        if not name:
            raise ValidationError("Category name is required", field="name")
        if name == GENERAL_CATEGORY:
            raise ConflictError(
                f'Cannot delete the default "{GENERAL_CATEGORY}" category',
                resource_type="category",
                error_code=ErrorCode.PROTECTED_RESOURCE,
            )

        spec = await self._require_category_field(collection)
        if _find(spec.options, name) is None:
            raise ResourceNotFoundError(
                f"Category '{name}' not found",
                resource_type="category",
                error_code=ErrorCode.CATEGORY_NOT_FOUND,
            )

        item_ids = await self._item_ids_with(collection, name)
        count = len(item_ids)
        if count > 0 and not force:
            logger.info(f"Delete of category '{name}' blocked: {count} item(s) use it")
            return DeleteOutcome(can_delete=False, count=count)

        migrated = await run_bulk_updates(
            "delete_category",
            item_ids,
            lambda item_id: self.store.update_item(
                item_id, {ContentFields.CATEGORY: GENERAL_CATEGORY}
            ),
            max_concurrency=self.store.max_concurrency,
        )

        remaining = [o for o in spec.options if o.name != name]
        if _find(remaining, GENERAL_CATEGORY) is None:
            remaining.append(CategoryOption(name=GENERAL_CATEGORY, color=DEFAULT_COLOR))
        try:
            await self.store.update_schema_options(collection, ContentFields.CATEGORY, remaining)
        except UpstreamError:
            logger.error(
                f"Moved {migrated} item(s) to '{GENERAL_CATEGORY}' but the schema "
                f"still lists '{name}'"
            )
            raise

        logger.info(f"Deleted category '{name}' ({migrated} item(s) moved to General)")
        return DeleteOutcome(can_delete=True, count=count, migrated_count=migrated)
