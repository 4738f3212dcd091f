"""
In-memory document store for development and testing.

Behaves like the Notion adapter at the contract level: schemas carry select
options, filters are exact equality, and select values are not validated
against the option list (a rename that fails halfway leaves items holding a
label the schema does not know, just as it would upstream).
"""

import copy
import logging
import uuid
from typing import Any, Dict, List, Optional

from app.exceptions import ConfigurationError, ResourceNotFoundError
from app.models.content import (
    COLLECTION_CONTENTS,
    COLLECTION_HISTORY,
    COLLECTION_PROMPTS,
    CONTENT_FIELD_TYPES,
    GENERAL_CATEGORY,
    HISTORY_FIELD_TYPES,
    CategoryOption,
    CollectionSchema,
    ContentFields,
    FieldSpec,
    FieldType,
    StoredItem,
)

from .base import DocumentStore

logger = logging.getLogger(__name__)


def default_content_schema() -> CollectionSchema:
    """A content schema with every known field and only "General" registered."""
    fields = {}
    for name, field_type in CONTENT_FIELD_TYPES.items():
        options = []
        if name == ContentFields.CATEGORY:
            options = [CategoryOption(name=GENERAL_CATEGORY)]
        fields[name] = FieldSpec(type=field_type, options=options)
    return CollectionSchema(fields=fields)


def default_history_schema() -> CollectionSchema:
    return CollectionSchema(
        fields={name: FieldSpec(type=t) for name, t in HISTORY_FIELD_TYPES.items()}
    )


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Items keep insertion order, so ``query_items`` returns oldest first.
    Pass ``schemas`` to model collections that lack some fields.
    """

    name = "memory"

    def __init__(
        self,
        history_enabled: bool = True,
        schemas: Optional[Dict[str, CollectionSchema]] = None,
    ) -> None:
        self._schemas: Dict[str, CollectionSchema] = {
            COLLECTION_CONTENTS: default_content_schema(),
            COLLECTION_PROMPTS: default_content_schema(),
        }
        if history_enabled:
            self._schemas[COLLECTION_HISTORY] = default_history_schema()
        if schemas:
            self._schemas.update(schemas)

        self._items: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {} for name in self._schemas
        }
        logger.info(
            "Initialized in-memory document store",
            extra={"collections": sorted(self._schemas)},
        )

    def is_configured(self, collection: str) -> bool:
        return collection in self._schemas

    def _require(self, collection: str) -> None:
        if collection not in self._schemas:
            raise ConfigurationError(
                f"Collection '{collection}' is not configured",
                hint="Set STORE_BACKEND=memory with MEMORY_HISTORY_ENABLED=true, "
                     "or configure the Notion databases",
                details={"collection": collection},
            )

    async def retrieve_schema(self, collection: str) -> CollectionSchema:
        self._require(collection)
        return self._schemas[collection].model_copy(deep=True)

    async def query_items(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[StoredItem]:
        self._require(collection)
        filters = filters or {}
        results = []
        for item_id, fields in self._items[collection].items():
            if all(fields.get(k) == v for k, v in filters.items()):
                results.append(
                    StoredItem(id=item_id, collection=collection, fields=copy.deepcopy(fields))
                )
        return results

    async def retrieve_item(self, item_id: str) -> StoredItem:
        for collection, items in self._items.items():
            if item_id in items:
                return StoredItem(
                    id=item_id,
                    collection=collection,
                    fields=copy.deepcopy(items[item_id]),
                )
        raise ResourceNotFoundError(
            "Content not found",
            resource_type="content",
            resource_id=item_id,
        )

    async def create_item(self, collection: str, fields: Dict[str, Any]) -> str:
        self._require(collection)
        schema = self._schemas[collection]
        item_id = str(uuid.uuid4())
        self._items[collection][item_id] = {
            k: copy.deepcopy(v) for k, v in fields.items() if k in schema.fields
        }
        return item_id

    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> None:
        for collection, items in self._items.items():
            if item_id in items:
                schema = self._schemas[collection]
                for key, value in fields.items():
                    if key in schema.fields:
                        items[item_id][key] = copy.deepcopy(value)
                return
        raise ResourceNotFoundError(
            "Content not found",
            resource_type="content",
            resource_id=item_id,
        )

    async def update_schema_options(
        self,
        collection: str,
        field_name: str,
        options: List[CategoryOption],
    ) -> None:
        self._require(collection)
        spec = self._schemas[collection].fields.get(field_name)
        if spec is None or spec.type not in (FieldType.SELECT, FieldType.MULTI_SELECT):
            raise ConfigurationError(
                f"Field '{field_name}' is not a select field",
                hint=f"Add a select-type '{field_name}' field to the collection",
                details={"collection": collection},
            )
        spec.options = [
            CategoryOption(
                name=o.name,
                color=o.color,
                id=o.id or str(uuid.uuid4()),
            )
            for o in options
        ]
