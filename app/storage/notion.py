"""
Notion-backed document store.

Talks to the Notion REST API with a pooled ``httpx.AsyncClient``. Logical
field names used by the services are mapped to Notion property names here,
rich text is split into 2000-character segments, database queries are
paginated to completion, and HTTP failures are translated into the
application's exception hierarchy.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from app.exceptions import (
    HISTORY_SETUP_HINT,
    ConfigurationError,
    ResourceNotFoundError,
    UpstreamError,
)
from app.models.content import (
    COLLECTION_CONTENTS,
    COLLECTION_HISTORY,
    COLLECTION_PROMPTS,
    CONTENT_FIELD_TYPES,
    DEFAULT_COLOR,
    HISTORY_FIELD_TYPES,
    CategoryOption,
    CollectionSchema,
    ContentFields,
    FieldSpec,
    FieldType,
    HistoryFields,
    StoredItem,
)
from src.config import NotionSettings
from src.utils.logging import timed

from .base import DocumentStore

logger = logging.getLogger(__name__)

# Notion rejects rich text segments longer than this
RICH_TEXT_CHUNK_SIZE = 2000

CONTENT_PROPERTY_NAMES: Dict[str, str] = {
    ContentFields.TITLE: "Title",
    ContentFields.CONTENT: "Content",
    ContentFields.FORMATTED: "Formatted",
    ContentFields.CATEGORY: "Category",
    ContentFields.FOLDER: "Folder",
    ContentFields.TAGS: "Tags",
    ContentFields.CREATED: "Created",
    ContentFields.LAST_USED: "LastUsed",
    ContentFields.USE_COUNT: "UseCount",
    ContentFields.ATTACHMENTS: "Attachments",
    ContentFields.SORT_ORDER: "SortOrder",
    ContentFields.VERSION_COUNT: "VersionCount",
    ContentFields.LAST_MODIFIED: "LastModified",
}

HISTORY_PROPERTY_NAMES: Dict[str, str] = {
    HistoryFields.TITLE: "Title",
    HistoryFields.CONTENT_ID: "ContentId",
    HistoryFields.CONTENT: "Content",
    HistoryFields.FORMATTED: "FormattedContent",
    HistoryFields.VERSION_NUMBER: "VersionNumber",
    HistoryFields.CREATED_AT: "CreatedAt",
    HistoryFields.CHANGE_NOTE: "ChangeNote",
}

COLLECTION_HINTS: Dict[str, str] = {
    COLLECTION_CONTENTS: (
        "Set NOTION_API_KEY and NOTION_DATABASE_ID in environment variables, "
        "then restart the service"
    ),
    COLLECTION_PROMPTS: "Set NOTION_PROMPTS_DB_ID in environment variables",
    COLLECTION_HISTORY: HISTORY_SETUP_HINT,
}

SHARE_HINT = (
    "Share the database with your Notion integration (... > Connections) "
    "and check the configured database ID"
)


def property_map(collection: str) -> Dict[str, Tuple[str, str]]:
    """Logical field name -> (Notion property name, field type)."""
    if collection == COLLECTION_HISTORY:
        return {
            name: (HISTORY_PROPERTY_NAMES[name], field_type)
            for name, field_type in HISTORY_FIELD_TYPES.items()
        }
    return {
        name: (CONTENT_PROPERTY_NAMES[name], field_type)
        for name, field_type in CONTENT_FIELD_TYPES.items()
    }


def normalize_id(notion_id: Optional[str]) -> str:
    """Notion returns dashed UUIDs; configuration may hold undashed ones."""
    return (notion_id or "").replace("-", "").lower()


# =============================================================================
# Property encoding / decoding
# =============================================================================


def rich_text_segments(value: Optional[str]) -> List[Dict[str, Any]]:
    """Split text into Notion rich text objects of at most 2000 characters."""
    text = value or ""
    return [
        {"type": "text", "text": {"content": text[i:i + RICH_TEXT_CHUNK_SIZE]}}
        for i in range(0, len(text), RICH_TEXT_CHUNK_SIZE)
    ]


def encode_property(field_type: str, value: Any) -> Dict[str, Any]:
    """Encode a logical value as a Notion property value."""
    if field_type == FieldType.TITLE:
        return {"title": rich_text_segments(value)}
    if field_type == FieldType.RICH_TEXT:
        return {"rich_text": rich_text_segments(value)}
    if field_type == FieldType.SELECT:
        return {"select": {"name": value} if value else None}
    if field_type == FieldType.MULTI_SELECT:
        return {"multi_select": [{"name": tag} for tag in (value or [])]}
    if field_type == FieldType.DATE:
        return {"date": {"start": value} if value else None}
    if field_type == FieldType.NUMBER:
        return {"number": value}
    if field_type == FieldType.FILES:
        return {
            "files": [
                {
                    "name": (a.get("name") or "attachment")[:100],
                    "type": "external",
                    "external": {"url": a["url"]},
                }
                for a in (value or [])
                if a.get("url")
            ]
        }
    raise ValueError(f"Unsupported field type: {field_type}")


def decode_property(prop: Dict[str, Any]) -> Any:
    """Decode a Notion property value into a plain Python value."""
    field_type = prop.get("type")
    if field_type in (FieldType.TITLE, FieldType.RICH_TEXT):
        return "".join(
            t.get("plain_text") or (t.get("text") or {}).get("content", "")
            for t in prop.get(field_type) or []
        )
    if field_type == FieldType.SELECT:
        return (prop.get("select") or {}).get("name", "")
    if field_type == FieldType.MULTI_SELECT:
        return [o.get("name", "") for o in prop.get("multi_select") or []]
    if field_type == FieldType.DATE:
        return (prop.get("date") or {}).get("start", "")
    if field_type == FieldType.NUMBER:
        return prop.get("number")
    if field_type == FieldType.FILES:
        return [
            {
                "name": f.get("name") or "file",
                "url": (f.get("external") or {}).get("url")
                or (f.get("file") or {}).get("url")
                or "",
            }
            for f in prop.get("files") or []
        ]
    return None


def build_filter(collection: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Translate exact-equality filters into a Notion query filter."""
    mapping = property_map(collection)
    clauses = []
    for name, value in filters.items():
        if name not in mapping:
            raise ValueError(f"Unknown field for {collection}: {name}")
        prop_name, field_type = mapping[name]
        if field_type == FieldType.MULTI_SELECT:
            condition = {"contains": value}
        elif field_type == FieldType.FILES:
            raise ValueError(f"Cannot filter on files field: {name}")
        else:
            condition = {"equals": value}
        clauses.append({"property": prop_name, field_type: condition})

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"and": clauses}


# =============================================================================
# Store
# =============================================================================


class NotionDocumentStore(DocumentStore):
    """Document store backed by Notion databases."""

    name = "notion"

    def __init__(
        self,
        api_key: str,
        database_ids: Dict[str, Optional[str]],
        api_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        page_size: int = 100,
        max_concurrency: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._database_ids = {k: v for k, v in database_ids.items() if v}
        self._page_size = page_size
        self.max_concurrency = max_concurrency
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
        logger.info(
            "Initialized Notion document store",
            extra={"collections": sorted(self._database_ids)},
        )

    @classmethod
    def from_settings(cls, settings: NotionSettings) -> "NotionDocumentStore":
        if not settings.notion_api_key:
            raise ConfigurationError(
                "Missing env vars",
                hint=COLLECTION_HINTS[COLLECTION_CONTENTS],
                missing_vars=["NOTION_API_KEY"],
            )
        return cls(
            api_key=settings.notion_api_key.get_secret_value(),
            database_ids=settings.database_ids(),
            api_url=settings.notion_api_url,
            notion_version=settings.notion_version,
            timeout=settings.notion_timeout,
            page_size=settings.notion_page_size,
            max_concurrency=settings.notion_max_concurrency,
        )

    def is_configured(self, collection: str) -> bool:
        return collection in self._database_ids

    def _database_id(self, collection: str) -> str:
        database_id = self._database_ids.get(collection)
        if not database_id:
            raise ConfigurationError(
                f"Collection '{collection}' is not configured",
                hint=COLLECTION_HINTS.get(collection, COLLECTION_HINTS[COLLECTION_CONTENTS]),
                details={"collection": collection},
            )
        return database_id

    def _collection_for_database(self, database_id: Optional[str]) -> str:
        wanted = normalize_id(database_id)
        for collection, configured in self._database_ids.items():
            if normalize_id(configured) == wanted:
                return collection
        return COLLECTION_CONTENTS

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        resource_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Perform a Notion API call and translate failures.

        A 404 for a known ``resource_id`` is a missing item; any other 403/404
        means the integration cannot see the database.
        """
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise UpstreamError(
                "Document store request timed out",
                operation=operation,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(
                "Document store is unreachable",
                operation=operation,
                original_error=e,
            ) from e

        if response.status_code < 400:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("code", "")
        message = body.get("message") or response.reason_phrase
        internal = f"{response.status_code} {code}: {message}"

        if response.status_code == 401:
            raise ConfigurationError(
                "Document store authentication failed",
                hint="Check NOTION_API_KEY in environment variables",
                internal_message=internal,
            )
        if response.status_code == 404 and resource_id:
            raise ResourceNotFoundError(
                "Content not found",
                resource_type="content",
                resource_id=resource_id,
                internal_message=internal,
            )
        if response.status_code in (403, 404):
            raise ConfigurationError(
                "Document store database is not accessible",
                hint=SHARE_HINT,
                internal_message=internal,
            )

        logger.warning(f"Notion {operation} failed: {internal}")
        raise UpstreamError(
            message,
            operation=operation,
            status=response.status_code,
            internal_message=internal,
        )

    def _decode_page(self, page: Dict[str, Any], collection: str) -> StoredItem:
        properties = page.get("properties") or {}
        fields = {}
        for name, (prop_name, _) in property_map(collection).items():
            if prop_name in properties:
                fields[name] = decode_property(properties[prop_name])
        return StoredItem(id=page["id"], collection=collection, fields=fields)

    def _encode_fields(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        mapping = property_map(collection)
        encoded = {}
        for name, value in fields.items():
            if name not in mapping:
                continue
            prop_name, field_type = mapping[name]
            encoded[prop_name] = encode_property(field_type, value)
        return encoded

    @timed("notion.retrieve_schema")
    async def retrieve_schema(self, collection: str) -> CollectionSchema:
        database_id = self._database_id(collection)
        data = await self._request("GET", f"/databases/{database_id}", "retrieve_schema")

        properties = data.get("properties") or {}
        fields = {}
        for name, (prop_name, _) in property_map(collection).items():
            prop = properties.get(prop_name)
            if not prop:
                continue
            field_type = prop.get("type", "")
            options = []
            if field_type in (FieldType.SELECT, FieldType.MULTI_SELECT):
                options = [
                    CategoryOption(
                        name=o["name"],
                        color=o.get("color") or DEFAULT_COLOR,
                        id=o.get("id"),
                    )
                    for o in (prop.get(field_type) or {}).get("options", [])
                    if o.get("name")
                ]
            fields[name] = FieldSpec(type=field_type, options=options)
        return CollectionSchema(fields=fields)

    @timed("notion.query_items")
    async def query_items(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[StoredItem]:
        database_id = self._database_id(collection)
        payload: Dict[str, Any] = {"page_size": self._page_size}
        notion_filter = build_filter(collection, filters or {})
        if notion_filter:
            payload["filter"] = notion_filter

        items: List[StoredItem] = []
        pages = 0
        while True:
            data = await self._request(
                "POST", f"/databases/{database_id}/query", "query_items", json=payload
            )
            pages += 1
            items.extend(
                self._decode_page(page, collection) for page in data.get("results", [])
            )
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break
            payload["start_cursor"] = cursor

        logger.debug(f"Queried {len(items)} item(s) from {collection} in {pages} page(s)")
        return items

    async def retrieve_item(self, item_id: str) -> StoredItem:
        data = await self._request(
            "GET", f"/pages/{item_id}", "retrieve_item", resource_id=item_id
        )
        parent = (data.get("parent") or {}).get("database_id")
        return self._decode_page(data, self._collection_for_database(parent))

    async def create_item(self, collection: str, fields: Dict[str, Any]) -> str:
        database_id = self._database_id(collection)
        data = await self._request(
            "POST",
            "/pages",
            "create_item",
            json={
                "parent": {"database_id": database_id},
                "properties": self._encode_fields(collection, fields),
            },
        )
        return data["id"]

    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            f"/pages/{item_id}",
            "update_item",
            json={"properties": self._encode_fields(COLLECTION_CONTENTS, fields)},
            resource_id=item_id,
        )

    async def update_schema_options(
        self,
        collection: str,
        field_name: str,
        options: List[CategoryOption],
    ) -> None:
        database_id = self._database_id(collection)
        prop_name, field_type = property_map(collection)[field_name]
        payload_options = []
        for option in options:
            entry = {"name": option.name, "color": option.color or DEFAULT_COLOR}
            if option.id:
                entry["id"] = option.id
            payload_options.append(entry)

        await self._request(
            "PATCH",
            f"/databases/{database_id}",
            "update_schema_options",
            json={"properties": {prop_name: {field_type: {"options": payload_options}}}},
        )

    async def close(self) -> None:
        await self._client.aclose()
