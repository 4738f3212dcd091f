"""
Translation between stored field dicts and content models.

Every function takes the collection's ``SchemaCapabilities`` explicitly, so
fields a collection lacks are never read or written.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from app.models.content import (
    DEFAULT_SORT_ORDER,
    GENERAL_CATEGORY,
    Attachment,
    ContentFields,
    ContentItem,
    HistoryFields,
    SchemaCapabilities,
    StoredItem,
    VersionSnapshot,
)
from app.models.requests import ContentCreateRequest, ContentPatch


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def _int_or(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _count(value: Any) -> int:
    """A stored counter; hand-edited rows may hold negatives, read as 0."""
    return max(0, _int_or(value, 0))


def clean_attachments(attachments: Optional[List[Any]]) -> List[Dict[str, str]]:
    """Keep only attachments with a URL, naming unnamed ones."""
    cleaned = []
    for attachment in attachments or []:
        if isinstance(attachment, Attachment):
            attachment = attachment.model_dump()
        if isinstance(attachment, dict) and attachment.get("url"):
            cleaned.append({
                "name": attachment.get("name") or "attachment",
                "url": attachment["url"],
            })
    return cleaned


def read_content_item(stored: StoredItem, caps: SchemaCapabilities) -> ContentItem:
    """Map a stored item to a ContentItem, defaulting absent fields."""
    fields = stored.fields

    def get(name: str, default: Any) -> Any:
        if not caps.has(name):
            return default
        value = fields.get(name)
        return default if value is None else value

    return ContentItem(
        id=stored.id,
        title=get(ContentFields.TITLE, ""),
        content=get(ContentFields.CONTENT, ""),
        formatted_content=get(ContentFields.FORMATTED, ""),
        category=get(ContentFields.CATEGORY, "") if caps.has(ContentFields.CATEGORY) else GENERAL_CATEGORY,
        folder=get(ContentFields.FOLDER, ""),
        tags=list(get(ContentFields.TAGS, [])),
        date_created=get(ContentFields.CREATED, ""),
        last_used=get(ContentFields.LAST_USED, ""),
        use_count=_count(get(ContentFields.USE_COUNT, 0)),
        attachments=[Attachment(**a) for a in get(ContentFields.ATTACHMENTS, [])],
        sort_order=_int_or(get(ContentFields.SORT_ORDER, DEFAULT_SORT_ORDER), DEFAULT_SORT_ORDER),
        version_count=_count(get(ContentFields.VERSION_COUNT, 0)),
        last_modified=get(ContentFields.LAST_MODIFIED, ""),
    )


def build_create_fields(
    payload: ContentCreateRequest,
    caps: SchemaCapabilities,
) -> Dict[str, Any]:
    """Fields for a new item; empty optional values are left unset."""
    values: Dict[str, Any] = {
        ContentFields.TITLE: payload.title,
        ContentFields.CATEGORY: payload.category or GENERAL_CATEGORY,
        ContentFields.CREATED: payload.date_created or today_iso(),
        ContentFields.USE_COUNT: payload.use_count,
        ContentFields.VERSION_COUNT: 0,
    }
    if payload.content:
        values[ContentFields.CONTENT] = payload.content
    formatted = payload.formatted_content or payload.content
    if formatted:
        values[ContentFields.FORMATTED] = formatted
    if payload.folder:
        values[ContentFields.FOLDER] = payload.folder
    if payload.tags:
        values[ContentFields.TAGS] = list(dict.fromkeys(payload.tags))
    attachments = clean_attachments(payload.attachments)
    if attachments:
        values[ContentFields.ATTACHMENTS] = attachments
    return caps.filter(values)


def build_patch_fields(patch: ContentPatch, caps: SchemaCapabilities) -> Dict[str, Any]:
    """
    Fields to overwrite for a partial update.

    ``None`` leaves a field unchanged. An empty folder clears the folder; an
    empty category is ignored so an item never loses its category.
    """
    values: Dict[str, Any] = {}
    if patch.title is not None:
        values[ContentFields.TITLE] = patch.title
    if patch.content is not None:
        values[ContentFields.CONTENT] = patch.content
    if patch.formatted_content is not None:
        values[ContentFields.FORMATTED] = patch.formatted_content
    if patch.category:
        values[ContentFields.CATEGORY] = patch.category
    if patch.folder is not None:
        values[ContentFields.FOLDER] = patch.folder or None
    if patch.tags is not None:
        values[ContentFields.TAGS] = list(dict.fromkeys(patch.tags))
    if patch.last_used is not None:
        values[ContentFields.LAST_USED] = patch.last_used
    if patch.use_count is not None:
        values[ContentFields.USE_COUNT] = patch.use_count
    if patch.attachments is not None:
        values[ContentFields.ATTACHMENTS] = clean_attachments(patch.attachments)
    return caps.filter(values)


def build_snapshot_fields(
    item: ContentItem,
    change_note: Optional[str] = None,
) -> Dict[str, Any]:
    """History fields capturing the item's current state."""
    fields: Dict[str, Any] = {
        HistoryFields.TITLE: item.title,
        HistoryFields.CONTENT_ID: item.id,
        HistoryFields.CONTENT: item.content,
        HistoryFields.FORMATTED: item.formatted_content,
        HistoryFields.VERSION_NUMBER: item.version_count,
        HistoryFields.CREATED_AT: utc_now_iso(),
    }
    if change_note:
        fields[HistoryFields.CHANGE_NOTE] = change_note
    return fields


def read_snapshot(stored: StoredItem) -> VersionSnapshot:
    fields = stored.fields
    return VersionSnapshot(
        id=stored.id,
        content_id=fields.get(HistoryFields.CONTENT_ID) or "",
        version_number=_count(fields.get(HistoryFields.VERSION_NUMBER)),
        title=fields.get(HistoryFields.TITLE) or "",
        content=fields.get(HistoryFields.CONTENT) or "",
        formatted_content=fields.get(HistoryFields.FORMATTED) or "",
        created_at=fields.get(HistoryFields.CREATED_AT) or "",
        change_note=fields.get(HistoryFields.CHANGE_NOTE) or None,
    )
