"""
Pydantic models for the content library.

This module defines the data models for:
- Content items and their attachments
- Version snapshots held in the history collection
- Category options and derived usage counts
- Collection schemas and the capability set derived from them

API bodies use camelCase (``formattedContent``, ``versionNumber``); Python
code uses the snake_case attribute names.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GENERAL_CATEGORY = "General"
DEFAULT_COLOR = "default"
DEFAULT_SORT_ORDER = 9999
MAX_CATEGORY_NAME_LENGTH = 100

COLLECTION_CONTENTS = "contents"
COLLECTION_PROMPTS = "prompts"
COLLECTION_HISTORY = "history"


class FieldType:
    """Field types understood by the document store adapters."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    NUMBER = "number"
    FILES = "files"


class ContentFields:
    """Logical field names of a content item."""

    TITLE = "title"
    CONTENT = "content"
    FORMATTED = "formatted_content"
    CATEGORY = "category"
    FOLDER = "folder"
    TAGS = "tags"
    CREATED = "date_created"
    LAST_USED = "last_used"
    USE_COUNT = "use_count"
    ATTACHMENTS = "attachments"
    SORT_ORDER = "sort_order"
    VERSION_COUNT = "version_count"
    LAST_MODIFIED = "last_modified"


class HistoryFields:
    """Logical field names of a version snapshot."""

    TITLE = "title"
    CONTENT_ID = "content_id"
    CONTENT = "content"
    FORMATTED = "formatted_content"
    VERSION_NUMBER = "version_number"
    CREATED_AT = "created_at"
    CHANGE_NOTE = "change_note"


CONTENT_FIELD_TYPES: Dict[str, str] = {
    ContentFields.TITLE: FieldType.TITLE,
    ContentFields.CONTENT: FieldType.RICH_TEXT,
    ContentFields.FORMATTED: FieldType.RICH_TEXT,
    ContentFields.CATEGORY: FieldType.SELECT,
    ContentFields.FOLDER: FieldType.SELECT,
    ContentFields.TAGS: FieldType.MULTI_SELECT,
    ContentFields.CREATED: FieldType.DATE,
    ContentFields.LAST_USED: FieldType.DATE,
    ContentFields.USE_COUNT: FieldType.NUMBER,
    ContentFields.ATTACHMENTS: FieldType.FILES,
    ContentFields.SORT_ORDER: FieldType.NUMBER,
    ContentFields.VERSION_COUNT: FieldType.NUMBER,
    ContentFields.LAST_MODIFIED: FieldType.DATE,
}

HISTORY_FIELD_TYPES: Dict[str, str] = {
    HistoryFields.TITLE: FieldType.TITLE,
    HistoryFields.CONTENT_ID: FieldType.RICH_TEXT,
    HistoryFields.CONTENT: FieldType.RICH_TEXT,
    HistoryFields.FORMATTED: FieldType.RICH_TEXT,
    HistoryFields.VERSION_NUMBER: FieldType.NUMBER,
    HistoryFields.CREATED_AT: FieldType.DATE,
    HistoryFields.CHANGE_NOTE: FieldType.RICH_TEXT,
}


class CamelModel(BaseModel):
    """Base model that serializes to camelCase and accepts either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Attachment(CamelModel):
    """A file attached to a content item by external URL."""

    name: str = Field(default="attachment")
    url: str = Field(...)


class ContentItem(CamelModel):
    """
    A single record in a content collection.

    ``version_count`` starts at 0 and is bumped by exactly one on every
    versioned update or restore.
    """

    id: str = Field(..., description="Store-assigned identifier")
    title: str = Field(default="")
    content: str = Field(default="")
    formatted_content: str = Field(default="")
    category: str = Field(default=GENERAL_CATEGORY)
    folder: str = Field(default="")
    tags: List[str] = Field(default_factory=list)
    date_created: str = Field(default="")
    last_used: str = Field(default="")
    use_count: int = Field(default=0)
    attachments: List[Attachment] = Field(default_factory=list)
    sort_order: int = Field(default=DEFAULT_SORT_ORDER)
    version_count: int = Field(default=0)
    last_modified: str = Field(default="")


class VersionSnapshot(CamelModel):
    """
    An immutable full copy of an item's editable fields.

    ``version_number`` is the ``version_count`` the item had before the
    mutation that produced the snapshot.
    """

    id: str = Field(..., description="Store-assigned identifier")
    content_id: str = Field(..., description="ID of the snapshotted item")
    version_number: int = Field(..., ge=0)
    title: str = Field(default="")
    content: str = Field(default="")
    formatted_content: str = Field(default="")
    created_at: str = Field(default="")
    change_note: Optional[str] = Field(default=None)


class CategoryOption(CamelModel):
    """A registered category label."""

    name: str = Field(..., min_length=1)
    color: str = Field(default=DEFAULT_COLOR)
    id: Optional[str] = Field(
        default=None,
        description="Store-side option identifier, kept so renames stay in place",
    )


class CategoryUsage(CamelModel):
    """A category label with its item count derived by a full scan."""

    name: str
    color: str = Field(default=DEFAULT_COLOR)
    count: int = Field(default=0, ge=0)


class FieldSpec(BaseModel):
    """Type of a single schema field plus its options for select fields."""

    type: str
    options: List[CategoryOption] = Field(default_factory=list)


class CollectionSchema(BaseModel):
    """Result of schema introspection: logical field name to field spec."""

    fields: Dict[str, FieldSpec] = Field(default_factory=dict)

    def field(self, name: str) -> Optional[FieldSpec]:
        return self.fields.get(name)

    def capabilities(self) -> "SchemaCapabilities":
        return SchemaCapabilities(fields=frozenset(self.fields))


@dataclass(frozen=True)
class SchemaCapabilities:
    """
    The set of logical fields a collection actually has.

    Computed once per operation from ``retrieve_schema`` and passed into the
    field-mapping helpers so only existing fields are read or written.
    """

    fields: FrozenSet[str]

    def has(self, name: str) -> bool:
        return name in self.fields

    def filter(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Drop every entry whose field the collection lacks."""
        return {k: v for k, v in values.items() if k in self.fields}


@dataclass
class StoredItem:
    """An item as returned by a document store: id plus logical fields."""

    id: str
    collection: str
    fields: Dict[str, Any]
