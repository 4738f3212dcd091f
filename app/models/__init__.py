"""Pydantic models for the Content Library application."""

from .content import (
    COLLECTION_CONTENTS,
    COLLECTION_HISTORY,
    COLLECTION_PROMPTS,
    CONTENT_FIELD_TYPES,
    DEFAULT_COLOR,
    DEFAULT_SORT_ORDER,
    GENERAL_CATEGORY,
    HISTORY_FIELD_TYPES,
    MAX_CATEGORY_NAME_LENGTH,
    Attachment,
    CategoryOption,
    CategoryUsage,
    CollectionSchema,
    ContentFields,
    ContentItem,
    FieldSpec,
    FieldType,
    HistoryFields,
    SchemaCapabilities,
    StoredItem,
    VersionSnapshot,
)
from .requests import (
    CategoryCreateRequest,
    CategoryCreateResponse,
    CategoryDeleteRequest,
    CategoryListResponse,
    CategoryRenameRequest,
    CategoryRenameResponse,
    ContentCreateRequest,
    ContentCreateResponse,
    ContentListResponse,
    ContentPatch,
    ContentUpdateRequest,
    ContentUpdateResponse,
    HistoryResponse,
    ReorderEntry,
    ReorderRequest,
    ReorderResponse,
    RestoreRequest,
    RestoreResponse,
)

__all__ = [
    # Constants
    "COLLECTION_CONTENTS",
    "COLLECTION_HISTORY",
    "COLLECTION_PROMPTS",
    "CONTENT_FIELD_TYPES",
    "DEFAULT_COLOR",
    "DEFAULT_SORT_ORDER",
    "GENERAL_CATEGORY",
    "HISTORY_FIELD_TYPES",
    "MAX_CATEGORY_NAME_LENGTH",
    # Domain
    "Attachment",
    "CategoryOption",
    "CategoryUsage",
    "CollectionSchema",
    "ContentFields",
    "ContentItem",
    "FieldSpec",
    "FieldType",
    "HistoryFields",
    "SchemaCapabilities",
    "StoredItem",
    "VersionSnapshot",
    # Requests / responses
    "CategoryCreateRequest",
    "CategoryCreateResponse",
    "CategoryDeleteRequest",
    "CategoryListResponse",
    "CategoryRenameRequest",
    "CategoryRenameResponse",
    "ContentCreateRequest",
    "ContentCreateResponse",
    "ContentListResponse",
    "ContentPatch",
    "ContentUpdateRequest",
    "ContentUpdateResponse",
    "HistoryResponse",
    "ReorderEntry",
    "ReorderRequest",
    "ReorderResponse",
    "RestoreRequest",
    "RestoreResponse",
]
