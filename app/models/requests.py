"""
Pydantic request and response models for API endpoints.
"""

from typing import List, Optional

from pydantic import Field, field_validator

from .content import (
    CamelModel,
    CategoryOption,
    CategoryUsage,
    ContentItem,
    VersionSnapshot,
)


# =============================================================================
# Contents
# =============================================================================


class ContentCreateRequest(CamelModel):
    """Request model for creating a content item."""

    title: str = Field(default="")
    content: str = Field(default="")
    formatted_content: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None)
    folder: Optional[str] = Field(default=None)
    tags: List[str] = Field(default_factory=list)
    date_created: Optional[str] = Field(default=None)
    use_count: int = Field(default=0, ge=0)
    attachments: List[dict] = Field(default_factory=list)
    db: Optional[str] = Field(default=None)


class ContentPatch(CamelModel):
    """Partial update of a content item. ``None`` means leave unchanged."""

    title: Optional[str] = None
    content: Optional[str] = None
    formatted_content: Optional[str] = None
    category: Optional[str] = None
    folder: Optional[str] = None
    tags: Optional[List[str]] = None
    last_used: Optional[str] = None
    use_count: Optional[int] = Field(default=None, ge=0)
    attachments: Optional[List[dict]] = None


class ContentUpdateRequest(ContentPatch):
    """Request model for ``PUT /api/contents``."""

    id: Optional[str] = None
    skip_history: bool = False
    db: Optional[str] = None


class ReorderEntry(CamelModel):
    id: str = Field(..., min_length=1)
    sort_order: int


class ReorderRequest(CamelModel):
    """Request model for ``PUT /api/contents?action=reorder``."""

    items: List[ReorderEntry] = Field(default_factory=list)
    db: Optional[str] = None


class ContentListResponse(CamelModel):
    items: List[ContentItem]


class ContentCreateResponse(CamelModel):
    ok: bool = True
    id: str


class ContentUpdateResponse(CamelModel):
    ok: bool = True
    id: str
    version_number: int


class ReorderResponse(CamelModel):
    ok: bool = True
    updated: int


# =============================================================================
# Categories
# =============================================================================


class CategoryCreateRequest(CamelModel):
    name: str = Field(default="")
    db: Optional[str] = None


class CategoryRenameRequest(CamelModel):
    old_name: str = Field(default="")
    new_name: str = Field(default="")
    db: Optional[str] = None


class CategoryDeleteRequest(CamelModel):
    name: str = Field(default="")
    force: bool = False
    db: Optional[str] = None

    @field_validator("force", mode="before")
    @classmethod
    def strict_force(cls, v):
        """Only a literal ``true`` forces a delete."""
        return v is True


class CategoryListResponse(CamelModel):
    categories: List[CategoryUsage]


class CategoryCreateResponse(CamelModel):
    ok: bool = True
    category: CategoryOption


class CategoryRenameResponse(CamelModel):
    ok: bool = True
    updated_count: int


# =============================================================================
# History
# =============================================================================


class RestoreRequest(CamelModel):
    content_id: Optional[str] = None
    version_number: Optional[int] = Field(default=None, ge=0)


class HistoryResponse(CamelModel):
    versions: List[VersionSnapshot]
    not_configured: Optional[bool] = None
    hint: Optional[str] = None


class RestoreResponse(CamelModel):
    ok: bool = True
    message: str
    new_version_number: int
