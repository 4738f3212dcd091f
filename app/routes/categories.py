"""
Category registry endpoints.

- GET    /api/categories   categories with usage counts
- POST   /api/categories   add a category        {name}
- PUT    /api/categories   rename a category     {oldName, newName}
- DELETE /api/categories   delete a category     {name, force?}

Without ``force`` a delete of a category that is still in use only reports
``{canDelete: false, count}``. With ``force: true`` its items move to
"General" first.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_content_service
from app.models.requests import (
    CategoryCreateRequest,
    CategoryCreateResponse,
    CategoryDeleteRequest,
    CategoryListResponse,
    CategoryRenameRequest,
    CategoryRenameResponse,
)
from app.services import ContentService, resolve_collection

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=CategoryListResponse)
async def list_categories(
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    categories = await service.list_categories(resolve_collection(db))
    return CategoryListResponse(categories=categories)


@router.post("", response_model=CategoryCreateResponse)
async def add_category(
    request: CategoryCreateRequest,
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    option = await service.add_category(request.name, resolve_collection(db or request.db))
    return CategoryCreateResponse(category=option)


@router.put("", response_model=CategoryRenameResponse)
async def rename_category(
    request: CategoryRenameRequest,
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    updated = await service.rename_category(
        request.old_name,
        request.new_name,
        resolve_collection(db or request.db),
    )
    return CategoryRenameResponse(updated_count=updated)


@router.delete("", response_model=None)
async def delete_category(
    request: CategoryDeleteRequest,
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    outcome = await service.delete_category(
        request.name,
        force=request.force,
        collection=resolve_collection(db or request.db),
    )
    if not outcome.can_delete:
        return {"canDelete": False, "count": outcome.count}
    return {"ok": True, "migratedCount": outcome.migrated_count}
