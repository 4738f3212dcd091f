"""
Content item endpoints.

- GET  /api/contents                  list items (sorted by sortOrder)
- POST /api/contents                  create an item
- PUT  /api/contents                  update an item (versioned)
- PUT  /api/contents?action=reorder   bulk update sortOrder

``db=prompts`` (query or body) selects the prompts library.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.dependencies import get_content_service
from app.models.requests import (
    ContentCreateRequest,
    ContentCreateResponse,
    ContentListResponse,
    ContentUpdateRequest,
    ContentUpdateResponse,
    ReorderRequest,
    ReorderResponse,
)
from app.services import ContentService, resolve_collection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contents", tags=["contents"])


@router.get("", response_model=ContentListResponse)
async def list_contents(
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    items = await service.list_items(resolve_collection(db))
    return ContentListResponse(items=items)


@router.post("", response_model=ContentCreateResponse)
async def create_content(
    request: ContentCreateRequest,
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    collection = resolve_collection(db or request.db)
    item_id = await service.create_item(request, collection)
    return ContentCreateResponse(id=item_id)


@router.put("", response_model=None)
async def update_contents(
    body: Optional[Dict[str, Any]] = Body(None),
    action: Optional[str] = Query(None),
    db: Optional[str] = Query(None),
    service: ContentService = Depends(get_content_service),
):
    """
    Update one item, or reorder many with ``?action=reorder``.

    The two forms share a route, so the body is validated here once the
    action is known.
    """
    body = body or {}

    if action == "reorder":
        request = ReorderRequest.model_validate(body)
        collection = resolve_collection(db or request.db)
        updated = await service.reorder(request.items, collection)
        logger.info(f"Reordered {updated} item(s) in {collection}")
        return ReorderResponse(updated=updated).model_dump(by_alias=True)

    request = ContentUpdateRequest.model_validate(body)
    collection = resolve_collection(db or request.db)
    version_number = await service.update_item(
        request.id,
        request,
        skip_history=request.skip_history,
        collection=collection,
    )
    return ContentUpdateResponse(
        id=request.id,
        version_number=version_number,
    ).model_dump(by_alias=True)
