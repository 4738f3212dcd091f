"""
Version history endpoints.

- GET  /api/history?contentId=   snapshots of an item, newest first
- POST /api/history              restore {contentId, versionNumber}

When no history collection is configured, GET answers with an empty list
plus ``notConfigured`` and a setup hint rather than an error.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_content_service
from app.exceptions import HISTORY_SETUP_HINT
from app.models.requests import HistoryResponse, RestoreRequest, RestoreResponse
from app.services import ContentService

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("", response_model=HistoryResponse, response_model_exclude_none=True)
async def get_history(
    content_id: Optional[str] = Query(None, alias="contentId"),
    service: ContentService = Depends(get_content_service),
):
    if not service.history_enabled:
        return HistoryResponse(versions=[], not_configured=True, hint=HISTORY_SETUP_HINT)

    versions = await service.get_history(content_id)
    return HistoryResponse(versions=versions)


@router.post("", response_model=RestoreResponse)
async def restore_version(
    request: RestoreRequest,
    service: ContentService = Depends(get_content_service),
):
    new_version = await service.restore_version(request.content_id, request.version_number)
    return RestoreResponse(
        message=f"Restored to version {request.version_number}",
        new_version_number=new_version,
    )
