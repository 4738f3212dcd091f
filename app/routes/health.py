"""
Health check and root endpoints.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter, Depends

from app.models.content import COLLECTION_CONTENTS, COLLECTION_HISTORY, COLLECTION_PROMPTS
from app.storage import DocumentStore, get_document_store
from src.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def get_collection_status(store: DocumentStore, collection: str) -> Dict[str, Any]:
    """
    Check that a collection's schema can be read.

    A schema read is the cheapest call every backend supports.
    """
    if not store.is_configured(collection):
        return {"configured": False, "connected": False}

    try:
        start_time = datetime.now()
        schema = await store.retrieve_schema(collection)
        latency_ms = (datetime.now() - start_time).total_seconds() * 1000
        return {
            "configured": True,
            "connected": True,
            "latency_ms": round(latency_ms, 2),
            "fields": len(schema.fields),
        }
    except Exception as e:
        logger.warning(f"Store health check failed for {collection}: {e}")
        return {
            "configured": True,
            "connected": False,
            "error": str(e)[:100],
        }


def get_sentry_status() -> Dict[str, Any]:
    """Whether Sentry is configured and its client active."""
    sentry = get_settings().sentry
    return {
        "configured": sentry.is_configured,
        "active": sentry_sdk.get_client().is_active() if sentry.is_configured else False,
        "environment": sentry.sentry_environment if sentry.is_configured else None,
    }


def _status(info: Dict[str, Any], up_key: str = "connected") -> str:
    if info.get(up_key):
        return "up"
    if not info.get("configured"):
        return "unconfigured"
    return "down"


@router.get("/")
async def root() -> Dict[str, Any]:
    return {
        "service": "content-library-api",
        "docs": "/docs",
        "health": "/health",
    }


@router.get("/health", summary="System health check")
async def health_check(
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    """
    Health check endpoint for monitoring and load balancers.

    The service is healthy when the contents collection is reachable.
    History and Sentry are optional and never make it degraded.
    """
    settings = get_settings()
    contents_status = await get_collection_status(store, COLLECTION_CONTENTS)
    history_status = await get_collection_status(store, COLLECTION_HISTORY)
    sentry_status = get_sentry_status()

    return {
        "status": "healthy" if contents_status.get("connected") else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "environment": settings.security.environment,
        "services": {
            "store": {
                "status": _status(contents_status),
                "backend": store.name,
                "latency_ms": contents_status.get("latency_ms"),
            },
            "history": {
                "status": _status(history_status),
            },
            "sentry": {
                "status": _status(sentry_status, up_key="active"),
            },
        },
    }


@router.get("/health/store")
async def store_health(
    store: DocumentStore = Depends(get_document_store),
) -> Dict[str, Any]:
    """Detailed document store health per collection."""
    collections = {}
    for collection in (COLLECTION_CONTENTS, COLLECTION_PROMPTS, COLLECTION_HISTORY):
        collections[collection] = await get_collection_status(store, collection)

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": store.name,
        "collections": collections,
    }
