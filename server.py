"""
Content Library API server.

Exposes the content, category and version history endpoints over a Notion
(or in-memory) document store. Run with ``python server.py`` or
``uvicorn server:app``.
"""

import sys
from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Logging must be configured before the app modules below are imported.
from src.utils.logging import setup_logging

logger = setup_logging(service_name="content-library-api")

from src.config import Settings, get_settings
from src.config_validator import ConfigValidationError, log_config_summary, validate_config

try:
    settings: Settings = get_settings()
    validate_config(settings, fail_on_error=True)
    log_config_summary(settings)
except ConfigValidationError as e:
    logger.critical("Refusing to start, configuration is invalid: %s", e)
    sys.exit(1)
except Exception as e:
    logger.critical("Refusing to start, settings could not be loaded: %s", e)
    sys.exit(1)

from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    categories_router,
    contents_router,
    health_router,
    history_router,
)
from app.storage import DocumentStoreFactory

# Header names whose values never leave the process in a breadcrumb.
REDACTED_HEADER_MARKERS = ("authorization", "api-key", "api_key", "secret", "token", "notion")

API_DESCRIPTION = """
Reusable content snippets and prompts kept in Notion.

- **Contents**: list, create, update and reorder items
- **Categories**: add, rename and delete categories, migrating their items
- **History**: edits are snapshotted and any version can be restored
"""


def scrub_breadcrumb(crumb, hint):
    """Blank out credential headers on outgoing HTTP breadcrumbs (the Notion secret)."""
    headers = (crumb.get("data") or {}).get("headers")
    if crumb.get("category") == "httplib" and isinstance(headers, dict):
        for name in headers:
            if any(marker in name.lower() for marker in REDACTED_HEADER_MARKERS):
                headers[name] = "[FILTERED]"
    return crumb


def init_sentry(settings: Settings) -> None:
    if not settings.is_sentry_configured:
        logger.info("Sentry disabled, SENTRY_DSN is not set")
        return

    config = settings.sentry
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        environment=config.sentry_environment,
        release=config.sentry_release,
        server_name=config.server_name,
        traces_sample_rate=config.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=scrub_breadcrumb,
        send_default_pii=False,
        attach_stacktrace=True,
    )
    logger.info("Sentry enabled for %s", config.sentry_environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the document store before serving and close its HTTP client afterwards."""
    logger.info("Document store ready: %s", DocumentStoreFactory.get_store().name)
    yield
    try:
        await DocumentStoreFactory.close()
    except Exception as e:
        logger.warning("Document store did not close cleanly: %s", e)


def create_app(settings: Settings) -> FastAPI:
    application = FastAPI(
        title="Content Library API",
        description=API_DESCRIPTION,
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "health", "description": "Liveness and store status"},
            {"name": "contents", "description": "Content items"},
            {"name": "categories", "description": "Category registry"},
            {"name": "history", "description": "Version history and restore"},
        ],
    )
    register_exception_handlers(application)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "Origin", "X-Request-ID", "X-Correlation-ID"],
        expose_headers=["X-Request-ID", "X-Correlation-ID", "X-Response-Time"],
        max_age=600,
    )
    # Outermost, so the access log also covers CORS preflights.
    if settings.logging.request_logging_enabled:
        application.add_middleware(RequestLoggingMiddleware)

    for router in (health_router, contents_router, categories_router, history_router):
        application.include_router(router)

    @application.get("/config-status", tags=["health"])
    async def get_config_status():
        """Feature summary without secrets; hidden in production."""
        if settings.is_production:
            return {
                "error": "Config status endpoint disabled in production",
                "environment": settings.security.environment,
            }
        return get_settings().get_config_summary()

    return application


init_sentry(settings)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=not settings.is_production)
