"""
Settings for the Content Library API, read from the environment (and an
optional ``.env`` file) with pydantic-settings.

Settings are split into groups that each own one concern; ``Settings``
composes them and answers the derived questions the rest of the code asks,
such as which store backend is active and whether version history exists.

    from src.config import get_settings

    if get_settings().is_history_configured:
        ...
"""

from functools import lru_cache
from typing import Dict, List, Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class NotionSettings(_EnvSettings):
    """Credentials and database ids for the Notion backend."""

    notion_api_key: Optional[SecretStr] = Field(default=None, description="Notion integration secret")
    notion_database_id: Optional[str] = Field(default=None, description="Contents database id")
    notion_prompts_db_id: Optional[str] = Field(default=None, description="Prompts database id")
    notion_history_database_id: Optional[str] = Field(
        default=None,
        description="ContentHistory database id; versioning is off without it",
    )

    notion_api_url: str = Field(default="https://api.notion.com/v1")
    notion_version: str = Field(default="2022-06-28", description="Notion-Version request header")
    notion_timeout: float = Field(default=30.0, gt=0, le=300, description="Per-request timeout in seconds")
    notion_page_size: int = Field(default=100, ge=1, le=100, description="Rows per query page")
    notion_max_concurrency: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Item updates in flight at once during bulk migrations",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.notion_api_key and self.notion_database_id)

    @property
    def has_history(self) -> bool:
        return bool(self.notion_api_key and self.notion_history_database_id)

    def database_ids(self) -> Dict[str, Optional[str]]:
        """Collection name to database id; unset collections map to None."""
        return {
            "contents": self.notion_database_id,
            "prompts": self.notion_prompts_db_id,
            "history": self.notion_history_database_id,
        }


class StoreSettings(_EnvSettings):
    """Backend selection. Left unset, Notion is used whenever it is configured."""

    store_backend: Optional[Literal["notion", "memory"]] = None
    memory_history_enabled: bool = Field(
        default=True,
        description="Whether the in-memory store keeps a history collection",
    )


class SecuritySettings(_EnvSettings):
    environment: Literal["development", "staging", "production"] = "development"
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="CORS origins, comma separated",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


class LoggingSettings(_EnvSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format_json: bool = Field(default=False, description="JSON logs outside production too")
    request_logging_enabled: bool = Field(default=True, description="Install the access log middleware")


class SentrySettings(_EnvSettings):
    sentry_dsn: Optional[str] = None
    sentry_environment: str = "development"
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    sentry_release: Optional[str] = "content-library@1.0.0"
    server_name: str = "content-library-api"

    @property
    def is_configured(self) -> bool:
        return bool(self.sentry_dsn)


class Settings(_EnvSettings):
    """All setting groups plus the feature checks derived from them."""

    notion: NotionSettings = Field(default_factory=NotionSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def store_backend(self) -> str:
        """``store.store_backend`` when forced, otherwise notion if configured, else memory."""
        if self.store.store_backend:
            return self.store.store_backend
        return "notion" if self.notion.is_configured else "memory"

    @property
    def is_notion_configured(self) -> bool:
        return self.notion.is_configured

    @property
    def is_history_configured(self) -> bool:
        """Whether the active backend can record and restore versions."""
        if self.store_backend == "memory":
            return self.store.memory_history_enabled
        return self.notion.has_history

    @property
    def is_sentry_configured(self) -> bool:
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        return self.security.is_production

    def get_config_summary(self) -> dict:
        """Feature flags for startup logs and /config-status. Holds no secrets."""
        return {
            "environment": self.security.environment,
            "store_backend": self.store_backend,
            "notion_configured": self.is_notion_configured,
            "prompts_db_configured": bool(self.notion.notion_prompts_db_id),
            "history_configured": self.is_history_configured,
            "sentry_configured": self.is_sentry_configured,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use. ``reload_settings`` refreshes them."""
    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()
