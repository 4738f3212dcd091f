"""
Startup checks for the Content Library settings.

``server.py`` runs ``validate_config`` before wiring any routes so that a
missing Notion credential stops the process instead of surfacing as 500s
on the first request.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from src.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Settings are unusable; the server must not start."""

    def __init__(self, message: str, missing_vars: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_vars = list(missing_vars or [])


@dataclass
class ValidationResult:
    """Findings of one validation run, grouped by severity."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)
    missing_vars: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str, missing_var: Optional[str] = None) -> None:
        self.errors.append(message)
        if missing_var:
            self.missing_vars.append(missing_var)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_info(self, message: str) -> None:
        self.info.append(message)

    def log(self) -> None:
        for message in self.info:
            logger.info("[config] %s", message)
        for message in self.warnings:
            logger.warning("[config] %s", message)
        for message in self.errors:
            logger.error("[config] %s", message)


def check_store(settings: Settings, result: ValidationResult) -> None:
    """The chosen backend must be usable, and memory is refused in production."""
    if settings.store_backend == "memory":
        if settings.security.is_production:
            result.add_error(
                "The in-memory document store cannot be used in production; "
                "set NOTION_API_KEY and NOTION_DATABASE_ID."
            )
        else:
            result.add_warning(
                "Notion is not configured, falling back to the in-memory "
                "document store. Nothing survives a restart."
            )
        return

    notion = settings.notion
    for var, value in (
        ("NOTION_API_KEY", notion.notion_api_key),
        ("NOTION_DATABASE_ID", notion.notion_database_id),
    ):
        if not value:
            result.add_error(f"The Notion backend needs {var}", missing_var=var)
    if not result.is_valid:
        return

    result.add_info("Notion contents database configured")
    if notion.notion_prompts_db_id:
        result.add_info("Notion prompts database configured")
    else:
        result.add_info("NOTION_PROMPTS_DB_ID is unset; db=prompts requests will be rejected.")

    if notion.has_history:
        result.add_info("Version history database configured")
    else:
        result.add_warning(
            "NOTION_HISTORY_DATABASE_ID is unset; edits are not versioned "
            "and restore is unavailable."
        )

    if notion.notion_timeout < 5:
        result.add_warning(
            f"NOTION_TIMEOUT={notion.notion_timeout}s is short enough for "
            "category scans over large databases to time out."
        )


def check_sentry(settings: Settings, result: ValidationResult) -> None:
    if settings.sentry.is_configured:
        result.add_info(f"Sentry configured for environment: {settings.sentry.sentry_environment}")
    elif settings.security.is_production:
        result.add_warning("SENTRY_DSN is unset; production errors will only reach the logs.")
    else:
        result.add_info("Sentry disabled")


CHECKS: List[Callable[[Settings, ValidationResult], None]] = [check_store, check_sentry]


def validate_config(
    settings: Optional[Settings] = None,
    fail_on_error: bool = True,
) -> ValidationResult:
    """
    Run every check in ``CHECKS`` and log the findings.

    With ``fail_on_error`` a failed run raises ``ConfigValidationError``
    carrying the names of the missing environment variables.
    """
    result = ValidationResult()
    try:
        if settings is None:
            settings = get_settings()
    except Exception as e:
        if fail_on_error:
            raise ConfigValidationError(f"Could not load settings: {e}") from e
        result.add_error(f"Could not load settings: {e}")
        result.log()
        return result

    for check in CHECKS:
        check(settings, result)
    result.log()

    if fail_on_error and not result.is_valid:
        raise ConfigValidationError(
            f"{len(result.errors)} configuration error(s), see the log above",
            missing_vars=result.missing_vars,
        )
    return result


def log_config_summary(settings: Optional[Settings] = None) -> None:
    """One startup line per feature so operators can see what is switched on."""
    summary = (settings if settings is not None else get_settings()).get_config_summary()

    def on_off(flag: bool) -> str:
        return "enabled" if flag else "disabled"

    logger.info(
        "Content Library starting: environment=%s log_level=%s",
        summary["environment"],
        summary["log_level"],
    )
    logger.info("  store backend:    %s", summary["store_backend"])
    logger.info("  prompts library:  %s", on_off(summary["prompts_db_configured"]))
    logger.info("  version history:  %s", on_off(summary["history_configured"]))
    logger.info("  sentry:           %s", on_off(summary["sentry_configured"]))
    logger.info("  allowed origins:  %d", len(summary["allowed_origins"]))
