"""
Tests for settings and startup configuration validation.
"""

import os
import sys
import unittest

# Set environment before imports
os.environ["ENVIRONMENT"] = "development"
os.environ["STORE_BACKEND"] = "memory"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.config import (
    NotionSettings,
    SecuritySettings,
    SentrySettings,
    Settings,
    StoreSettings,
    get_settings,
    reload_settings,
)
from src.config_validator import ConfigValidationError, validate_config


def make_settings(
    api_key=None,
    database_id=None,
    history_id=None,
    backend=None,
    environment="development",
    sentry_dsn=None,
):
    return Settings(
        notion=NotionSettings(
            notion_api_key=api_key,
            notion_database_id=database_id,
            notion_prompts_db_id=None,
            notion_history_database_id=history_id,
        ),
        store=StoreSettings(store_backend=backend, memory_history_enabled=True),
        security=SecuritySettings(environment=environment),
        sentry=SentrySettings(sentry_dsn=sentry_dsn),
    )


class TestSettings(unittest.TestCase):

    def test_backend_auto_detected(self):
        self.assertEqual(make_settings().store_backend, "memory")
        self.assertEqual(
            make_settings(api_key="key", database_id="db").store_backend,
            "notion",
        )

    def test_backend_forced(self):
        settings = make_settings(api_key="key", database_id="db", backend="memory")
        self.assertEqual(settings.store_backend, "memory")

    def test_history_detection(self):
        notion = make_settings(api_key="key", database_id="db")
        self.assertFalse(notion.is_history_configured)

        notion = make_settings(api_key="key", database_id="db", history_id="hist")
        self.assertTrue(notion.is_history_configured)

        self.assertTrue(make_settings().is_history_configured)

    def test_database_ids(self):
        ids = make_settings(api_key="key", database_id="db").notion.database_ids()
        self.assertEqual(ids, {"contents": "db", "prompts": None, "history": None})

    def test_summary_has_no_secrets(self):
        summary = make_settings(api_key="ntn_supersecretvalue", database_id="db").get_config_summary()

        self.assertNotIn("ntn_supersecretvalue", str(summary))
        self.assertTrue(summary["notion_configured"])

    def test_origins_list(self):
        security = SecuritySettings(allowed_origins="http://a.test, ,http://b.test")
        self.assertEqual(security.origins_list, ["http://a.test", "http://b.test"])


class TestSettingsCache(unittest.TestCase):

    def tearDown(self):
        os.environ["STORE_BACKEND"] = "memory"
        get_settings.cache_clear()

    def test_reload_picks_up_environment(self):
        self.assertIs(get_settings(), get_settings())

        os.environ["STORE_BACKEND"] = "notion"
        settings = reload_settings()

        self.assertEqual(settings.store_backend, "notion")


class TestValidateConfig(unittest.TestCase):

    def test_memory_backend_valid_in_development(self):
        result = validate_config(make_settings(), fail_on_error=False)

        self.assertTrue(result.is_valid)
        self.assertTrue(any("in-memory" in w for w in result.warnings))

    def test_memory_backend_rejected_in_production(self):
        with self.assertRaises(ConfigValidationError):
            validate_config(make_settings(environment="production"))

    def test_forced_notion_requires_credentials(self):
        result = validate_config(make_settings(backend="notion"), fail_on_error=False)

        self.assertFalse(result.is_valid)
        self.assertEqual(result.missing_vars, ["NOTION_API_KEY", "NOTION_DATABASE_ID"])

    def test_missing_history_is_a_warning(self):
        result = validate_config(
            make_settings(api_key="key", database_id="db"), fail_on_error=False
        )

        self.assertTrue(result.is_valid)
        self.assertTrue(any("NOTION_HISTORY_DATABASE_ID" in w for w in result.warnings))

    def test_sentry_reported(self):
        result = validate_config(
            make_settings(sentry_dsn="https://key@sentry.example/1"), fail_on_error=False
        )
        self.assertTrue(any("Sentry configured" in i for i in result.info))


if __name__ == "__main__":
    unittest.main()
