"""
Pytest configuration and shared fixtures for Content Library tests.

Every test runs against the in-memory document store; nothing talks to
Notion.
"""

import os
import sys

import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["STORE_BACKEND"] = "memory"
for _var in ("NOTION_API_KEY", "NOTION_DATABASE_ID", "NOTION_PROMPTS_DB_ID",
             "NOTION_HISTORY_DATABASE_ID", "SENTRY_DSN"):
    os.environ.pop(_var, None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


@pytest.fixture
def memory_store():
    """A fresh in-memory store installed as the process-wide store."""
    from app.storage import DocumentStoreFactory, InMemoryDocumentStore

    store = InMemoryDocumentStore()
    DocumentStoreFactory.set_store(store)
    yield store
    DocumentStoreFactory.reset()


@pytest.fixture
def client(memory_store):
    """FastAPI test client fixture."""
    from fastapi.testclient import TestClient
    from server import app

    return TestClient(app)
