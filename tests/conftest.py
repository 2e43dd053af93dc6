"""
tests/conftest.py

Pytest configuration and shared fixtures for the Wingmann test suite.

All tests run in the dev environment against in-memory or temporary
directory blob stores; nothing touches Supabase unless a test is marked
integration and the credentials are present.
"""

from __future__ import annotations

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from backend.config import Settings, reset_settings
from backend.services.engine import Engine, build_engine
from tests.helpers import MemoryBlobStore

TEST_DOWNLOAD_KEY = "test-download-key-123"

# =============================================================================
# GLOBAL TEST CONFIGURATION
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Global pytest configuration.

    Forces ENVIRONMENT=dev before collection so importing backend.main never
    trips the production config check.
    """
    config.addinivalue_line(
        "markers",
        "integration: marks tests as requiring external services (Supabase Storage)",
    )

    os.environ["ENVIRONMENT"] = "dev"
    os.environ.setdefault("STORAGE_BACKEND", "local")


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Drop cached settings around every test so env changes take effect."""
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def engine(blobs: MemoryBlobStore) -> Engine:
    engine = build_engine(blobs)
    # No backoff in tests
    engine.publisher.min_wait = 0
    engine.publisher.max_wait = 0
    return engine


# =============================================================================
# API FIXTURES
# =============================================================================


@pytest.fixture
def download_key() -> str:
    return TEST_DOWNLOAD_KEY


@pytest.fixture
def settings(download_key: str) -> Settings:
    return Settings(ENVIRONMENT="dev", DOWNLOAD_KEY=download_key, STORAGE_BACKEND="local")


@pytest.fixture
def client(settings: Settings, blobs: MemoryBlobStore) -> Generator[TestClient, None, None]:
    """Test client with startup run against an in-memory store."""
    from backend.main import create_app

    app = create_app(settings=settings, blob_store=blobs)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
