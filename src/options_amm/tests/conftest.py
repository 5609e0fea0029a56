"""Test configuration and environment bootstrapping."""

from __future__ import annotations

import os
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("OAM_ENVIRONMENT", "development")
os.environ.setdefault("OAM_ALLOWED_HOSTS", "testserver,localhost,127.0.0.1")
os.environ.setdefault("OAM_ALLOWED_ORIGINS", "http://testserver")
os.environ.setdefault("RATE_LIMIT_DEFAULT", "10000/minute")
os.environ.setdefault("OAM_CACHE_SIZE", "256")
os.environ.setdefault("OAM_CACHE_TTL_SECONDS", "5")

from options_amm.api.config import get_settings  # noqa: E402


@pytest.fixture(autouse=True, scope="session")
def _reset_settings() -> Iterator[None]:
    """Load settings from the seeded environment and reset the cache afterwards."""

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def client() -> Iterator[TestClient]:
    """Return a test client backed by a fresh FastAPI application."""

    from options_amm.api.fastapi_app import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
