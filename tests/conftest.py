"""Shared test fixtures — store injection and shared cache/service/rate-limit reset."""

from __future__ import annotations

import pytest

from cardata_mcp.cache import SHARED_CATALOG_CACHE
from cardata_mcp.data.catalog import set_store
from cardata_mcp.data.store import SqliteCatalogStore
from cardata_mcp.server import reset_rate_limits
from cardata_mcp.services.catalog import set_catalog_service
from cardata_mcp.services.vincario import set_vincario_service


@pytest.fixture(autouse=True)
def _inject_test_store():
    """Give every test a fresh, isolated, empty in-memory catalog store."""
    test_store = SqliteCatalogStore(":memory:")
    set_store(test_store)
    yield test_store
    set_store(None)
    test_store.close()


@pytest.fixture()
def store(_inject_test_store: SqliteCatalogStore) -> SqliteCatalogStore:
    """The in-memory store injected for this test."""
    return _inject_test_store


@pytest.fixture(autouse=True)
def _reset_shared_state():
    """Clear the shared cache, service singletons and rate limits around each test."""
    SHARED_CATALOG_CACHE.clear()
    set_catalog_service(None)
    set_vincario_service(None)
    reset_rate_limits()
    yield
    SHARED_CATALOG_CACHE.clear()
    set_catalog_service(None)
    set_vincario_service(None)
    reset_rate_limits()
