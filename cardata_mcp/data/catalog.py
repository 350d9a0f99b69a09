"""Process-wide catalog store accessor.

Services and the server resolve the store through :func:`get_store`; tests
swap in an in-memory store with :func:`set_store`.
"""

from __future__ import annotations

from cardata_mcp.config import load_settings
from cardata_mcp.data.store import CatalogStore, SqliteCatalogStore

_store: CatalogStore | None = None


def get_store() -> CatalogStore:
    """Return the active CatalogStore singleton, opening the configured DB if needed."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = SqliteCatalogStore(load_settings().db_path)
    return _store


def set_store(store: CatalogStore | None) -> None:
    """Inject a store instance (``None`` resets to the configured database)."""
    global _store  # noqa: PLW0603
    _store = store
