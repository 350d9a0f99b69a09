"""Seed the catalog with common makes so the makes list works without a provider."""

from __future__ import annotations

import logging
from typing import Any

from cardata_mcp.constants import BASIC_MAKES
from cardata_mcp.data.store import CatalogStore

logger = logging.getLogger(__name__)


def seed_basic_makes(store: CatalogStore) -> dict[str, Any]:
    """Populate ``makes`` with :data:`BASIC_MAKES` unless it already has rows."""
    if store.count_makes() > 0:
        logger.info("Basic vehicle makes already present, skipping seed")
        return {"success": True, "message": "Data already present", "inserted": 0}

    inserted = store.insert_makes(BASIC_MAKES)
    logger.info("Seeded %d basic vehicle makes", inserted)
    return {
        "success": True,
        "message": f"Seeded {inserted} basic makes",
        "inserted": inserted,
    }
