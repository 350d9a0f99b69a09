"""Vincario VIN decode with a durable 90-day row cache."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime
from typing import Any

from cardata_mcp.clients.vincario import VincarioClient, VincarioNoDataError
from cardata_mcp.config import load_settings
from cardata_mcp.constants import (
    INCOMPLETE_DATA_MESSAGE,
    VIN_REQUIRED_MESSAGE,
    VIN_ROW_TTL_SECONDS,
)
from cardata_mcp.data.catalog import get_store
from cardata_mcp.data.store import CatalogStore
from cardata_mcp.normalization import extract_vincario_vehicle, is_complete_vehicle
from cardata_mcp.services.catalog import ClientFactory, row_is_fresh, utc_now
from cardata_mcp.vin import VinValidationError, normalize_vin

logger = logging.getLogger(__name__)


def vincario_client_from_settings() -> VincarioClient:
    settings = load_settings()
    return VincarioClient(
        settings.vincario_api_key,
        settings.vincario_secret_key,
        base_url=settings.vincario_base_url,
        timeout=settings.request_timeout,
    )


def _failure(error: str) -> dict[str, Any]:
    return {"success": False, "error": error}


def _success(vehicle: dict[str, str], vin: str) -> dict[str, Any]:
    return {"success": True, "data": {**vehicle, "vin": vin}}


class VincarioDecodeService:
    """Decode VINs through Vincario, reusing stored decodes for 90 days.

    Results follow the ``{success, data?, error?}`` contract. Invalid VINs
    and in-band "no data" answers come back as ``success: False``; transport
    failures raise :class:`VincarioClientError`.
    """

    def __init__(
        self,
        *,
        store: CatalogStore | None = None,
        client_factory: ClientFactory = vincario_client_from_settings,
        row_ttl: float = VIN_ROW_TTL_SECONDS,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._client_factory = client_factory
        self.row_ttl = row_ttl
        self._now = now

    @property
    def store(self) -> CatalogStore:
        return self._store if self._store is not None else get_store()

    def _cached_vehicle(self, vin: str) -> dict[str, str] | None:
        row = self.store.get_vincario_decode(vin)
        if not row or not row_is_fresh(row["created_at"], self.row_ttl, self._now()):
            return None
        vehicle = extract_vincario_vehicle(row["payload"])
        if not is_complete_vehicle(vehicle):
            logger.warning("Stored Vincario decode for %s is incomplete, ignoring it", vin)
            return None
        return vehicle

    async def decode_vin(self, vin: str | None) -> dict[str, Any]:
        if not vin or not isinstance(vin, str):
            return _failure(VIN_REQUIRED_MESSAGE)
        try:
            vin = normalize_vin(vin)
        except VinValidationError as exc:
            logger.warning("Rejected invalid VIN %r", exc.vin)
            return _failure(str(exc))

        vehicle = self._cached_vehicle(vin)
        if vehicle is not None:
            logger.info("VIN %s served from stored Vincario decode", vin)
            return _success(vehicle, vin)

        try:
            async with self._client_factory() as client:
                payload = await client.decode(vin)
        except VincarioNoDataError as exc:
            logger.warning("Vincario has no data for VIN %s: %s", vin, exc)
            return _failure(str(exc))

        vehicle = extract_vincario_vehicle(payload)
        if not is_complete_vehicle(vehicle):
            logger.warning("Vincario decode for %s lacks make/model/year, not storing", vin)
            return _failure(INCOMPLETE_DATA_MESSAGE)

        try:
            self.store.save_vincario_decode(vin, payload, created_at=self._now())
        except sqlite3.Error as exc:
            logger.warning("Could not store Vincario decode for %s: %s", vin, exc)

        logger.info(
            "VIN %s decoded via Vincario: %s %s %s",
            vin, vehicle["make"], vehicle["model"], vehicle["year"],
        )
        return _success(vehicle, vin)


_service: VincarioDecodeService | None = None


def get_vincario_service() -> VincarioDecodeService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = VincarioDecodeService()
    return _service


def set_vincario_service(service: VincarioDecodeService | None) -> None:
    """Inject a service instance for testing."""
    global _service  # noqa: PLW0603
    _service = service
