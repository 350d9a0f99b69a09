"""Tiered catalog lookup: in-process cache → SQLite store → CarAPI → write-back.

Every lookup returns ``{"source": "cache" | "db" | "remote", "data": ...}``
so callers can tell which stage answered.

For makes, models and trims, the presence of *any* stored row for a query
means the query is resolved; a partially populated catalog is never
topped up from the provider. VIN decodes are guarded by two independent
90-day windows: the in-memory entry TTL and the stored row's ``created_at``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta, timezone
from typing import Any

from cardata_mcp.cache import SHARED_CATALOG_CACHE, TTLCache
from cardata_mcp.clients.carapi import CarApiClient
from cardata_mcp.config import load_settings
from cardata_mcp.constants import (
    CATALOG_CACHE_TTL_SECONDS,
    VIN_CACHE_TTL_SECONDS,
    VIN_ROW_TTL_SECONDS,
)
from cardata_mcp.data.catalog import get_store
from cardata_mcp.data.store import CatalogStore
from cardata_mcp.normalization import normalize_makes, normalize_models, normalize_trims
from cardata_mcp.vin import normalize_vin

logger = logging.getLogger(__name__)

SOURCE_CACHE = "cache"
SOURCE_DB = "db"
SOURCE_REMOTE = "remote"

ClientFactory = Callable[[], AbstractAsyncContextManager[Any]]


def carapi_client_from_settings() -> CarApiClient:
    settings = load_settings()
    return CarApiClient(
        settings.carapi_api_key,
        api_token=settings.carapi_api_token,
        api_secret=settings.carapi_api_secret,
        base_url=settings.carapi_base_url,
        timeout=settings.request_timeout,
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def row_is_fresh(created_at: str | None, ttl_seconds: float, now: datetime) -> bool:
    """True when *created_at* (ISO-8601) is less than *ttl_seconds* before *now*."""
    if not created_at:
        return False
    try:
        created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return False
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return now - created < timedelta(seconds=ttl_seconds)


def _year_key(year: int | None) -> str:
    return "any" if year is None else str(year)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _result(source: str, data: Any) -> dict[str, Any]:
    return {"source": source, "data": data}


class CatalogLookupService:
    """Resolve makes, models, trims and VIN decodes through the cache tiers."""

    def __init__(
        self,
        *,
        store: CatalogStore | None = None,
        cache: TTLCache | None = None,
        client_factory: ClientFactory = carapi_client_from_settings,
        catalog_ttl: float = CATALOG_CACHE_TTL_SECONDS,
        vin_cache_ttl: float = VIN_CACHE_TTL_SECONDS,
        vin_row_ttl: float = VIN_ROW_TTL_SECONDS,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self.cache = cache if cache is not None else SHARED_CATALOG_CACHE
        self._client_factory = client_factory
        self.catalog_ttl = catalog_ttl
        self.vin_cache_ttl = vin_cache_ttl
        self.vin_row_ttl = vin_row_ttl
        self._now = now
        self._inflight: dict[str, asyncio.Task[dict[str, Any]]] = {}

    @property
    def store(self) -> CatalogStore:
        return self._store if self._store is not None else get_store()

    # ── Single-flight ──────────────────────────────────────────────

    async def _single_flight(
        self, key: str, fetch: Callable[[], Awaitable[dict[str, Any]]]
    ) -> dict[str, Any]:
        """Run *fetch* once per key; concurrent callers share its result."""
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        else:
            logger.debug("Joining in-flight provider request for %s", key)
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[dict[str, Any]]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark retrieved; every waiter already re-raises it through shield().
            task.exception()

    # ── Makes ──────────────────────────────────────────────────────

    async def get_makes(self, year: int | None = None) -> dict[str, Any]:
        key = f"makes:{_year_key(year)}"
        cached = self.cache.get(key)
        if cached is not None:
            return _result(SOURCE_CACHE, cached)

        makes = self.store.list_makes()
        if makes:
            self.cache.set(key, makes, self.catalog_ttl)
            return _result(SOURCE_DB, makes)

        return await self._single_flight(key, lambda: self._fetch_makes(key, year))

    async def _fetch_makes(self, key: str, year: int | None) -> dict[str, Any]:
        async with self._client_factory() as client:
            payload = await client.get_makes(year)

        names = normalize_makes(payload)
        if names:
            self.store.insert_makes(names)
            makes = self.store.list_makes()
        else:
            logger.warning("CarAPI returned no makes for year %s", _year_key(year))
            makes = []
        self.cache.set(key, makes, self.catalog_ttl)
        logger.info("Resolved %d makes from CarAPI (year %s)", len(makes), _year_key(year))
        return _result(SOURCE_REMOTE, makes)

    # ── Models ─────────────────────────────────────────────────────

    async def get_models(self, make: str, year: int | None = None) -> dict[str, Any]:
        make = (make or "").strip()
        if not make:
            raise ValueError("make is required")

        key = f"models:{make}:{_year_key(year)}"
        cached = self.cache.get(key)
        if cached is not None:
            return _result(SOURCE_CACHE, cached)

        make_row = self.store.find_make(make)
        if make_row:
            models = self.store.list_models(make_row["id"])
            if models:
                self.cache.set(key, models, self.catalog_ttl)
                return _result(SOURCE_DB, models)

        return await self._single_flight(
            key, lambda: self._fetch_models(key, make, year)
        )

    async def _fetch_models(self, key: str, make: str, year: int | None) -> dict[str, Any]:
        async with self._client_factory() as client:
            payload = await client.get_models(make, year)

        normalized = normalize_models(payload)
        if not normalized:
            logger.warning("CarAPI returned no models for %s (year %s)", make, _year_key(year))
            self.cache.set(key, [], self.catalog_ttl)
            return _result(SOURCE_REMOTE, [])

        make_row = self.store.get_or_create_make(make)
        inserted = self.store.insert_models(make_row["id"], normalized)
        models = self.store.list_models(make_row["id"])
        self.cache.set(key, models, self.catalog_ttl)
        logger.info("Stored %d new models for %s from CarAPI", inserted, make)
        return _result(SOURCE_REMOTE, models)

    # ── Trims ──────────────────────────────────────────────────────

    async def get_trims(
        self,
        make: str,
        model: str,
        year: int | None = None,
        all_trims: bool = False,
    ) -> dict[str, Any]:
        make = (make or "").strip()
        model = (model or "").strip()
        if not make or not model:
            raise ValueError("make and model are required")

        key = f"trims:{make}:{model}:{_year_key(year)}:{_flag(all_trims)}"
        cached = self.cache.get(key)
        if cached is not None:
            return _result(SOURCE_CACHE, cached)

        make_row = self.store.find_make(make)
        model_row = self.store.find_model(make_row["id"], model) if make_row else None
        if model_row:
            trims = self.store.list_trims(model_row["id"], year=year)
            if trims:
                self.cache.set(key, trims, self.catalog_ttl)
                return _result(SOURCE_DB, trims)

        return await self._single_flight(
            key, lambda: self._fetch_trims(key, make, model, year, all_trims)
        )

    async def _fetch_trims(
        self,
        key: str,
        make: str,
        model: str,
        year: int | None,
        all_trims: bool,
    ) -> dict[str, Any]:
        async with self._client_factory() as client:
            payload = await client.get_trims(make, model, year, all_trims)

        normalized = normalize_trims(payload, default_year=year)
        if year is not None:
            # Keyed by the queried year so the store stage answers the same query.
            normalized = [{**t, "year": year} for t in normalized]
        if not normalized:
            logger.warning(
                "CarAPI returned no trims for %s %s (year %s)", make, model, _year_key(year)
            )
            self.cache.set(key, [], self.catalog_ttl)
            return _result(SOURCE_REMOTE, [])

        make_row = self.store.get_or_create_make(make)
        model_row = self.store.get_or_create_model(make_row["id"], model)
        inserted = self.store.insert_trims(model_row["id"], normalized)
        trims = self.store.list_trims(model_row["id"], year=year)
        self.cache.set(key, trims, self.catalog_ttl)
        logger.info("Stored %d new trims for %s %s from CarAPI", inserted, make, model)
        return _result(SOURCE_REMOTE, trims)

    # ── VIN decode ─────────────────────────────────────────────────

    async def decode_vin(
        self, vin: str, verbose: bool = False, all_trims: bool = False
    ) -> dict[str, Any]:
        """Decode *vin*; raises :class:`VinValidationError` before any I/O."""
        vin = normalize_vin(vin)
        key = f"vin:{vin}:{_flag(verbose)}:{_flag(all_trims)}"
        cached = self.cache.get(key)
        if cached is not None:
            return _result(SOURCE_CACHE, cached)

        existing = self.store.get_vin_decode(vin)
        if existing:
            if row_is_fresh(existing["created_at"], self.vin_row_ttl, self._now()):
                self.cache.set(key, existing["payload"], self.vin_cache_ttl)
                return _result(SOURCE_DB, existing["payload"])
            logger.info("Stored decode for VIN %s is stale, refreshing from CarAPI", vin)

        return await self._single_flight(
            key, lambda: self._fetch_vin(key, vin, verbose, all_trims)
        )

    async def _fetch_vin(
        self, key: str, vin: str, verbose: bool, all_trims: bool
    ) -> dict[str, Any]:
        async with self._client_factory() as client:
            payload = await client.decode_vin(vin, verbose, all_trims)

        self.store.save_vin_decode(vin, payload, created_at=self._now())
        self.cache.set(key, payload, self.vin_cache_ttl)
        logger.info("Decoded VIN %s via CarAPI", vin)
        return _result(SOURCE_REMOTE, payload)


_service: CatalogLookupService | None = None


def get_catalog_service() -> CatalogLookupService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = CatalogLookupService()
    return _service


def set_catalog_service(service: CatalogLookupService | None) -> None:
    """Inject a service instance for testing."""
    global _service  # noqa: PLW0603
    _service = service
