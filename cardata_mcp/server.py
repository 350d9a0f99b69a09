"""CarData MCP server — FastMCP entry point with the car-data HTTP endpoints.

The lookup operations are exposed twice: as MCP tools (JSON string results)
and as plain HTTP routes registered on the same FastMCP app, served by
uvicorn through the streamable-HTTP transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import uvicorn
from mcp.server.fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from cardata_mcp.cache import SHARED_CATALOG_CACHE
from cardata_mcp.clients.carapi import CarApiClientError
from cardata_mcp.clients.vincario import VincarioClientError
from cardata_mcp.config import load_settings
from cardata_mcp.constants import (
    CATALOG_RATE_LIMIT,
    GENERIC_DECODE_ERROR_MESSAGE,
    RATE_LIMIT_MESSAGE,
    TIMEOUT_MESSAGE,
    UPSTREAM_RATE_LIMIT_MESSAGE,
    VIN_RATE_LIMIT,
    VIN_REQUIRED_MESSAGE,
)
from cardata_mcp.data.catalog import get_store
from cardata_mcp.data.seed import seed_basic_makes
from cardata_mcp.ratelimit import FixedWindowRateLimiter
from cardata_mcp.services.catalog import get_catalog_service
from cardata_mcp.services.vincario import get_vincario_service
from cardata_mcp.vin import VinValidationError, normalize_vin

mcp = FastMCP("CarData")
logger = logging.getLogger(__name__)

_RATE_LIMITERS: dict[str, FixedWindowRateLimiter] = {
    "makes": FixedWindowRateLimiter(*CATALOG_RATE_LIMIT),
    "models": FixedWindowRateLimiter(*CATALOG_RATE_LIMIT),
    "trims": FixedWindowRateLimiter(*CATALOG_RATE_LIMIT),
    "vin": FixedWindowRateLimiter(*VIN_RATE_LIMIT),
    "vincario": FixedWindowRateLimiter(*VIN_RATE_LIMIT),
}

_http_app: Starlette | None = None


def reset_rate_limits() -> None:
    for limiter in _RATE_LIMITERS.values():
        limiter.reset()


# ── Request helpers ─────────────────────────────────────────────────


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


def _throttle(
    request: Request, bucket: str, body: dict[str, Any] | None = None
) -> JSONResponse | None:
    limiter = _RATE_LIMITERS[bucket]
    key = _client_key(request)
    if limiter.hit(key):
        return None
    logger.warning("Rate limit exceeded on %s for %s", bucket, key)
    return JSONResponse(
        body or {"error": RATE_LIMIT_MESSAGE},
        status_code=429,
        headers={"Retry-After": str(limiter.retry_after(key))},
    )


def _parse_year(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"year must be an integer, got {raw!r}") from None


def _truthy(raw: str | None) -> bool:
    return (raw or "").strip().lower() in {"yes", "true"}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=400)


def _carapi_error_response(exc: CarApiClientError) -> JSONResponse:
    status = 504 if exc.code == "TIMEOUT" else 502
    return JSONResponse({"error": str(exc), "code": exc.code}, status_code=status)


def _vincario_error_response(exc: VincarioClientError) -> JSONResponse:
    if exc.code == "TIMEOUT":
        return JSONResponse({"success": False, "error": TIMEOUT_MESSAGE}, status_code=504)
    if exc.status == 429:
        return JSONResponse(
            {"success": False, "error": UPSTREAM_RATE_LIMIT_MESSAGE}, status_code=429
        )
    return JSONResponse(
        {"success": False, "error": GENERIC_DECODE_ERROR_MESSAGE}, status_code=502
    )


def _tool_error(tool_name: str, exc: Exception) -> str:
    logger.error("%s failed: %s", tool_name, exc)
    payload: dict[str, Any] = {"error": True, "message": str(exc)}
    code = getattr(exc, "code", None)
    if code:
        payload["code"] = code
    return json.dumps(payload)


# ── HTTP routes ─────────────────────────────────────────────────────


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok"})


@mcp.custom_route("/car-data/makes", methods=["GET"])
async def car_data_makes(request: Request) -> Response:
    limited = _throttle(request, "makes")
    if limited:
        return limited
    try:
        year = _parse_year(request.query_params.get("year"))
    except ValueError as exc:
        return _bad_request(str(exc))

    try:
        result = await get_catalog_service().get_makes(year)
    except CarApiClientError as exc:
        logger.error("Makes lookup failed: %s", exc)
        return _carapi_error_response(exc)
    return JSONResponse(result)


@mcp.custom_route("/car-data/models", methods=["GET"])
async def car_data_models(request: Request) -> Response:
    limited = _throttle(request, "models")
    if limited:
        return limited
    make = request.query_params.get("make", "").strip()
    if not make:
        return _bad_request("make is required")
    try:
        year = _parse_year(request.query_params.get("year"))
    except ValueError as exc:
        return _bad_request(str(exc))

    try:
        result = await get_catalog_service().get_models(make, year)
    except CarApiClientError as exc:
        logger.error("Models lookup for %s failed: %s", make, exc)
        return _carapi_error_response(exc)
    return JSONResponse(result)


@mcp.custom_route("/car-data/trims", methods=["GET"])
async def car_data_trims(request: Request) -> Response:
    limited = _throttle(request, "trims")
    if limited:
        return limited
    params = request.query_params
    make = params.get("make", "").strip()
    model = params.get("model", "").strip()
    if not make or not model:
        return _bad_request("make and model are required")
    try:
        year = _parse_year(params.get("year"))
    except ValueError as exc:
        return _bad_request(str(exc))

    try:
        result = await get_catalog_service().get_trims(
            make, model, year, _truthy(params.get("all"))
        )
    except CarApiClientError as exc:
        logger.error("Trims lookup for %s %s failed: %s", make, model, exc)
        return _carapi_error_response(exc)
    return JSONResponse(result)


@mcp.custom_route("/car-data/vin/{vin}", methods=["GET"])
async def car_data_vin(request: Request) -> Response:
    limited = _throttle(request, "vin")
    if limited:
        return limited
    vin = request.path_params["vin"]
    try:
        result = await get_catalog_service().decode_vin(
            vin,
            _truthy(request.query_params.get("verbose")),
            _truthy(request.query_params.get("all_trims")),
        )
    except VinValidationError as exc:
        return _bad_request(str(exc))
    except CarApiClientError as exc:
        logger.error("VIN decode for %s failed: %s", vin, exc)
        return _carapi_error_response(exc)
    return JSONResponse(result)


@mcp.custom_route("/vincario/decode", methods=["POST"])
async def vincario_decode(request: Request) -> Response:
    limited = _throttle(
        request, "vincario", {"success": False, "error": RATE_LIMIT_MESSAGE}
    )
    if limited:
        return limited
    try:
        body = await request.json()
    except ValueError:
        body = None
    vin = body.get("vin") if isinstance(body, dict) else None
    if not vin or not isinstance(vin, str):
        return JSONResponse({"success": False, "error": VIN_REQUIRED_MESSAGE}, status_code=400)
    try:
        normalize_vin(vin)
    except VinValidationError as exc:
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

    try:
        result = await get_vincario_service().decode_vin(vin)
    except VincarioClientError as exc:
        logger.error("Vincario decode for %s failed: %s", vin, exc)
        return _vincario_error_response(exc)
    return JSONResponse(result)


# ── Tool registrations ──────────────────────────────────────────────


@mcp.tool()
async def get_car_makes(year: int | None = None) -> str:
    """List vehicle makes, optionally for a model year.

    The result JSON carries ``source`` (cache, db or remote) and ``data``.
    """
    try:
        result = await get_catalog_service().get_makes(year)
    except (CarApiClientError, ValueError) as exc:
        return _tool_error("get_car_makes", exc)
    return json.dumps(result)


@mcp.tool()
async def get_car_models(make: str, year: int | None = None) -> str:
    """List models for a make, optionally for a model year."""
    try:
        result = await get_catalog_service().get_models(make, year)
    except (CarApiClientError, ValueError) as exc:
        return _tool_error("get_car_models", exc)
    return json.dumps(result)


@mcp.tool()
async def get_car_trims(
    make: str,
    model: str,
    year: int | None = None,
    all_trims: bool = False,
) -> str:
    """List trims for a make/model, optionally for a model year."""
    try:
        result = await get_catalog_service().get_trims(make, model, year, all_trims)
    except (CarApiClientError, ValueError) as exc:
        return _tool_error("get_car_trims", exc)
    return json.dumps(result)


@mcp.tool()
async def decode_vin(vin: str, verbose: bool = False, all_trims: bool = False) -> str:
    """Decode a 17-character VIN through the catalog provider."""
    try:
        result = await get_catalog_service().decode_vin(vin, verbose, all_trims)
    except (CarApiClientError, ValueError) as exc:
        return _tool_error("decode_vin", exc)
    return json.dumps(result)


@mcp.tool()
async def decode_vin_vincario(vin: str) -> str:
    """Decode a VIN to make, model and year through Vincario."""
    try:
        result = await get_vincario_service().decode_vin(vin)
    except VincarioClientError as exc:
        return _tool_error("decode_vin_vincario", exc)
    return json.dumps(result)


@mcp.tool()
def seed_basic_car_data() -> str:
    """Populate the makes table with common makes when it is empty."""
    result = seed_basic_makes(get_store())
    if result["inserted"]:
        # Cached makes lists (including empty ones) predate the seed.
        SHARED_CATALOG_CACHE.clear()
    return json.dumps(result)


# ── Entry point ─────────────────────────────────────────────────────


def http_app() -> Starlette:
    """Starlette app serving the MCP transport and the car-data routes."""
    global _http_app  # noqa: PLW0603
    if _http_app is None:
        _http_app = mcp.streamable_http_app()
    return _http_app


def main() -> None:
    settings = load_settings()
    uvicorn.run(http_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
