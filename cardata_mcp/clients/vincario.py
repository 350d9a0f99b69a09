"""Async Vincario VIN decode client (signed-URL authentication)."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from cardata_mcp.clients._http import error_message, read_payload
from cardata_mcp.constants import (
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    NO_DATA_MESSAGE,
    VINCARIO_DECODE_OPERATION,
)
from cardata_mcp.vin import control_sum

logger = logging.getLogger(__name__)


class VincarioClientError(RuntimeError):
    """Raised for Vincario request/config errors with structured metadata."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.details = details or {}


class VincarioNoDataError(VincarioClientError):
    """The provider answered, but reported no decode data for the VIN."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="NO_DATA", status=200, details=details)


class VincarioClient:
    """Async client for the Vincario decode endpoint.

    There is no header authentication: the API key and a per-VIN control sum
    are embedded in the request path.
    """

    BASE_URL = "https://api.vincario.com/3.2"

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key.strip()
        self.secret_key = secret_key.strip()
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> VincarioClient:
        if not (self.api_key and self.secret_key):
            raise VincarioClientError(
                "VINCARIO_API_KEY / VINCARIO_SECRET_KEY are not configured.",
                code="MISSING_API_KEY",
            )
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self.session:
            await self.session.close()

    def decode_url(self, vin: str) -> str:
        signature = control_sum(
            vin, VINCARIO_DECODE_OPERATION, self.api_key, self.secret_key
        )
        return (
            f"{self.base_url}/{self.api_key}/{signature}/"
            f"{VINCARIO_DECODE_OPERATION}/{vin}.json"
        )

    async def decode(self, vin: str) -> dict[str, Any]:
        """Decode a validated, upper-cased VIN and return the raw payload."""
        if not self.session:
            raise RuntimeError("Client not entered as context manager")

        try:
            async with self.session.get(self.decode_url(vin), timeout=self.timeout) as resp:
                payload = await read_payload(resp)
                if resp.status >= 400:
                    raise VincarioClientError(
                        error_message(
                            payload, f"Vincario request failed with HTTP {resp.status}."
                        ),
                        code="VINCARIO_HTTP_ERROR",
                        status=resp.status,
                        details=payload if isinstance(payload, dict) else {"response": payload},
                    )
        except VincarioClientError:
            raise
        except TimeoutError as exc:
            raise VincarioClientError(
                "Vincario request timed out.",
                code="TIMEOUT",
                details={"vin": vin},
            ) from exc
        except aiohttp.ClientError as exc:
            logger.error("Vincario client error for %s: %s", vin, exc)
            raise VincarioClientError(
                "Vincario request failed due to a network/client error.",
                code="NETWORK_ERROR",
                details={"vin": vin, "error": str(exc)},
            ) from exc

        if not isinstance(payload, dict) or not payload:
            raise VincarioNoDataError(NO_DATA_MESSAGE, details={"vin": vin})
        if payload.get("error"):
            raise VincarioNoDataError(str(payload["error"]), details=payload)
        return payload
