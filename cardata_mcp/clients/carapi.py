"""Async CarAPI client (catalog makes/models/trims and VIN decode)."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import aiohttp

from cardata_mcp.clients._http import encode_params, error_message, read_payload
from cardata_mcp.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

_JWT_REFRESH_SKEW_SECONDS = 5 * 60
_DEFAULT_JWT_LIFETIME_SECONDS = 7 * 24 * 60 * 60


class CarApiClientError(RuntimeError):
    """Raised for CarAPI request failures with structured metadata."""

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


class CarApiClient:
    """Async client for the CarAPI catalog endpoints.

    Authenticates with a static bearer API key when one is configured.
    Otherwise an API token/secret pair is exchanged for a JWT, which is
    reused until it is within five minutes of expiry.
    """

    BASE_URL = "https://carapi.app"

    def __init__(
        self,
        api_key: str = "",
        *,
        api_token: str = "",
        api_secret: str = "",
        base_url: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key.strip()
        self.api_token = api_token.strip()
        self.api_secret = api_secret.strip()
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: aiohttp.ClientSession | None = None
        self._jwt: str | None = None
        self._jwt_expires_at: float | None = None

    async def __aenter__(self) -> CarApiClient:
        self.session = aiohttp.ClientSession(
            headers={"Content-Type": "application/json"},
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self.session:
            await self.session.close()

    # ── Auth ────────────────────────────────────────────────────────

    async def _ensure_auth(self) -> None:
        if self.api_key:
            self._jwt = None
            return
        if (
            self._jwt
            and self._jwt_expires_at
            and time.time() + _JWT_REFRESH_SKEW_SECONDS < self._jwt_expires_at
        ):
            return
        if not (self.api_token and self.api_secret):
            return
        if not self.session:
            raise RuntimeError("Client not entered as context manager")

        try:
            async with self.session.post(
                f"{self.base_url}/api/auth",
                json={"token": self.api_token, "secret": self.api_secret},
                timeout=self.timeout,
            ) as resp:
                payload = await read_payload(resp)
                if resp.status >= 400:
                    logger.warning(
                        "CarAPI auth failed (%s): %s",
                        resp.status,
                        error_message(payload, "authentication rejected"),
                    )
                    return
        except (aiohttp.ClientError, TimeoutError) as exc:
            logger.warning("CarAPI auth failed: %s", exc)
            return

        if isinstance(payload, str):
            payload = {"jwt": payload}
        elif not isinstance(payload, dict):
            payload = {}
        jwt = payload.get("jwt") or payload.get("token") or payload.get("access_token")
        if not jwt:
            logger.warning("CarAPI auth response did not include a token")
            return
        expires_in = (
            payload.get("expiresIn")
            or payload.get("expires_in")
            or _DEFAULT_JWT_LIFETIME_SECONDS
        )
        try:
            lifetime = float(expires_in)
        except (TypeError, ValueError):
            lifetime = _DEFAULT_JWT_LIFETIME_SECONDS
        self._jwt = str(jwt)
        self._jwt_expires_at = time.time() + lifetime

    def _auth_headers(self) -> dict[str, str]:
        if self._jwt:
            return {"Authorization": f"Bearer {self._jwt}"}
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    # ── Transport ───────────────────────────────────────────────────

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not self.session:
            raise RuntimeError("Client not entered as context manager")

        await self._ensure_auth()
        url = f"{self.base_url}{path}"
        query = encode_params(params or {})
        try:
            async with self.session.get(
                url,
                params=query,
                headers=self._auth_headers(),
                timeout=self.timeout,
            ) as resp:
                payload = await read_payload(resp)
                if resp.status >= 400:
                    message = error_message(
                        payload, f"CarAPI request failed with HTTP {resp.status}."
                    )
                    logger.warning("CarAPI GET %s failed (%s): %s", path, resp.status, message)
                    raise CarApiClientError(
                        message,
                        code="CARAPI_HTTP_ERROR",
                        status=resp.status,
                        details=payload if isinstance(payload, dict) else {"response": payload},
                    )
                return payload
        except CarApiClientError:
            raise
        except TimeoutError as exc:
            logger.warning("CarAPI GET %s timed out", path)
            raise CarApiClientError(
                "CarAPI request timed out.",
                code="TIMEOUT",
                details={"path": path, "params": query},
            ) from exc
        except aiohttp.ClientError as exc:
            logger.warning("CarAPI GET %s failed: %s", path, exc)
            raise CarApiClientError(
                "CarAPI request failed due to a network/client error.",
                code="NETWORK_ERROR",
                details={"path": path, "params": query, "error": str(exc)},
            ) from exc

    # ── Endpoints ───────────────────────────────────────────────────

    async def get_makes(self, year: int | None = None) -> Any:
        return await self._request("/api/makes", {"year": year})

    async def get_models(self, make: str, year: int | None = None) -> Any:
        return await self._request("/api/models", {"make": make, "year": year})

    async def get_trims(
        self,
        make: str,
        model: str,
        year: int | None = None,
        all_trims: bool = False,
    ) -> Any:
        return await self._request(
            "/api/trims",
            {"make": make, "model": model, "year": year, "all": all_trims},
        )

    async def decode_vin(
        self, vin: str, verbose: bool = False, all_trims: bool = False
    ) -> Any:
        """Decode a VIN. The VIN is expected to be validated by the caller."""
        return await self._request(
            f"/api/vin/{quote(vin, safe='')}",
            {"verbose": verbose, "allTrims": all_trims},
        )
