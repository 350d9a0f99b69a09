"""Response helpers shared by the provider clients."""

from __future__ import annotations

import json
from typing import Any

import aiohttp


async def read_payload(resp: aiohttp.ClientResponse) -> Any:
    """Decode a response body as JSON, wrapping non-JSON text as ``{"raw": ...}``."""
    raw_text = await resp.text()
    if not raw_text:
        return {}
    try:
        return json.loads(raw_text)
    except json.JSONDecodeError:
        return {"raw": raw_text}


def error_message(payload: Any, default: str) -> str:
    if isinstance(payload, dict):
        return str(
            payload.get("error")
            or payload.get("message")
            or payload.get("detail")
            or default
        )
    return default


def encode_params(params: dict[str, Any]) -> dict[str, str]:
    """Drop ``None`` values and render booleans the way the providers expect."""
    encoded: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded
