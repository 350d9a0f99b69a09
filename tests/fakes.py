"""Provider client doubles for service and server tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock


def make_client_mock(**methods: Any) -> AsyncMock:
    """An async-context-manager client mock whose methods return the given values.

    Pass an exception instance to make the method raise it instead.
    """
    instance = AsyncMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    for name, value in methods.items():
        if isinstance(value, BaseException):
            setattr(instance, name, AsyncMock(side_effect=value))
        else:
            setattr(instance, name, AsyncMock(return_value=value))
    return instance


def factory_for(instance: AsyncMock) -> Callable[[], AsyncMock]:
    return lambda: instance


def make_response_ctx(status: int = 200, text: str = "") -> AsyncMock:
    """An ``async with session.get(...)`` context yielding a canned response."""
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=ctx)
    ctx.__aexit__ = AsyncMock(return_value=False)
    ctx.status = status
    ctx.text = AsyncMock(return_value=text)
    return ctx


def vincario_payload(make: str = "Honda", model: str = "Civic", year: str = "2021") -> dict[str, Any]:
    decode = []
    if make:
        decode.append({"label": "Make", "value": make})
    if model:
        decode.append({"label": "Model", "value": model})
    if year:
        decode.append({"label": "Model Year", "value": year})
    decode.append({"label": "Body", "value": "Sedan"})
    return {"price": 0, "decode": decode}
