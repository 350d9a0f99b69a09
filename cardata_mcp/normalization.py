"""Canonical normalization of provider payloads.

Providers are loose about shape: a catalog response may be a bare list, an
object with a ``data`` (or ``results``/``records``) list, or a single
object under ``data``; items may be bare strings or objects whose name lives
under ``name``, an entity-specific key such as ``make``, or ``description``.
Everything that has to tolerate that drift lives here.
"""

from __future__ import annotations

from typing import Any

_RECORD_LIST_KEYS: tuple[str, ...] = ("data", "results", "records")


def clean_numeric_string(raw: str) -> str:
    """Keep only digits, ``'.'``, and ``'-'``."""
    return "".join(c for c in raw if c.isdigit() or c in {".", "-"})


def parse_int(value: Any) -> int | None:
    """Best-effort integer parsing.  Returns ``None`` for unparseable input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        cleaned = clean_numeric_string(value.strip())
        if not cleaned:
            return None
        try:
            return int(float(cleaned))
        except ValueError:
            return None
    return None


def extract_records(payload: Any, *extra_keys: str) -> list[Any]:
    """Return the list of items in *payload*, whatever envelope it came in."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []

    for key in (*_RECORD_LIST_KEYS, *extra_keys):
        value = payload.get(key)
        if isinstance(value, list):
            return value

    data = payload.get("data")
    if isinstance(data, dict):
        return [data]
    return []


def extract_name(item: Any, *fields: str) -> str:
    """Name of a catalog item: bare string, else ``name``, *fields*, ``description``."""
    if isinstance(item, str):
        return item.strip()
    if not isinstance(item, dict):
        return ""
    for field in ("name", *fields, "description"):
        value = item.get(field)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (str, int, float)):
            text = str(value).strip()
            if text:
                return text
    return ""


def _dedupe(items: list[dict[str, Any]], *key_fields: str) -> list[dict[str, Any]]:
    seen: set[tuple[Any, ...]] = set()
    unique: list[dict[str, Any]] = []
    for item in items:
        key = tuple(
            item[f].lower() if isinstance(item[f], str) else item[f] for f in key_fields
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def normalize_makes(payload: Any) -> list[str]:
    names = [extract_name(item, "make") for item in extract_records(payload, "makes")]
    rows = _dedupe([{"name": n} for n in names if n], "name")
    return [row["name"] for row in rows]


def _first_int(item: dict[str, Any], *fields: str) -> int | None:
    for field in fields:
        parsed = parse_int(item.get(field))
        if parsed is not None:
            return parsed
    return None


def normalize_models(payload: Any) -> list[dict[str, Any]]:
    """Canonical ``{name, year_start, year_end}`` rows for a models response."""
    models: list[dict[str, Any]] = []
    for item in extract_records(payload, "models"):
        name = extract_name(item, "model")
        if not name:
            continue
        year_start = year_end = None
        if isinstance(item, dict):
            year_start = _first_int(item, "year_start", "yearStart", "min_year", "year")
            year_end = _first_int(item, "year_end", "yearEnd", "max_year", "year")
        models.append({"name": name, "year_start": year_start, "year_end": year_end})
    return _dedupe(models, "name")


def normalize_trims(payload: Any, *, default_year: int | None = None) -> list[dict[str, Any]]:
    """Canonical ``{name, year, specs}`` rows; ``specs`` keeps the item verbatim.

    The year comes from the item, then *default_year*, then ``0`` for unknown.
    """
    trims: list[dict[str, Any]] = []
    for item in extract_records(payload, "trims"):
        name = extract_name(item, "trim")
        if not name:
            continue
        specs = item if isinstance(item, dict) else {"name": name}
        year = parse_int(item.get("year")) if isinstance(item, dict) else None
        if year is None:
            year = default_year if default_year is not None else 0
        trims.append({"name": name, "year": year, "specs": specs})
    return _dedupe(trims, "year", "name")


# ── Vincario ────────────────────────────────────────────────────────


def vincario_value(payload: dict[str, Any] | None, label: str) -> str:
    """Value for *label* in a Vincario ``decode`` ``[{label, value}]`` array."""
    decode = payload.get("decode") if isinstance(payload, dict) else None
    if not isinstance(decode, list):
        return ""
    for entry in decode:
        if isinstance(entry, dict) and entry.get("label") == label:
            value = entry.get("value")
            return "" if value is None else str(value)
    return ""


def extract_vincario_vehicle(payload: dict[str, Any] | None) -> dict[str, str]:
    return {
        "make": vincario_value(payload, "Make"),
        "model": vincario_value(payload, "Model"),
        "year": vincario_value(payload, "Model Year"),
    }


def is_complete_vehicle(vehicle: dict[str, str]) -> bool:
    return bool(vehicle.get("make") and vehicle.get("model") and vehicle.get("year"))
