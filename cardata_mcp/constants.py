"""Shared constants used across the lookup, client and server modules.

Single source of truth for TTLs, rate limits and user-facing messages.
"""

from __future__ import annotations

CATALOG_CACHE_TTL_SECONDS = 10 * 60  # 10 minutes

# In-memory and durable VIN freshness windows are tracked independently.
VIN_CACHE_TTL_SECONDS = 90 * 24 * 60 * 60  # 90 days
VIN_ROW_TTL_SECONDS = 90 * 24 * 60 * 60  # 90 days

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0

VIN_LENGTH = 17
VIN_FORBIDDEN_CHARS: frozenset[str] = frozenset({"I", "O", "Q"})

# (limit, window_seconds)
CATALOG_RATE_LIMIT = (120, 60)
VIN_RATE_LIMIT = (60, 60)

VINCARIO_DECODE_OPERATION = "decode"

INVALID_VIN_MESSAGE = (
    "Invalid VIN. A VIN must be exactly 17 characters and cannot contain I, O or Q."
)
VIN_REQUIRED_MESSAGE = "VIN is required."
INCOMPLETE_DATA_MESSAGE = (
    "No complete information found for this VIN (make, model or year missing)."
)
NO_DATA_MESSAGE = "No information found for this VIN."
TIMEOUT_MESSAGE = "Timed out while validating the VIN. Please try again."
UPSTREAM_RATE_LIMIT_MESSAGE = "Too many requests. Please wait 30 seconds."
GENERIC_DECODE_ERROR_MESSAGE = "Error while validating the VIN. Please try again."
RATE_LIMIT_MESSAGE = "Too many requests. Please slow down."

BASIC_MAKES: tuple[str, ...] = (
    "Toyota", "Honda", "Nissan", "Mazda", "Subaru", "Mitsubishi",
    "BMW", "Mercedes-Benz", "Audi", "Volkswagen", "Volvo", "Saab",
    "Ford", "Chevrolet", "GMC", "Cadillac", "Buick", "Chrysler",
    "Dodge", "Jeep", "Ram", "Tesla", "Hyundai", "Kia", "Genesis",
    "Fiat", "Alfa Romeo", "Maserati", "Ferrari", "Lamborghini",
    "Porsche", "Bentley", "Rolls-Royce", "Aston Martin", "McLaren",
    "Iveco", "MAN", "Scania", "Volvo Trucks", "Mercedes-Benz Trucks",
)
