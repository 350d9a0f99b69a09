"""VIN format validation and Vincario request signing."""

from __future__ import annotations

import hashlib

from cardata_mcp.constants import INVALID_VIN_MESSAGE, VIN_FORBIDDEN_CHARS, VIN_LENGTH


class VinValidationError(ValueError):
    """Raised when a candidate VIN is structurally invalid."""

    def __init__(self, vin: str, message: str = INVALID_VIN_MESSAGE) -> None:
        super().__init__(message)
        self.vin = vin


def is_valid_vin(vin: str | None) -> bool:
    """Return True for exactly 17 characters with none of I, O, Q."""
    if not vin or len(vin) != VIN_LENGTH:
        return False
    return not any(c in VIN_FORBIDDEN_CHARS for c in vin.upper())


def normalize_vin(vin: str | None) -> str:
    """Strip and upper-case *vin*, raising :class:`VinValidationError` if invalid."""
    normalized = (vin or "").strip().upper()
    if not is_valid_vin(normalized):
        raise VinValidationError(vin or "")
    return normalized


def control_sum(vin: str, operation: str, client_id: str, client_secret: str) -> str:
    """Vincario control sum: first 10 hex chars of SHA-1 over ``vin|op|id|secret``."""
    data = f"{vin}|{operation}|{client_id}|{client_secret}"
    return hashlib.sha1(data.encode("utf-8")).hexdigest()[:10]
