"""External vehicle-data provider clients."""

from cardata_mcp.clients.carapi import CarApiClient, CarApiClientError
from cardata_mcp.clients.vincario import (
    VincarioClient,
    VincarioClientError,
    VincarioNoDataError,
)

__all__ = [
    "CarApiClient",
    "CarApiClientError",
    "VincarioClient",
    "VincarioClientError",
    "VincarioNoDataError",
]
