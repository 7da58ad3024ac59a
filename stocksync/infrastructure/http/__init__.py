"""HTTP adapters for the stock provider and the vehicle registry."""

from .autotrader import (
    DEFAULT_PAGE_SIZE,
    PRODUCTION_BASE_URL,
    SANDBOX_BASE_URL,
    AuthError,
    AutoTraderClient,
    ProviderError,
    StockPage,
)
from .ukvd import UKVDClient, normalize_vehicle_details

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "PRODUCTION_BASE_URL",
    "SANDBOX_BASE_URL",
    "AuthError",
    "AutoTraderClient",
    "ProviderError",
    "StockPage",
    "UKVDClient",
    "normalize_vehicle_details",
]
