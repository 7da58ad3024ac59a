from .stock_cache import StockCacheRepository
from .sync_runs import SyncRunRepository
from .vehicle_metadata import VehicleMetadataRepository

__all__ = [
    "StockCacheRepository",
    "SyncRunRepository",
    "VehicleMetadataRepository",
]
