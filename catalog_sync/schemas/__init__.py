# Pydantic schemas shared by the client, the store and the engine.

from catalog_sync.schemas.catalog import CatalogPage, DetailRecord, LocalRecord, RemoteRecord
from catalog_sync.schemas.sync import SyncMode, SyncPhase, SyncProgress, SyncResult
from catalog_sync.schemas.sync_log import SyncLogEntry

__all__ = [
    "CatalogPage",
    "DetailRecord",
    "LocalRecord",
    "RemoteRecord",
    "SyncMode",
    "SyncPhase",
    "SyncProgress",
    "SyncResult",
    "SyncLogEntry",
]
