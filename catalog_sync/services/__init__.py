# Services: Arternal catalog client, Supabase store, completion notifier

from catalog_sync.services.arternal_service import (
    ArternalService,
    RateLimiter,
    get_arternal_service,
)
from catalog_sync.services.notify_service import (
    NotifyService,
    get_notify_service,
)
from catalog_sync.services.supabase_service import (
    SupabaseService,
    get_supabase_service,
)

__all__ = [
    "ArternalService",
    "RateLimiter",
    "get_arternal_service",
    "NotifyService",
    "get_notify_service",
    "SupabaseService",
    "get_supabase_service",
]
