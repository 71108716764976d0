# Models package
from .product_mapping import BokunProduct
from .booking_cache import BokunBookingCache, CachedBookingStatus
from .availability_cache import BokunAvailabilityCache
from .sync_metadata import BokunCacheMetadata, SyncStatus

__all__ = [
    "BokunProduct",
    "BokunBookingCache", "CachedBookingStatus",
    "BokunAvailabilityCache",
    "BokunCacheMetadata", "SyncStatus",
]
