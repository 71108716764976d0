"""
Cache Sync Schemas

Response shapes of the /bokun-cache-sync endpoints.
"""

from typing import Optional, List
from pydantic import BaseModel


class DateRange(BaseModel):
    start: str
    end: str


class ProductSyncResult(BaseModel):
    product_id: str
    tour_type: str
    bookings_fetched: int = 0
    success: bool
    error: Optional[str] = None


class SyncAllResponse(BaseModel):
    success: bool
    total_bookings_cached: int
    products_processed: int
    date_range: DateRange
    results: List[ProductSyncResult]
    # Set when the final cache write failed
    error: Optional[str] = None


class ProductMetadata(BaseModel):
    product_id: str
    last_full_sync: Optional[str] = None
    total_bookings_cached: int = 0
    sync_status: str
    sync_error: Optional[str] = None
    updated_at: Optional[str] = None


class CacheHealth(BaseModel):
    total_cached_bookings: int
    products_metadata: List[ProductMetadata]


class CacheHealthResponse(BaseModel):
    success: bool = True
    cache_health: CacheHealth
