# Schemas package
from .webhook import BokunWebhookEvent, AvailabilitySlot, WebhookAck, WebhookError
from .cache_sync import (
    DateRange, ProductSyncResult, SyncAllResponse,
    ProductMetadata, CacheHealth, CacheHealthResponse,
)

__all__ = [
    "BokunWebhookEvent", "AvailabilitySlot", "WebhookAck", "WebhookError",
    "DateRange", "ProductSyncResult", "SyncAllResponse",
    "ProductMetadata", "CacheHealth", "CacheHealthResponse",
]
