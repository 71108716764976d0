"""
Bokun Webhook Schemas

Pydantic models for Bokun webhook payloads and responses.
"""

from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class AvailabilitySlot(BaseModel):
    """One slot of an availability.updated event"""
    time: str
    availableSpots: int = 0


class BokunWebhookEvent(BaseModel):
    """
    Envelope of every Bokun webhook delivery.

    data depends on the event type:
    - booking.created / booking.modified: {"booking": {...}}
    - booking.cancelled: {"bookingId": "..."}
    - availability.updated: {"productId", "date", "availability": [...]}
    """
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Event type, e.g. booking.created")
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None


class WebhookAck(BaseModel):
    success: bool = True
    processed: Optional[str] = None


class WebhookError(BaseModel):
    error: str
    details: Optional[str] = None
