"""
Bokun Webhook Processor

Handles one webhook delivery synchronously:
1. received -> verified: HMAC signature check (401 on failure)
2. verified -> dispatched: parse the envelope and route by event type
3. dispatched -> handled | skipped | failed

Skipped events (unknown type, unmapped product, unknown booking, missing
fields) still return 200 so Bokun does not retry something we ignore on
purpose. Persistence and unexpected errors return 500 with a JSON body.

Deliveries share no in-process state; correctness under retries comes
from BookingCacheWriter's upsert on bokun_booking_id.
"""

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..errors import AuthenticationError, MalformedEventError, MappingError
from ..schemas.webhook import AvailabilitySlot, BokunWebhookEvent
from ..utils.db_helpers import utcnow
from ..utils.logging_config import get_logger
from .availability_cache import AvailabilityCacheService
from .booking_record import parse_booking, parse_date
from .cache_writer import BookingCacheWriter
from .product_mapper import ProductMapper
from .webhook_signature import WebhookSignatureVerifier

logger = get_logger(__name__)


class WebhookState(str, enum.Enum):
    HANDLED = "handled"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class HandlerResult:
    """What an event handler did"""
    state: WebhookState
    booking_id: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class WebhookOutcome:
    """Terminal state of a delivery plus the HTTP response to send"""
    state: WebhookState
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    event_type: Optional[str] = None


class BokunWebhookProcessor:

    def __init__(
        self,
        db: Session,
        verifier: WebhookSignatureVerifier,
        mapper: ProductMapper,
        cache_writer: BookingCacheWriter,
        availability: AvailabilityCacheService
    ):
        self.db = db
        self.verifier = verifier
        self.mapper = mapper
        self.cache_writer = cache_writer
        self.availability = availability

        self._handlers: Dict[str, Callable[[Dict], HandlerResult]] = {
            "booking.created": self.handle_booking_created,
            "booking.cancelled": self.handle_booking_cancelled,
            "booking.modified": self.handle_booking_modified,
            "availability.updated": self.handle_availability_updated,
        }

    def handle(self, body: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Run one delivery through the state machine"""
        try:
            self.verifier.require(body, signature)
        except AuthenticationError as e:
            logger.webhook_outcome(None, WebhookState.FAILED.value, reason=str(e))
            return WebhookOutcome(WebhookState.FAILED, 401, {"error": "Invalid signature"})

        try:
            event = self._parse_event(body)
        except MalformedEventError as e:
            logger.webhook_outcome(None, WebhookState.SKIPPED.value, reason=str(e))
            return WebhookOutcome(WebhookState.SKIPPED, 200, {"success": True, "processed": None})

        logger.info(f"Received Bokun webhook: {event.type}")

        handler = self._handlers.get(event.type)
        if handler is None:
            logger.webhook_outcome(event.type, WebhookState.SKIPPED.value, reason="unhandled event type")
            return self._ack(event.type, WebhookState.SKIPPED)

        try:
            result = handler(event.data)
        except MalformedEventError as e:
            result = HandlerResult(WebhookState.SKIPPED, reason=str(e))
        except Exception as e:
            logger.exception(f"Bokun webhook processing error: {e}")
            logger.webhook_outcome(event.type, WebhookState.FAILED.value, reason=str(e))
            return WebhookOutcome(
                WebhookState.FAILED,
                500,
                {"error": "Processing failed", "details": str(e)},
                event_type=event.type
            )

        logger.webhook_outcome(event.type, result.state.value, booking_id=result.booking_id, reason=result.reason)
        return self._ack(event.type, result.state)

    def _ack(self, event_type: str, state: WebhookState) -> WebhookOutcome:
        return WebhookOutcome(state, 200, {"success": True, "processed": event_type}, event_type=event_type)

    def _parse_event(self, body: bytes) -> BokunWebhookEvent:
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedEventError(f"Webhook body is not valid JSON: {e}") from e

        try:
            return BokunWebhookEvent.model_validate(payload)
        except ValidationError as e:
            raise MalformedEventError(f"Invalid webhook envelope: {e.error_count()} errors") from e

    # ========================================
    # Event handlers
    # ========================================

    def handle_booking_created(self, data: Dict) -> HandlerResult:
        booking = data.get("booking")
        if not isinstance(booking, dict):
            logger.error("No booking data in external booking event")
            return HandlerResult(WebhookState.SKIPPED, reason="missing booking")

        record = parse_booking(booking)
        try:
            local_type = self.mapper.require_local_type(record.product_id)
        except MappingError as e:
            logger.error(str(e))
            return HandlerResult(WebhookState.SKIPPED, record.booking_id, "unmapped product")

        logger.info(f"Processing external booking: {record.booking_id}")
        self.cache_writer.upsert([record.to_cache_row(local_type, utcnow())])
        self.availability.invalidate(local_type, record.booking_date)

        return HandlerResult(WebhookState.HANDLED, record.booking_id)

    def handle_booking_cancelled(self, data: Dict) -> HandlerResult:
        booking_id = data.get("bookingId")
        if not booking_id and isinstance(data.get("booking"), dict):
            booking_id = data["booking"].get("id")
        if not booking_id:
            logger.error("No booking ID in cancellation event")
            return HandlerResult(WebhookState.SKIPPED, reason="missing bookingId")

        booking_id = str(booking_id)
        logger.info(f"Processing external cancellation: {booking_id}")

        row = self.cache_writer.mark_cancelled(booking_id)
        if row is None:
            logger.error(f"External booking not found for cancellation: {booking_id}")
            return HandlerResult(WebhookState.SKIPPED, booking_id, "booking not cached")

        self.availability.invalidate(row.tour_type, row.booking_date)
        return HandlerResult(WebhookState.HANDLED, booking_id)

    def handle_booking_modified(self, data: Dict) -> HandlerResult:
        """
        Cancel then re-create from the same payload.

        Availability for the booking date is invalidated by both steps.
        """
        cancelled = self.handle_booking_cancelled(data)
        try:
            created = self.handle_booking_created(data)
        except MalformedEventError as e:
            created = HandlerResult(WebhookState.SKIPPED, reason=str(e))

        if WebhookState.HANDLED in (cancelled.state, created.state):
            return HandlerResult(WebhookState.HANDLED, created.booking_id or cancelled.booking_id)
        return HandlerResult(
            WebhookState.SKIPPED,
            created.booking_id or cancelled.booking_id,
            f"cancel: {cancelled.reason}; create: {created.reason}"
        )

    def handle_availability_updated(self, data: Dict) -> HandlerResult:
        product_id = data.get("productId")
        availability_date = parse_date(data.get("date"))
        if not product_id or not availability_date:
            logger.error("Invalid availability update data")
            return HandlerResult(WebhookState.SKIPPED, reason="missing productId or date")

        product_id = str(product_id)
        try:
            local_type = self.mapper.require_local_type(product_id)
        except MappingError as e:
            logger.error(f"{e} in availability update")
            return HandlerResult(WebhookState.SKIPPED, reason="unmapped product")

        logger.info(f"Processing availability update for product: {product_id}, date: {availability_date}")

        slots, has_slots = self._availability_slots(data.get("availability"))
        if has_slots:
            self.availability.refresh(product_id, availability_date, slots)
        else:
            # No authoritative numbers: drop the cache so readers recompute
            self.availability.invalidate(local_type, availability_date)

        return HandlerResult(WebhookState.HANDLED)

    def _availability_slots(self, raw) -> Tuple[list, bool]:
        if not isinstance(raw, list):
            return [], False

        slots = []
        for item in raw:
            try:
                slots.append(AvailabilitySlot.model_validate(item).model_dump())
            except ValidationError:
                logger.warning(f"Ignoring invalid availability slot: {item}")
        return slots, True
