"""
Tests for Bokun webhook processing, end to end against SQLite.

Covers:
- booking.created for mapped and unmapped products
- Duplicate delivery idempotency
- Cancellation and modification
- availability.updated with and without slot data
- Signature failures and unexpected errors
"""

import hashlib
import hmac
import json
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from bokun_sync.errors import PersistenceError
from bokun_sync.models import BokunAvailabilityCache, BokunBookingCache
from bokun_sync.services.availability_cache import AvailabilityCacheService
from bokun_sync.services.cache_writer import BookingCacheWriter
from bokun_sync.services.product_mapper import ProductMapper
from bokun_sync.services.webhook_processor import BokunWebhookProcessor, WebhookState
from bokun_sync.services.webhook_signature import WebhookSignatureVerifier
from bokun_sync.utils.db_helpers import utcnow

SECRET = "webhook-secret"
DAY = date(2026, 7, 10)


def encode(event: dict):
    body = json.dumps(event).encode("utf-8")
    signature = hmac.new(SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return body, signature


def booking_event(booking_id="BK-1", product_id="100", participants=2, event_type="booking.created", **booking):
    data = {
        "id": booking_id,
        "productId": product_id,
        "date": DAY.isoformat(),
        "time": "18:00",
        "participants": participants,
        "status": "CONFIRMED",
    }
    data.update(booking)
    return {"type": event_type, "data": {"booking": data}, "timestamp": "2026-07-01T10:00:00Z"}


def seed_slot(db, product_id="100", day=DAY, time_slot="18:00"):
    now = utcnow()
    db.add(BokunAvailabilityCache(
        bokun_product_id=product_id,
        date=day,
        time_slot=time_slot,
        available_spots=10,
        cached_at=now,
        expires_at=now + timedelta(minutes=15),
    ))
    db.commit()


@pytest.fixture
def processor(db):
    mapper = ProductMapper(db)
    return BokunWebhookProcessor(
        db,
        WebhookSignatureVerifier(SECRET),
        mapper,
        BookingCacheWriter(db),
        AvailabilityCacheService(db, mapper),
    )


class TestBookingCreated:

    def test_mapped_product_is_cached_and_availability_invalidated(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        seed_slot(db)
        body, signature = encode(booking_event(participants=2))

        outcome = processor.handle(body, signature)

        assert outcome.status_code == 200
        assert outcome.body == {"success": True, "processed": "booking.created"}
        assert outcome.state == WebhookState.HANDLED

        cached = db.query(BokunBookingCache).one()
        assert cached.bokun_booking_id == "BK-1"
        assert cached.tour_type == "NIGHT_TOUR"
        assert cached.adults == 2
        assert cached.total_participants == 2
        assert cached.status == "CONFIRMED"
        assert db.query(BokunAvailabilityCache).count() == 0

    def test_unmapped_product_is_skipped(self, db, processor):
        seed_slot(db)
        body, signature = encode(booking_event(product_id="999"))

        outcome = processor.handle(body, signature)

        assert outcome.status_code == 200
        assert outcome.body == {"success": True, "processed": "booking.created"}
        assert outcome.state == WebhookState.SKIPPED
        assert db.query(BokunBookingCache).count() == 0
        assert db.query(BokunAvailabilityCache).count() == 1

    def test_inactive_product_is_skipped(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR", is_active=False)
        body, signature = encode(booking_event())

        outcome = processor.handle(body, signature)

        assert outcome.state == WebhookState.SKIPPED
        assert db.query(BokunBookingCache).count() == 0

    def test_duplicate_delivery_keeps_one_row_with_latest_data(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")

        processor.handle(*encode(booking_event(participants=2)))
        outcome = processor.handle(*encode(booking_event(participants=3)))
        db.expire_all()

        assert outcome.status_code == 200
        rows = db.query(BokunBookingCache).all()
        assert len(rows) == 1
        assert rows[0].total_participants == 3

    def test_missing_booking_is_skipped(self, processor):
        body, signature = encode({"type": "booking.created", "data": {}})

        outcome = processor.handle(body, signature)

        assert outcome.status_code == 200
        assert outcome.state == WebhookState.SKIPPED

    def test_booking_without_date_is_skipped(self, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        event = booking_event()
        del event["data"]["booking"]["date"]

        outcome = processor.handle(*encode(event))

        assert outcome.status_code == 200
        assert outcome.state == WebhookState.SKIPPED

    def test_string_pricing_category_is_acknowledged(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        event = booking_event(priceCategoryBookings=[{"pricingCategory": "ADULT", "quantity": 2}])

        outcome = processor.handle(*encode(event))

        assert outcome.status_code == 200
        assert outcome.body == {"success": True, "processed": "booking.created"}
        assert db.query(BokunBookingCache).one().total_participants == 2

    def test_wrongly_typed_customer_is_skipped_not_retried(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        body, signature = encode(booking_event(customer="anonymous"))

        outcome = processor.handle(body, signature)

        assert outcome.status_code == 200
        assert outcome.body == {"success": True, "processed": "booking.created"}
        assert outcome.state == WebhookState.SKIPPED
        assert db.query(BokunBookingCache).count() == 0


class TestBookingCancelled:

    def test_cancel_flips_status_and_invalidates(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        processor.handle(*encode(booking_event()))
        seed_slot(db)

        outcome = processor.handle(*encode({"type": "booking.cancelled", "data": {"bookingId": "BK-1"}}))
        db.expire_all()

        assert outcome.state == WebhookState.HANDLED
        assert outcome.body == {"success": True, "processed": "booking.cancelled"}
        row = db.query(BokunBookingCache).one()
        assert row.status == "CANCELLED"
        assert db.query(BokunAvailabilityCache).count() == 0

    def test_cancel_unknown_booking_is_skipped(self, db, processor):
        outcome = processor.handle(*encode({"type": "booking.cancelled", "data": {"bookingId": "nope"}}))

        assert outcome.status_code == 200
        assert outcome.state == WebhookState.SKIPPED

    def test_cancel_without_id_is_skipped(self, processor):
        outcome = processor.handle(*encode({"type": "booking.cancelled", "data": {}}))
        assert outcome.state == WebhookState.SKIPPED


class TestBookingModified:

    def test_modify_recreates_with_new_data(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        processor.handle(*encode(booking_event(participants=2)))

        event = booking_event(participants=4, event_type="booking.modified", time="20:00")
        event["data"]["bookingId"] = "BK-1"
        outcome = processor.handle(*encode(event))
        db.expire_all()

        assert outcome.state == WebhookState.HANDLED
        assert outcome.body["processed"] == "booking.modified"
        row = db.query(BokunBookingCache).one()
        assert row.status == "CONFIRMED"
        assert row.total_participants == 4
        assert row.booking_time == "20:00"

    def test_modify_of_unseen_booking_creates_it(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")

        outcome = processor.handle(*encode(booking_event(event_type="booking.modified")))

        assert outcome.state == WebhookState.HANDLED
        assert db.query(BokunBookingCache).count() == 1


class TestAvailabilityUpdated:

    def test_slots_refresh_cache(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        event = {
            "type": "availability.updated",
            "data": {
                "productId": "100",
                "date": DAY.isoformat(),
                "availability": [{"time": "18:00", "availableSpots": 6}, {"time": "20:00", "availableSpots": 0}],
            },
        }

        outcome = processor.handle(*encode(event))

        assert outcome.state == WebhookState.HANDLED
        spots = {e.time_slot: e.available_spots for e in db.query(BokunAvailabilityCache).all()}
        assert spots == {"18:00": 6, "20:00": 0}

    def test_without_slots_invalidates(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        seed_slot(db)
        event = {"type": "availability.updated", "data": {"productId": "100", "date": DAY.isoformat()}}

        outcome = processor.handle(*encode(event))

        assert outcome.state == WebhookState.HANDLED
        assert db.query(BokunAvailabilityCache).count() == 0

    def test_unmapped_product_is_skipped(self, db, processor):
        seed_slot(db, product_id="999")
        event = {"type": "availability.updated", "data": {"productId": "999", "date": DAY.isoformat()}}

        outcome = processor.handle(*encode(event))

        assert outcome.state == WebhookState.SKIPPED
        assert db.query(BokunAvailabilityCache).count() == 1

    def test_missing_date_is_skipped(self, processor):
        outcome = processor.handle(*encode({"type": "availability.updated", "data": {"productId": "100"}}))
        assert outcome.state == WebhookState.SKIPPED


class TestDeliveryOutcomes:

    def test_invalid_signature_rejected(self, db, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        body, _ = encode(booking_event())

        outcome = processor.handle(body, "sha256=" + "0" * 64)

        assert outcome.status_code == 401
        assert outcome.body == {"error": "Invalid signature"}
        assert outcome.state == WebhookState.FAILED
        assert db.query(BokunBookingCache).count() == 0

    def test_missing_signature_rejected(self, processor):
        body, _ = encode(booking_event())
        assert processor.handle(body, None).status_code == 401

    def test_prefixed_signature_accepted(self, add_product, processor):
        add_product("100", "NIGHT_TOUR")
        body, signature = encode(booking_event())
        assert processor.handle(body, "sha256=" + signature).status_code == 200

    def test_unknown_event_type_acknowledged(self, processor):
        outcome = processor.handle(*encode({"type": "product.updated", "data": {}}))

        assert outcome.status_code == 200
        assert outcome.body == {"success": True, "processed": "product.updated"}
        assert outcome.state == WebhookState.SKIPPED

    def test_invalid_json_acknowledged(self, processor):
        body = b"not json"
        signature = hmac.new(SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()

        outcome = processor.handle(body, signature)

        assert outcome.status_code == 200
        assert outcome.state == WebhookState.SKIPPED

    def test_persistence_error_returns_500(self, db, add_product):
        add_product("100", "NIGHT_TOUR")
        mapper = ProductMapper(db)
        writer = MagicMock()
        writer.upsert.side_effect = PersistenceError("Failed to cache 1 bookings: disk full")
        processor = BokunWebhookProcessor(
            db, WebhookSignatureVerifier(SECRET), mapper, writer, AvailabilityCacheService(db, mapper)
        )

        outcome = processor.handle(*encode(booking_event()))

        assert outcome.status_code == 500
        assert outcome.state == WebhookState.FAILED
        assert outcome.body["error"] == "Processing failed"
        assert "disk full" in outcome.body["details"]
