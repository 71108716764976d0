"""
Tests for normalizing Bokun booking payloads.
"""

from datetime import date, datetime, timezone

import pytest

from bokun_sync.errors import MalformedEventError
from bokun_sync.services.booking_record import parse_booking, parse_date


def epoch_ms(year, month, day, hour=12):
    return int(datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp() * 1000)


class TestParseDate:

    def test_epoch_millis(self):
        assert parse_date(epoch_ms(2026, 5, 4)) == date(2026, 5, 4)

    def test_iso_string(self):
        assert parse_date("2026-05-04") == date(2026, 5, 4)

    def test_datetime_string(self):
        assert parse_date("2026-05-04T10:00:00Z") == date(2026, 5, 4)

    def test_empty(self):
        assert parse_date(None) is None
        assert parse_date("") is None
        assert parse_date("not a date") is None


class TestParseBooking:

    def test_search_result_shape(self):
        payload = {
            "id": 9001,
            "product": {"id": 555},
            "startDate": epoch_ms(2026, 6, 1),
            "status": "CONFIRMED",
            "fields": {
                "startTimeStr": "19:30",
                "totalParticipants": 3,
                "priceCategoryBookings": [
                    {"pricingCategory": {"ticketCategory": "ADULT"}, "quantity": 2},
                    {"pricingCategory": {"ticketCategory": "CHILD"}, "quantity": 1},
                ],
            },
            "customer": {"firstName": "Aiko", "lastName": "Tanaka", "email": "aiko@example.com", "phoneNumber": "+81"},
        }
        record = parse_booking(payload)

        assert record.booking_id == "9001"
        assert record.product_id == "555"
        assert record.booking_date == date(2026, 6, 1)
        assert record.booking_time == "19:30"
        assert tuple(record.participants) == (2, 1, 0, 3)
        assert record.customer_name == "Aiko Tanaka"
        assert record.customer_email == "aiko@example.com"
        assert record.customer_phone == "+81"
        assert record.is_confirmed

    def test_webhook_shape_uses_defaults(self):
        payload = {"id": "BK-1", "productId": "555", "date": "2026-06-01", "participants": 4, "status": "CONFIRMED"}
        record = parse_booking(payload)

        assert record.booking_time == "18:00"
        assert tuple(record.participants) == (4, 0, 0, 4)
        assert record.customer_name == "External Booking"
        assert record.customer_email == "external@bokun.com"

    def test_partial_customer_name(self):
        record = parse_booking({"id": "1", "date": "2026-06-01", "customer": {"firstName": "Kenji"}})
        assert record.customer_name == "Kenji Booking"

    def test_fallback_product_id(self):
        record = parse_booking({"id": "1", "date": "2026-06-01"}, fallback_product_id="777")
        assert record.product_id == "777"

    def test_status_is_case_insensitive(self):
        record = parse_booking({"id": "1", "date": "2026-06-01", "status": "confirmed"})
        assert record.is_confirmed
        record = parse_booking({"id": "2", "date": "2026-06-01", "status": "CANCELLED"})
        assert not record.is_confirmed

    def test_missing_id_raises(self):
        with pytest.raises(MalformedEventError):
            parse_booking({"date": "2026-06-01"})

    def test_missing_date_raises(self):
        with pytest.raises(MalformedEventError):
            parse_booking({"id": "1"})

    @pytest.mark.parametrize("field, value", [
        ("customer", "anonymous"),
        ("fields", "x"),
        ("product", "555"),
        ("priceCategoryBookings", "ADULT"),
    ])
    def test_wrongly_typed_field_raises(self, field, value):
        payload = {"id": "1", "date": "2026-06-01", field: value}
        with pytest.raises(MalformedEventError):
            parse_booking(payload)

    def test_unreadable_start_date_raises(self):
        with pytest.raises(MalformedEventError):
            parse_booking({"id": "1", "startDate": 10 ** 20})

    def test_cache_row(self):
        record = parse_booking({"id": "42", "productId": "555", "date": "2026-06-01", "participants": 2})
        synced_at = datetime(2026, 1, 1, 12, 0)
        row = record.to_cache_row("NIGHT_TOUR", synced_at)

        assert row["bokun_booking_id"] == "42"
        assert row["tour_type"] == "NIGHT_TOUR"
        assert row["confirmation_code"] == "BOKUN-42"
        assert row["external_source"] == "bokun"
        assert row["total_participants"] == 2
        assert row["last_synced"] == synced_at
        assert row["raw_bokun_data"]["id"] == "42"
