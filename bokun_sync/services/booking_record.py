"""
External Booking Records

Normalizes the two shapes Bokun sends bookings in:

- booking-search results (bulk sync):
  {"id", "product": {"id"}, "startDate": <epoch ms>, "status",
   "fields": {"startTimeStr", "totalParticipants", "priceCategoryBookings"},
   "customer": {"firstName", "lastName", "email", "phoneNumber"},
   "creationDate": <epoch ms>}
- webhook booking objects:
  {"id", "productId", "date": "YYYY-MM-DD", "time", "participants", "status"}

Records are transient; the raw payload is embedded in the cache row for audit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from ..errors import MalformedEventError
from ..models.booking_cache import CachedBookingStatus
from .participants import ParticipantCounts, extract_participants

logger = logging.getLogger(__name__)

DEFAULT_BOOKING_TIME = "18:00"
DEFAULT_CUSTOMER_EMAIL = "external@bokun.com"
EXTERNAL_SOURCE = "bokun"


@dataclass
class ExternalBookingRecord:
    booking_id: str
    product_id: Optional[str]
    booking_date: date
    booking_time: str
    participants: ParticipantCounts
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    status: str = CachedBookingStatus.CONFIRMED.value
    created_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_confirmed(self) -> bool:
        return self.status.strip().lower() == "confirmed"

    def to_cache_row(self, tour_type: str, synced_at: datetime) -> Dict[str, Any]:
        """Column values for BokunBookingCache"""
        return {
            "bokun_booking_id": self.booking_id,
            "product_id": self.product_id,
            "booking_date": self.booking_date,
            "booking_time": self.booking_time,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "adults": self.participants.adults,
            "children": self.participants.children,
            "infants": self.participants.infants,
            "total_participants": self.participants.total,
            "tour_type": tour_type,
            "tour_name": tour_type,
            "confirmation_code": f"BOKUN-{self.booking_id}",
            "external_source": EXTERNAL_SOURCE,
            "raw_bokun_data": self.raw,
            "last_synced": synced_at,
            "updated_at": synced_at,
        }


def parse_date(value) -> Optional[date]:
    """Parse epoch milliseconds or a date/datetime string from Bokun"""
    if value is None or value == "":
        return None

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()

    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return parse_date(int(text))
        for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(text.split("T")[0], fmt).date()
            except ValueError:
                continue
    return None


def parse_timestamp(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return None


def _customer_name(customer: dict) -> str:
    full_name = customer.get("name") or customer.get("fullName")
    if full_name:
        return str(full_name)
    if not customer:
        return "External Booking"
    first = customer.get("firstName") or "External"
    last = customer.get("lastName") or "Booking"
    return f"{first} {last}"


def _optional_str(value) -> Optional[str]:
    return str(value) if value is not None else None


def _object(payload: Dict[str, Any], key: str, booking_id) -> Dict[str, Any]:
    value = payload.get(key)
    if value is None or value == "":
        return {}
    if not isinstance(value, dict):
        raise MalformedEventError(f"Booking {booking_id} has an invalid {key!r} field")
    return value


def parse_booking(payload: Dict[str, Any], fallback_product_id: Optional[str] = None) -> ExternalBookingRecord:
    """
    Build an ExternalBookingRecord from either Bokun booking shape.

    Raises MalformedEventError when the booking id or date is missing or a
    field has the wrong type.
    """
    try:
        return _parse_booking(payload, fallback_product_id)
    except (AttributeError, TypeError, ValueError, OverflowError, OSError) as e:
        raise MalformedEventError(f"Unreadable booking payload: {e}") from e


def _parse_booking(payload: Dict[str, Any], fallback_product_id: Optional[str]) -> ExternalBookingRecord:
    if not isinstance(payload, dict):
        raise MalformedEventError("Booking payload is not an object")

    booking_id = payload.get("id") or payload.get("bookingId")
    if booking_id is None or booking_id == "":
        raise MalformedEventError("Booking has no id")

    product = _object(payload, "product", booking_id)
    product_id = product.get("id")
    if product_id is None:
        product_id = payload.get("productId")
    if product_id is None:
        product_id = fallback_product_id

    booking_date = parse_date(payload.get("startDate") or payload.get("date"))
    if not booking_date:
        raise MalformedEventError(f"Booking {booking_id} has no start date")

    fields = _object(payload, "fields", booking_id)
    booking_time = fields.get("startTimeStr") or payload.get("time") or DEFAULT_BOOKING_TIME

    categories = fields.get("priceCategoryBookings") or payload.get("priceCategoryBookings") or []
    if not isinstance(categories, list):
        raise MalformedEventError(f"Booking {booking_id} has an invalid price category breakdown")
    fallback_total = fields.get("totalParticipants")
    if not categories and isinstance(payload.get("participants"), int):
        # Webhook bookings carry a bare head count; all of them are adults
        categories = [{"ticketCategory": "ADULT", "quantity": payload["participants"]}]
    participants = extract_participants(categories, fallback_total)

    customer = _object(payload, "customer", booking_id)

    return ExternalBookingRecord(
        booking_id=str(booking_id),
        product_id=str(product_id) if product_id is not None else None,
        booking_date=booking_date,
        booking_time=str(booking_time),
        participants=participants,
        customer_name=_customer_name(customer),
        customer_email=str(customer.get("email") or DEFAULT_CUSTOMER_EMAIL),
        customer_phone=_optional_str(customer.get("phoneNumber") or customer.get("phone")),
        status=str(payload.get("status") or CachedBookingStatus.CONFIRMED.value),
        created_at=parse_timestamp(payload.get("creationDate")),
        raw=payload,
    )
