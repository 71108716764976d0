"""
Bokun Bookings Cache Model

Local read cache of bookings made in Bokun (directly or via OTAs).
Exactly one row per Bokun booking id; writes go through
BookingCacheWriter.upsert so repeated deliveries overwrite in place.
Rows are never deleted: cancellations flip status to CANCELLED.
"""

import uuid
import enum
from sqlalchemy import Column, String, Date, DateTime, Integer, JSON, Index
from ..database import Base
from ..utils.db_helpers import utcnow


class CachedBookingStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class BokunBookingCache(Base):
    __tablename__ = "bokun_bookings_cache"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Idempotency key
    bokun_booking_id = Column(String(100), unique=True, nullable=False)
    product_id = Column(String(100), nullable=False)

    # Booking details
    booking_date = Column(Date, nullable=False)
    booking_time = Column(String(10), nullable=False)
    status = Column(String(30), nullable=False, default=CachedBookingStatus.CONFIRMED.value)

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)

    # Participant counts
    adults = Column(Integer, nullable=False, default=0)
    children = Column(Integer, nullable=False, default=0)
    infants = Column(Integer, nullable=False, default=0)
    total_participants = Column(Integer, nullable=False, default=1)

    # Resolved local tour
    tour_type = Column(String(100), nullable=False)
    tour_name = Column(String(255), nullable=True)

    confirmation_code = Column(String(120), nullable=True)
    external_source = Column(String(50), default="bokun", nullable=False)

    # Raw Bokun payload kept for audit
    raw_bokun_data = Column(JSON, nullable=True)

    last_synced = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_bokun_cache_booking_date", "booking_date"),
        Index("ix_bokun_cache_product_id", "product_id"),
        Index("ix_bokun_cache_customer_email", "customer_email"),
        Index("ix_bokun_cache_status", "status"),
        Index("ix_bokun_cache_date_tour", "booking_date", "tour_type"),
    )

    @property
    def is_cancelled(self) -> bool:
        return (self.status or "").upper() == CachedBookingStatus.CANCELLED.value

    def __repr__(self):
        return f"<BokunBookingCache {self.bokun_booking_id} {self.booking_date} {self.booking_time} status={self.status}>"
