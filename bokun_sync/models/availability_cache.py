"""
Availability Cache Model

Per (product, date, time slot) spot counts with a short TTL.
An entry past expires_at is treated exactly like a missing entry.
"""

import uuid
from sqlalchemy import Column, String, Date, DateTime, Integer, UniqueConstraint, Index
from ..database import Base
from ..utils.db_helpers import utcnow


class BokunAvailabilityCache(Base):
    __tablename__ = "bokun_availability_cache"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    bokun_product_id = Column(String(100), nullable=False)
    date = Column(Date, nullable=False)
    time_slot = Column(String(10), nullable=False)

    available_spots = Column(Integer, nullable=False)

    cached_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("bokun_product_id", "date", "time_slot", name="uq_bokun_availability_slot"),
        Index("ix_bokun_availability_product_date", "bokun_product_id", "date"),
        Index("ix_bokun_availability_expires", "expires_at"),
    )

    def is_expired(self, now=None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def __repr__(self):
        return f"<BokunAvailabilityCache {self.bokun_product_id} {self.date} {self.time_slot} spots={self.available_spots}>"
