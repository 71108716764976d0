"""
Sync Metadata Model

One row per Bokun product, written by the full sync and read by health checks.
"""

import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer
from ..database import Base
from ..utils.db_helpers import utcnow


class SyncStatus(str, enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    COMPLETED = "completed"
    ERROR = "error"


class BokunCacheMetadata(Base):
    __tablename__ = "bokun_cache_metadata"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    product_id = Column(String(100), unique=True, nullable=False)

    last_full_sync = Column(DateTime, nullable=True)
    total_bookings_cached = Column(Integer, default=0)
    sync_status = Column(String(20), default=SyncStatus.IDLE.value, nullable=False)
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "last_full_sync": self.last_full_sync.isoformat() if self.last_full_sync else None,
            "total_bookings_cached": self.total_bookings_cached or 0,
            "sync_status": self.sync_status,
            "sync_error": self.sync_error,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<BokunCacheMetadata {self.product_id} status={self.sync_status}>"
