"""
Booking Cache Writer

Idempotency boundary of the reconciliation engine: every write to
bokun_bookings_cache is an INSERT ... ON CONFLICT (bokun_booking_id)
DO UPDATE, so webhook retries and overlapping syncs converge to one row
holding the latest data.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models.booking_cache import BokunBookingCache, CachedBookingStatus
from ..utils.db_helpers import upsert_statement, utcnow

logger = logging.getLogger(__name__)


class BookingCacheWriter:

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, rows: List[Dict]) -> int:
        """Insert or update rows keyed by bokun_booking_id. Returns rows written."""
        if not rows:
            return 0

        # One statement cannot touch the same key twice; the last row for a key wins
        latest: Dict[str, Dict] = {}
        for row in rows:
            latest[row["bokun_booking_id"]] = row
        batch = list(latest.values())

        try:
            self.db.execute(upsert_statement(self.db, BokunBookingCache, batch, ["bokun_booking_id"]))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error caching bookings: {e}")
            raise PersistenceError(f"Failed to cache {len(batch)} bookings: {e}") from e

        logger.info(f"Successfully cached {len(batch)} bookings")
        return len(batch)

    def find(self, bokun_booking_id: str) -> Optional[BokunBookingCache]:
        return self.db.query(BokunBookingCache).filter(
            BokunBookingCache.bokun_booking_id == str(bokun_booking_id)
        ).first()

    def mark_cancelled(self, bokun_booking_id: str) -> Optional[BokunBookingCache]:
        """Flip a cached booking to CANCELLED. The row is kept for audit."""
        row = self.find(bokun_booking_id)
        if not row:
            return None

        now = utcnow()
        row.status = CachedBookingStatus.CANCELLED.value
        row.last_synced = now
        row.updated_at = now
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to cancel booking {bokun_booking_id}: {e}") from e

        logger.info(f"Marked cached booking {bokun_booking_id} as cancelled")
        return row

    def count(self) -> int:
        return self.db.query(BokunBookingCache).count()
