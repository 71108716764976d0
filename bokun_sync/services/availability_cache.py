"""
Availability Cache Service

Keeps bokun_availability_cache consistent with booking events:
- invalidate(): delete cached slots for a tour type and date so the next
  reader recomputes from booking counts
- refresh(): upsert authoritative per-slot counts carried by an event
- get_available_spots(): reader helper, expired entries count as missing
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models.availability_cache import BokunAvailabilityCache
from ..utils.db_helpers import upsert_statement, utcnow
from .product_mapper import ProductMapper

logger = logging.getLogger(__name__)

DEFAULT_TTL_MINUTES = 15


class AvailabilityCacheService:

    def __init__(self, db: Session, mapper: ProductMapper, ttl_minutes: int = DEFAULT_TTL_MINUTES):
        self.db = db
        self.mapper = mapper
        self.ttl = timedelta(minutes=ttl_minutes)

    def invalidate(self, local_tour_type: str, booking_date: date) -> int:
        """Delete cached slots for the tour type's product on a date. Returns rows deleted."""
        product_id = self.mapper.resolve_upstream_product(local_tour_type)
        if not product_id:
            logger.error(f"Cannot invalidate cache - no Bokun product mapping for: {local_tour_type}")
            return 0
        return self.invalidate_product(product_id, booking_date)

    def invalidate_product(self, product_id: str, booking_date: date) -> int:
        try:
            deleted = self.db.query(BokunAvailabilityCache).filter(
                BokunAvailabilityCache.bokun_product_id == str(product_id),
                BokunAvailabilityCache.date == booking_date
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to invalidate availability for {product_id} on {booking_date}: {e}") from e

        logger.info(f"Availability cache invalidated for {product_id} on {booking_date} ({deleted} slots)")
        return deleted

    def refresh(self, product_id: str, booking_date: date, slots: Iterable[Dict]) -> int:
        """
        Upsert spot counts from an availability event.

        slots: [{"time": "09:00", "availableSpots": 12}, ...]
        """
        now = utcnow()
        expires_at = now + self.ttl
        rows = {}
        for slot in slots:
            time_slot = slot.get("time")
            if not time_slot:
                logger.warning(f"Skipping availability slot without time for {product_id}: {slot}")
                continue
            rows[str(time_slot)] = {
                "bokun_product_id": str(product_id),
                "date": booking_date,
                "time_slot": str(time_slot),
                "available_spots": int(slot.get("availableSpots") or 0),
                "cached_at": now,
                "expires_at": expires_at,
            }

        if not rows:
            return 0

        try:
            self.db.execute(upsert_statement(
                self.db,
                BokunAvailabilityCache,
                list(rows.values()),
                ["bokun_product_id", "date", "time_slot"],
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to refresh availability for {product_id}: {e}") from e

        logger.info(f"Updated availability cache for {product_id} on {booking_date} ({len(rows)} slots)")
        return len(rows)

    def get_available_spots(self, product_id: str, booking_date: date, time_slot: str, now=None) -> Optional[int]:
        """Cached spot count, or None when missing or expired"""
        entry = self.db.query(BokunAvailabilityCache).filter(
            BokunAvailabilityCache.bokun_product_id == str(product_id),
            BokunAvailabilityCache.date == booking_date,
            BokunAvailabilityCache.time_slot == time_slot
        ).first()
        if not entry or entry.is_expired(now):
            return None
        return entry.available_spots

    def purge_expired(self, now=None) -> int:
        """Delete entries past their TTL"""
        now = now or utcnow()
        try:
            deleted = self.db.query(BokunAvailabilityCache).filter(
                BokunAvailabilityCache.expires_at <= now
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to purge expired availability entries: {e}") from e
        if deleted:
            logger.info(f"Purged {deleted} expired availability entries")
        return deleted
