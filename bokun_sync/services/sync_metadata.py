"""
Sync Metadata Tracker

Per-product status rows for the full sync. Only the orchestrator writes
here, always from its own thread; health checks read.

Every write commits on its own. A failed write is rolled back and raised
as PersistenceError so the caller can contain it to one product.
"""

import logging
from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models.sync_metadata import BokunCacheMetadata, SyncStatus
from ..utils.db_helpers import utcnow

logger = logging.getLogger(__name__)


class SyncMetadataTracker:

    def __init__(self, db: Session):
        self.db = db

    def _get_or_create(self, product_id: str) -> BokunCacheMetadata:
        row = self.db.query(BokunCacheMetadata).filter(
            BokunCacheMetadata.product_id == str(product_id)
        ).first()
        if not row:
            row = BokunCacheMetadata(product_id=str(product_id), total_bookings_cached=0)
            self.db.add(row)
        return row

    def _write(self, product_id: str, apply: Callable[[BokunCacheMetadata], None]) -> BokunCacheMetadata:
        try:
            row = self._get_or_create(product_id)
            apply(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating sync metadata for {product_id}: {e}")
            raise PersistenceError(f"Failed to update sync metadata for {product_id}: {e}") from e
        return row

    def mark_syncing(self, product_id: str) -> BokunCacheMetadata:
        def apply(row):
            row.sync_status = SyncStatus.SYNCING.value
            row.sync_error = None
            row.updated_at = utcnow()
        return self._write(product_id, apply)

    def mark_completed(self, product_id: str, bookings_count: int) -> BokunCacheMetadata:
        def apply(row):
            now = utcnow()
            row.sync_status = SyncStatus.COMPLETED.value
            row.sync_error = None
            row.last_full_sync = now
            row.total_bookings_cached = bookings_count
            row.updated_at = now
        return self._write(product_id, apply)

    def mark_error(self, product_id: str, message: str) -> BokunCacheMetadata:
        def apply(row):
            row.sync_status = SyncStatus.ERROR.value
            row.sync_error = message
            row.updated_at = utcnow()
        row = self._write(product_id, apply)
        logger.warning(f"Sync metadata for {product_id} marked error: {message}")
        return row

    def all(self) -> List[BokunCacheMetadata]:
        return self.db.query(BokunCacheMetadata).order_by(BokunCacheMetadata.product_id).all()
