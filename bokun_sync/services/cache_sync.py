"""
Bokun Cache Sync Service

Full reconciliation of bokun_bookings_cache against Bokun:
1. Load active product mappings (refreshed once per run)
2. Fetch every product's bookings for the sync window, a few products
   at a time, each with its own bounded pagination
3. Deduplicate all fetched bookings globally, so one booking id linked to
   several product mappings is cached once
4. Upsert the confirmed bookings in a single batch

Per-product failures are reported in the results and never abort the run.
Two runs may overlap; the final upsert is idempotent per booking id so
they converge to the same rows.
"""

import calendar
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..errors import ConfigurationError, MalformedEventError, NoActiveProductsError, PersistenceError
from ..utils.db_helpers import utcnow
from ..utils.logging_config import get_logger
from .bokun_client import BokunClient, FetchResult, PagedFetcher
from .booking_record import ExternalBookingRecord, parse_booking
from .cache_writer import BookingCacheWriter
from .deduplicator import deduplicate
from .product_mapper import ProductMapper
from .sync_metadata import SyncMetadataTracker

logger = get_logger(__name__)


def shift_months(day: date, months: int) -> date:
    """Move a date by whole months, clamping to the last day of the target month"""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


class BokunCacheSyncService:

    def __init__(
        self,
        db: Session,
        mapper: ProductMapper,
        cache_writer: BookingCacheWriter,
        metadata: SyncMetadataTracker,
        fetcher: Optional[PagedFetcher] = None,
        months_back: int = 6,
        months_ahead: int = 3,
        concurrency: int = 2
    ):
        self.db = db
        self.mapper = mapper
        self.cache_writer = cache_writer
        self.metadata = metadata
        self.fetcher = fetcher
        self.months_back = months_back
        self.months_ahead = months_ahead
        self.concurrency = max(concurrency, 1)

    def close(self):
        client = getattr(self.fetcher, "client", None)
        if client is not None:
            client.close()

    def sync_window(self, today: Optional[date] = None) -> Tuple[date, date]:
        today = today or utcnow().date()
        return shift_months(today, -self.months_back), shift_months(today, self.months_ahead)

    # ========================================
    # Full sync
    # ========================================

    def sync_all(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Fetch, deduplicate and cache bookings for every active product.

        Raises NoActiveProductsError when nothing is mapped and
        ConfigurationError when Bokun credentials are missing.
        """
        self.mapper.refresh()
        products = self.mapper.list_active_products()
        if not products:
            raise NoActiveProductsError()

        if self.fetcher is None:
            raise ConfigurationError("Bokun credentials not configured")

        start_date, end_date = self.sync_window(today)
        logger.info(
            f"Starting full cache sync for {len(products)} products "
            f"({start_date} to {end_date})"
        )

        results: List[Dict[str, Any]] = []
        fetched: List[Tuple[FetchResult, str]] = []

        batch_count = (len(products) + self.concurrency - 1) // self.concurrency
        with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
            for i in range(0, len(products), self.concurrency):
                batch = products[i:i + self.concurrency]

                # Metadata is written from this thread only; the session is not shared
                for product_id, _ in batch:
                    self._update_metadata(self.metadata.mark_syncing, product_id)

                futures = [
                    pool.submit(self._fetch_product, product_id, start_date, end_date)
                    for product_id, _ in batch
                ]

                for (product_id, tour_type), future in zip(batch, futures):
                    fetch_result = future.result()
                    fetched.append((fetch_result, tour_type))
                    results.append(self._record_product_result(fetch_result, tour_type))

                logger.info(f"Completed fetch batch {i // self.concurrency + 1} of {batch_count}")

        response = {
            "success": True,
            "total_bookings_cached": 0,
            "products_processed": len(products),
            "date_range": {"start": start_date.isoformat(), "end": end_date.isoformat()},
            "results": results,
        }

        rows = self._build_cache_rows(fetched)
        try:
            response["total_bookings_cached"] = self.cache_writer.upsert(rows)
        except PersistenceError as e:
            logger.error(f"Full sync could not write the cache: {e}")
            response["success"] = False
            response["error"] = str(e)
            return response

        logger.info(f"Full sync completed! Total bookings cached: {response['total_bookings_cached']}")
        return response

    def _fetch_product(self, product_id: str, start_date: date, end_date: date) -> FetchResult:
        """Runs in a worker thread: upstream calls only, no database access"""
        started = time.monotonic()
        try:
            result = self.fetcher.fetch_all(product_id, start_date, end_date)
        except Exception as e:
            logger.exception(f"Error syncing product {product_id}: {e}")
            result = FetchResult(product_id=product_id, error=str(e))

        logger.product_synced(
            product_id,
            len(result.bookings),
            result.success,
            round((time.monotonic() - started) * 1000, 2),
            error=result.error
        )
        return result

    def _record_product_result(self, fetch_result: FetchResult, tour_type: str) -> Dict[str, Any]:
        product_id = fetch_result.product_id
        entry = {
            "product_id": product_id,
            "tour_type": tour_type,
            "bookings_fetched": len(fetch_result.bookings),
            "success": fetch_result.success,
        }

        if fetch_result.success:
            self._update_metadata(self.metadata.mark_completed, product_id, len(fetch_result.bookings))
        else:
            entry["error"] = fetch_result.error
            self._update_metadata(self.metadata.mark_error, product_id, fetch_result.error)
        return entry

    def _update_metadata(self, write, product_id: str, *args) -> None:
        """A failed status write is logged and never stops the run"""
        try:
            write(product_id, *args)
        except (PersistenceError, SQLAlchemyError) as e:
            self.db.rollback()
            logger.error(f"Could not record sync status for product {product_id}: {e}")

    def _build_cache_rows(self, fetched: List[Tuple[FetchResult, str]]) -> List[Dict[str, Any]]:
        records: List[ExternalBookingRecord] = []
        fallback_types: Dict[str, str] = {}

        for fetch_result, tour_type in fetched:
            for raw in fetch_result.bookings:
                try:
                    record = parse_booking(raw, fallback_product_id=fetch_result.product_id)
                except MalformedEventError as e:
                    logger.warning(f"Skipping Bokun booking from product {fetch_result.product_id}: {e}")
                    continue
                records.append(record)
                fallback_types.setdefault(record.booking_id, tour_type)

        logger.info(f"Deduplicating {len(records)} total bookings...")
        unique, stats = deduplicate(records)
        logger.log_with_context(logging.INFO, "Deduplication finished", **stats.to_dict())

        synced_at = utcnow()
        rows = []
        for record in unique:
            if not record.is_confirmed:
                logger.info(f"Skipping non-confirmed booking {record.booking_id} with status: {record.status}")
                continue

            fallback = fallback_types[record.booking_id]
            tour_type = self.mapper.resolve_local_type(record.product_id) or fallback
            if tour_type != fallback:
                logger.info(
                    f"Corrected tour type for booking {record.booking_id}: "
                    f"{record.product_id} -> {tour_type} (was going to be {fallback})"
                )
            rows.append(record.to_cache_row(tour_type, synced_at))
        return rows

    # ========================================
    # Health
    # ========================================

    def health(self) -> Dict[str, Any]:
        """Cache size and per-product sync metadata, without calling Bokun"""
        return {
            "total_cached_bookings": self.cache_writer.count(),
            "products_metadata": [row.to_dict() for row in self.metadata.all()],
        }


def build_cache_sync_service(db: Session, settings: Optional[Settings] = None) -> BokunCacheSyncService:
    """
    Wire the sync service from settings.

    Without Bokun credentials the service is built without a fetcher:
    health() works and sync_all() raises ConfigurationError.
    """
    settings = settings or get_settings()

    fetcher = None
    if settings.has_bokun_credentials:
        client = BokunClient(
            settings.bokun_api_url,
            settings.bokun_access_key,
            settings.bokun_secret_key,
            timeout=settings.bokun_timeout_seconds
        )
        fetcher = PagedFetcher(
            client,
            page_size=settings.bokun_page_size,
            max_pages=settings.bokun_max_pages,
            page_delay=settings.bokun_page_delay_seconds
        )

    return BokunCacheSyncService(
        db,
        ProductMapper(db),
        BookingCacheWriter(db),
        SyncMetadataTracker(db),
        fetcher=fetcher,
        months_back=settings.bokun_sync_months_back,
        months_ahead=settings.bokun_sync_months_ahead,
        concurrency=settings.bokun_sync_concurrency
    )
