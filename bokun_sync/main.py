from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
import asyncio
import logging
import uuid

from . import __version__
from .config import settings
from .database import create_tables, SessionLocal
from .errors import BokunSyncError, PersistenceError
from .services.availability_cache import AvailabilityCacheService
from .services.cache_sync import build_cache_sync_service
from .services.product_mapper import ProductMapper
from .utils.logging_config import setup_logging, set_request_context, clear_request_context
from .routers import bokun_webhook, cache_sync

logger = logging.getLogger("bokun_sync")


def run_cache_sync_once() -> dict:
    """One full reconciliation with its own session, used by the periodic worker"""
    db = SessionLocal()
    service = build_cache_sync_service(db)
    try:
        result = service.sync_all()
        try:
            result["availability_entries_purged"] = AvailabilityCacheService(db, ProductMapper(db)).purge_expired()
        except PersistenceError as e:
            logger.error(f"Availability purge failed: {e}")
        return result
    finally:
        service.close()
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(settings.log_level, json_format=settings.log_json)

    logger.info(f"Starting bokun-sync {__version__} ({settings.environment})")
    logger.info(f"CORS Origins: {settings.cors_origins}")

    create_tables()

    if not settings.bokun_webhook_secret:
        logger.error("BOKUN_WEBHOOK_SECRET not configured, webhooks will be rejected")
    if not settings.has_bokun_credentials:
        logger.warning("Bokun API credentials not configured, full sync unavailable")

    # ==========================================
    # PERIODIC FULL RESYNC
    # ==========================================
    worker_task = None
    worker_running = True
    interval_minutes = settings.cache_sync_interval_minutes

    async def run_sync_worker():
        """Re-run the full sync on an interval to bound cache staleness"""
        logger.info(f"Cache sync worker started (interval: {interval_minutes}m)")
        while worker_running:
            try:
                result = await asyncio.to_thread(run_cache_sync_once)
                logger.info(
                    f"Scheduled sync: {result['total_bookings_cached']} bookings cached "
                    f"across {result['products_processed']} products"
                )
            except BokunSyncError as e:
                logger.error(f"Scheduled sync skipped: {e}")
            except Exception as e:
                logger.exception(f"Scheduled sync error: {e}")

            await asyncio.sleep(interval_minutes * 60)

    if interval_minutes > 0:
        worker_task = asyncio.create_task(run_sync_worker())

    yield

    # Shutdown
    logger.info("Shutting down bokun-sync...")
    worker_running = False
    if worker_task:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
        logger.info("Cache sync worker stopped")


# Create FastAPI app
app = FastAPI(
    title="Bokun Sync",
    description="Reconciles Bokun / OTA bookings into the local booking and availability caches",
    version=__version__,
    lifespan=lifespan
)


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


# Add other middleware AFTER CORS
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


# Include routers
app.include_router(bokun_webhook.router)
app.include_router(cache_sync.router)


@app.get("/")
async def root():
    return {
        "message": "Bokun Sync API",
        "version": __version__,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Liveness probe"""
    return {"status": "healthy"}
