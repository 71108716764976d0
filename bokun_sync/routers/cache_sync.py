"""
Bokun Cache Sync Router

/bokun-cache-sync/sync-all  full reconciliation against Bokun
/bokun-cache-sync/health    cache size and per-product sync metadata
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import ConfigurationError, NoActiveProductsError
from ..schemas.cache_sync import CacheHealthResponse, SyncAllResponse
from ..services.cache_sync import BokunCacheSyncService, build_cache_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bokun-cache-sync", tags=["Bokun Cache Sync"])


def get_cache_sync_service(db: Session = Depends(get_db)):
    service = build_cache_sync_service(db)
    try:
        yield service
    finally:
        service.close()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "success": False})


@router.api_route(
    "/sync-all",
    methods=["GET", "POST"],
    response_model=SyncAllResponse,
    response_model_exclude_none=True
)
def sync_all(service: BokunCacheSyncService = Depends(get_cache_sync_service)):
    """
    Full reconciliation of every active product.

    Per-product failures are reported in results; only a missing
    configuration or an unexpected error fails the request.
    """
    logger.info("Starting full cache sync for all products")
    try:
        return service.sync_all()
    except NoActiveProductsError as e:
        return _error(400, str(e))
    except ConfigurationError as e:
        logger.error(f"Cache sync configuration error: {e}")
        return _error(500, str(e))
    except Exception as e:
        logger.exception(f"Cache sync error: {e}")
        return _error(500, str(e))


@router.api_route("/health", methods=["GET", "POST"], response_model=CacheHealthResponse)
def cache_health(service: BokunCacheSyncService = Depends(get_cache_sync_service)):
    try:
        return {"success": True, "cache_health": service.health()}
    except Exception as e:
        logger.exception(f"Cache health error: {e}")
        return _error(500, str(e))


@router.options("/{action:path}", include_in_schema=False)
async def cache_sync_preflight(action: str):
    return PlainTextResponse("ok")


@router.api_route("/{action:path}", methods=["GET", "POST"], include_in_schema=False)
async def unknown_action(action: str):
    return JSONResponse(status_code=404, content={"error": "Invalid endpoint. Use /sync-all or /health"})
