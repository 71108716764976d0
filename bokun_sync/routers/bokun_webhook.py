"""
Bokun Webhook Router

POST /bokun-webhook receives Bokun push events. The raw body is read
before parsing because the HMAC signature covers the exact bytes sent.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..schemas.webhook import WebhookAck, WebhookError
from ..services.availability_cache import AvailabilityCacheService
from ..services.cache_writer import BookingCacheWriter
from ..services.product_mapper import ProductMapper
from ..services.webhook_processor import BokunWebhookProcessor
from ..services.webhook_signature import SIGNATURE_HEADER, WebhookSignatureVerifier

router = APIRouter(tags=["Bokun Webhook"])


def get_webhook_processor(db: Session = Depends(get_db)) -> BokunWebhookProcessor:
    """Build a processor for one delivery"""
    settings = get_settings()
    mapper = ProductMapper(db)
    return BokunWebhookProcessor(
        db,
        WebhookSignatureVerifier(settings.bokun_webhook_secret),
        mapper,
        BookingCacheWriter(db),
        AvailabilityCacheService(db, mapper, ttl_minutes=settings.availability_cache_ttl_minutes)
    )


@router.post(
    "/bokun-webhook",
    responses={200: {"model": WebhookAck}, 401: {"model": WebhookError}, 500: {"model": WebhookError}}
)
async def bokun_webhook(
    request: Request,
    x_bokun_signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
    processor: BokunWebhookProcessor = Depends(get_webhook_processor)
):
    """
    Receive a Bokun webhook.

    - 401 when the signature does not match
    - 200 {"success": true, "processed": <type>} for handled and ignored events
    - 500 {"error", "details"} when processing fails
    """
    body = await request.body()
    outcome = processor.handle(body, x_bokun_signature)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.options("/bokun-webhook")
async def bokun_webhook_preflight():
    return PlainTextResponse("ok")


@router.api_route("/bokun-webhook", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def bokun_webhook_method_not_allowed():
    return JSONResponse(status_code=405, content={"error": "Method not allowed"})
