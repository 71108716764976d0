"""
Bokun API Client

Wrapper for the Bokun REST API used by the full cache sync:
- Request signing: X-Bokun-Date / X-Bokun-AccessKey / X-Bokun-Signature,
  signature = base64(HMAC-SHA1(secret, date + access key + METHOD + path))
- Structured error mapping
- Bounded pagination over the product booking search

No retry with backoff here: a failed page stops pagination for that
product and the caller re-runs the sync later.

Bokun API Documentation: https://bokun.dev/
"""

import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional

import httpx

from ..errors import ConfigurationError, UpstreamAPIError

logger = logging.getLogger(__name__)

BOOKING_SEARCH_PATH = "/booking.json/product-booking-search"
CONFIRMED_STATUS = "CONFIRMED"


@dataclass
class BokunResponse:
    """Wrapper for Bokun API responses with structured error info"""
    success: bool
    status_code: int
    data: Optional[Dict] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class BokunError:
    """Structured error from Bokun API"""
    code: str
    message: str
    status_code: int


# Error mapping for Bokun responses
ERROR_MAP = {
    400: BokunError("bad_request", "Invalid booking search request", 400),
    401: BokunError("unauthorized", "Invalid access key or signature", 401),
    403: BokunError("forbidden", "Access denied to this product", 403),
    404: BokunError("not_found", "Resource not found", 404),
    429: BokunError("rate_limited", "Too many requests", 429),
    500: BokunError("server_error", "Bokun server error", 500),
    502: BokunError("bad_gateway", "Bokun gateway error", 502),
    503: BokunError("service_unavailable", "Bokun service unavailable", 503),
}


def bokun_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp in the format Bokun expects in X-Bokun-Date"""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d %H:%M:%S")


class BokunClient:
    """
    Signed client for Bokun booking search.

    One instance is shared by all product fetches of a sync run;
    httpx.Client is safe to use from several threads.
    """

    def __init__(
        self,
        base_url: str,
        access_key: str,
        secret_key: str,
        timeout: float = 30,
        http_client: Optional[httpx.Client] = None
    ):
        if not access_key or not secret_key:
            raise ConfigurationError("Bokun credentials not configured")

        self.base_url = base_url.rstrip("/")
        self.access_key = access_key
        self.secret_key = secret_key
        self.timeout = timeout
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def sign(self, method: str, path: str, timestamp: str) -> str:
        message = f"{timestamp}{self.access_key}{method.upper()}{path}"
        digest = hmac.new(
            self.secret_key.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha1
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    def _get_headers(self, method: str, path: str) -> Dict[str, str]:
        timestamp = bokun_timestamp()
        return {
            "X-Bokun-Date": timestamp,
            "X-Bokun-AccessKey": self.access_key,
            "X-Bokun-Signature": self.sign(method, path, timestamp),
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _map_error(self, status_code: int, response_data: Optional[Dict]) -> BokunError:
        """Map HTTP status code to structured error"""
        base = ERROR_MAP.get(status_code)
        if base is None:
            code = "server_error" if status_code >= 500 else "unknown"
            base = BokunError(code, f"Bokun API error: {status_code}", status_code)

        if isinstance(response_data, dict):
            msg = response_data.get("message") or response_data.get("error")
            if isinstance(msg, str) and msg:
                return BokunError(base.code, msg, status_code)
        return base

    def _post(self, path: str, payload: Dict) -> BokunResponse:
        url = f"{self.base_url}{path}"
        headers = self._get_headers("POST", path)

        try:
            response = self._client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Bokun request failed: {e}")
            return BokunResponse(
                success=False,
                status_code=0,
                error=f"Request failed: {e}",
                error_code="network_error"
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_success:
            return BokunResponse(success=True, status_code=response.status_code, data=data)

        error = self._map_error(response.status_code, data)
        return BokunResponse(
            success=False,
            status_code=response.status_code,
            data=data,
            error=error.message,
            error_code=error.code
        )

    def search_product_bookings(
        self,
        product_id: str,
        start_date: date,
        end_date: date,
        page: int,
        page_size: int
    ) -> BokunResponse:
        """One page of confirmed bookings for a product and date range"""
        payload = {
            "productId": product_id,
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "page": page,
            "size": page_size,
            "status": CONFIRMED_STATUS,
        }
        return self._post(BOOKING_SEARCH_PATH, payload)


@dataclass
class FetchResult:
    """Bookings accumulated for one product; error is set when pagination aborted"""
    product_id: str
    bookings: List[Dict] = field(default_factory=list)
    pages_fetched: int = 0
    total_hits: Optional[int] = None
    hit_page_limit: bool = False
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.error is None


class PagedFetcher:
    """
    Fetch every page of a product's booking search.

    Stops on whichever comes first:
    - an empty results page (or a page without a results list)
    - the accumulated count reaching the server-reported totalHits
    - max_pages pages fetched (circuit breaker against an upstream that
      never signals completion)

    A non-success page aborts the loop and keeps what was accumulated.
    """

    def __init__(
        self,
        client: BokunClient,
        page_size: int = 100,
        max_pages: int = 20,
        page_delay: float = 0.1,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay = page_delay
        self._sleep = sleep

    def _fetch_page(self, product_id: str, start_date: date, end_date: date, page: int) -> Dict:
        response = self.client.search_product_bookings(
            product_id, start_date, end_date, page, self.page_size
        )
        if not response.success:
            raise UpstreamAPIError(
                response.error or f"Bokun API error: {response.status_code}",
                status_code=response.status_code,
                page=page
            )
        return response.data or {}

    def fetch_all(self, product_id: str, start_date: date, end_date: date) -> FetchResult:
        result = FetchResult(product_id=product_id)
        logger.info(f"Starting sync for product {product_id} ({start_date} to {end_date})")

        page = 1
        while True:
            if page > self.max_pages:
                result.hit_page_limit = True
                logger.warning(
                    f"Product {product_id}: page limit {self.max_pages} reached with "
                    f"{len(result.bookings)} bookings, stopping"
                )
                break

            if page > 1 and self.page_delay:
                self._sleep(self.page_delay)

            try:
                data = self._fetch_page(product_id, start_date, end_date, page)
            except UpstreamAPIError as e:
                result.error = str(e)
                result.status_code = e.status_code
                logger.error(
                    f"Bokun API error on page {e.page} for product {product_id}: "
                    f"{e.status_code} {e}; keeping {len(result.bookings)} bookings"
                )
                break

            result.pages_fetched = page
            results = data.get("results")
            if not isinstance(results, list) or not results:
                break

            result.bookings.extend(results)
            total_hits = data.get("totalHits")
            if isinstance(total_hits, int):
                result.total_hits = total_hits
            logger.debug(f"Page {page}: +{len(results)} bookings (total: {len(result.bookings)})")

            if result.total_hits and len(result.bookings) >= result.total_hits:
                break
            page += 1

        logger.info(f"Fetched {len(result.bookings)} total bookings for product {product_id}")
        return result
