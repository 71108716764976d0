"""
Error taxonomy for the Bokun reconciliation engine.

Errors local to one product or one event are contained by the service that
raised them and reported structurally. Only configuration-level or
unexpected errors reach the HTTP layer as 5xx responses.
"""

from typing import Optional


class BokunSyncError(Exception):
    """Base class for reconciliation errors"""


class AuthenticationError(BokunSyncError):
    """Webhook signature missing or invalid"""


class ConfigurationError(BokunSyncError):
    """A required secret or credential is not configured"""


class MappingError(BokunSyncError):
    """Upstream product id has no active local tour type"""

    def __init__(self, product_id: Optional[str]):
        self.product_id = product_id
        super().__init__(f"Unknown Bokun product ID: {product_id}")


class UpstreamAPIError(BokunSyncError):
    """Non-success response from the Bokun REST API"""

    def __init__(self, message: str, status_code: int = 0, page: Optional[int] = None):
        self.status_code = status_code
        self.page = page
        super().__init__(message)


class PersistenceError(BokunSyncError):
    """Cache write failed"""


class MalformedEventError(BokunSyncError):
    """Webhook payload is unparseable or missing required fields"""


class NoActiveProductsError(BokunSyncError):
    """Full sync requested with no active product mappings"""

    def __init__(self):
        super().__init__("No active Bokun products found")
