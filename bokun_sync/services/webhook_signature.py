"""
Webhook Signature Verification

Bokun signs each webhook body with HMAC-SHA256 using the shared webhook
secret and sends the hex digest in X-Bokun-Signature, optionally prefixed
with "sha256=". This check is the only gate on the webhook path.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

from ..errors import AuthenticationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Bokun-Signature"
SIGNATURE_PREFIX = "sha256="


class WebhookSignatureVerifier:
    """
    Fails closed: a missing secret, a missing header or any error while
    computing the digest means the payload is not verified.
    """

    def __init__(self, secret: Optional[str]):
        self.secret = secret

    def compute(self, body: Union[str, bytes]) -> str:
        """Hex HMAC-SHA256 of the raw body"""
        if isinstance(body, str):
            body = body.encode("utf-8")
        return hmac.new(self.secret.encode("utf-8"), body, hashlib.sha256).hexdigest()

    def verify(self, body: Union[str, bytes], signature: Optional[str]) -> bool:
        if not signature:
            logger.warning("No signature provided for webhook verification")
            return False

        if not self.secret:
            logger.error("BOKUN_WEBHOOK_SECRET not configured")
            return False

        try:
            expected = self.compute(body)
        except Exception as e:
            logger.error(f"Signature verification error: {e}")
            return False

        provided = signature.strip()
        if provided.startswith(SIGNATURE_PREFIX):
            provided = provided[len(SIGNATURE_PREFIX):]

        return hmac.compare_digest(expected, provided)

    def require(self, body: Union[str, bytes], signature: Optional[str]) -> None:
        """Raise AuthenticationError unless the signature verifies"""
        if not self.verify(body, signature):
            raise AuthenticationError("Invalid signature")
