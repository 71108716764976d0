"""
Tests for webhook signature verification.
"""

import hashlib
import hmac

import pytest

from bokun_sync.errors import AuthenticationError
from bokun_sync.services.webhook_signature import WebhookSignatureVerifier

SECRET = "test-webhook-secret"
BODY = b'{"type":"booking.created","data":{},"timestamp":"2026-01-01T00:00:00Z"}'


def sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class TestWebhookSignatureVerifier:

    def test_valid_signature_verifies(self):
        verifier = WebhookSignatureVerifier(SECRET)
        assert verifier.verify(BODY, sign(BODY)) is True

    def test_prefixed_signature_verifies(self):
        verifier = WebhookSignatureVerifier(SECRET)
        assert verifier.verify(BODY, "sha256=" + sign(BODY)) is True

    def test_string_body_matches_bytes(self):
        verifier = WebhookSignatureVerifier(SECRET)
        assert verifier.verify(BODY.decode("utf-8"), sign(BODY)) is True

    def test_single_altered_byte_fails(self):
        verifier = WebhookSignatureVerifier(SECRET)
        signature = sign(BODY)
        tampered = BODY.replace(b"created", b"createD")
        assert verifier.verify(tampered, signature) is False

    def test_wrong_secret_fails(self):
        verifier = WebhookSignatureVerifier(SECRET)
        assert verifier.verify(BODY, sign(BODY, "other-secret")) is False

    def test_missing_header_fails(self):
        verifier = WebhookSignatureVerifier(SECRET)
        assert verifier.verify(BODY, None) is False
        assert verifier.verify(BODY, "") is False

    def test_missing_secret_fails_closed(self):
        verifier = WebhookSignatureVerifier("")
        assert verifier.verify(BODY, sign(BODY, "")) is False

    def test_compute_is_hex_sha256(self):
        verifier = WebhookSignatureVerifier(SECRET)
        digest = verifier.compute(BODY)
        assert len(digest) == 64
        assert digest == sign(BODY)

    def test_require_raises_authentication_error(self):
        verifier = WebhookSignatureVerifier(SECRET)
        verifier.require(BODY, sign(BODY))
        with pytest.raises(AuthenticationError):
            verifier.require(BODY, "sha256=bad")
