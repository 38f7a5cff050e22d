# investledger/services/webhook_security.py
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

PLACEHOLDER_SECRET = "default-secret-change-me"


class WebhookConfigurationError(Exception):
    pass


def sign_payload(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Check a ``sha256=<hex>`` HMAC signature over the raw request body.

    Raises WebhookConfigurationError when no real secret is configured, so an
    unconfigured server never accepts webhooks.
    """
    if not secret or secret == PLACEHOLDER_SECRET:
        raise WebhookConfigurationError("Webhook secret is not configured securely")

    if not signature:
        logger.warning("Webhook rejected: missing signature")
        return False

    expected = sign_payload(body, secret)
    if not hmac.compare_digest(expected.encode(), signature.encode()):
        logger.warning("Webhook rejected: signature mismatch")
        return False
    return True
