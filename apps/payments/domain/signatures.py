from __future__ import annotations

import hashlib
import hmac

from apps.payments.domain.errors import WebhookSecretMissingError, WebhookSignatureError

SIGNATURE_PREFIX = "sha256="


def compute_signature(*, secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(*, secret: str, body: bytes, provided: str | None) -> None:
    """Raise unless `provided` is the HMAC-SHA256 of the exact raw `body`."""
    if not secret:
        raise WebhookSecretMissingError()
    signature = (provided or "").strip()
    if signature.lower().startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]
    if not signature:
        raise WebhookSignatureError("Missing webhook signature.")
    expected = compute_signature(secret=secret, body=body)
    if not hmac.compare_digest(signature.lower().encode("utf-8"), expected.encode("ascii")):
        raise WebhookSignatureError("Invalid webhook signature.")
