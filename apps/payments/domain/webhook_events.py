from __future__ import annotations

import hashlib
import json

from apps.payments.domain.errors import WebhookPayloadError
from apps.payments.domain.ports import WebhookEventData

EVENT_PAYMENT_SUCCEEDED = "payment.succeeded"
EVENT_PAYMENT_FAILED = "payment.failed"

# Matches WebhookEvent.event_id; longer ids are hashed into the idempotency key.
MAX_EVENT_ID_LENGTH = 128


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def parse_webhook_event(body: bytes) -> WebhookEventData:
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise WebhookPayloadError("Webhook body is not valid JSON.") from exc
    if not isinstance(data, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object.")

    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Webhook payload must be an object.")
    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}

    return WebhookEventData(
        event_id=_text(data.get("id")),
        event_type=_text(data.get("type")),
        checkout_id=_text(metadata.get("checkoutId") or payload.get("checkoutId")),
        payment_id=_text(payload.get("id")),
        order_id=_text(metadata.get("orderId")),
        raw=data,
    )


def idempotency_key(*, provider_code: str, event: WebhookEventData, body: bytes) -> str:
    if event.event_id and len(event.event_id) <= MAX_EVENT_ID_LENGTH:
        return f"{provider_code}:{event.event_id}"
    if event.event_id:
        return f"{provider_code}:id-sha256:{hashlib.sha256(event.event_id.encode('utf-8')).hexdigest()}"
    return f"{provider_code}:sha256:{hashlib.sha256(body).hexdigest()}"
