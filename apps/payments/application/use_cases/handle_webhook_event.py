from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.payments.application.services.confirmation import PaymentConfirmationService
from apps.payments.application.services.ledger import PaymentLedger
from apps.payments.domain.ports import WebhookEventData
from apps.payments.domain.signatures import verify_signature
from apps.payments.domain.webhook_events import (
    EVENT_PAYMENT_FAILED,
    EVENT_PAYMENT_SUCCEEDED,
    MAX_EVENT_ID_LENGTH,
    idempotency_key,
    parse_webhook_event,
)
from apps.payments.models import WebhookEvent

logger = logging.getLogger("foodhub.payments")

RESULT_DUPLICATE = "duplicate"


@dataclass(frozen=True)
class HandleWebhookEventCommand:
    raw_body: bytes
    signature: str | None
    provider_code: str | None = None


@dataclass(frozen=True)
class HandleWebhookEventResult:
    status: str
    note: str = ""


class HandleWebhookEventUseCase:
    """
    Verify, de-duplicate and apply one provider callback.

    Signature errors propagate before anything is read from the body. Failures
    while applying the event roll the event log back with it, so a redelivery
    is processed from scratch.
    """

    @staticmethod
    def execute(cmd: HandleWebhookEventCommand) -> HandleWebhookEventResult:
        verify_signature(
            secret=getattr(settings, "PAYMENT_WEBHOOK_SECRET", ""),
            body=cmd.raw_body,
            provided=cmd.signature,
        )
        event = parse_webhook_event(cmd.raw_body)
        provider_code = (cmd.provider_code or settings.PAYMENT_PROVIDER).strip().lower()
        key = idempotency_key(provider_code=provider_code, event=event, body=cmd.raw_body)

        with transaction.atomic():
            record = HandleWebhookEventUseCase._lock_event(provider_code=provider_code, key=key, event=event)
            if record.processing_status in (WebhookEvent.STATUS_PROCESSED, WebhookEvent.STATUS_IGNORED):
                logger.info("webhook_duplicate", extra={"idempotency_key": key, "event_type": event.event_type})
                return HandleWebhookEventResult(status=RESULT_DUPLICATE, note=record.note)

            status, note = HandleWebhookEventUseCase._apply(event)
            record.processing_status = status
            record.note = note
            record.processed_at = timezone.now()
            record.save(update_fields=["processing_status", "note", "processed_at"])

        logger.info(
            "webhook_handled",
            extra={"idempotency_key": key, "event_type": event.event_type, "status": status, "note": note},
        )
        return HandleWebhookEventResult(status=status, note=note)

    @staticmethod
    def _lock_event(*, provider_code: str, key: str, event: WebhookEventData) -> WebhookEvent:
        record = WebhookEvent.objects.select_for_update().filter(idempotency_key=key).first()
        if record:
            return record
        try:
            with transaction.atomic():
                return WebhookEvent.objects.create(
                    provider_code=provider_code,
                    event_id=event.event_id[:MAX_EVENT_ID_LENGTH],
                    event_type=event.event_type[:64],
                    idempotency_key=key,
                    payload_json=event.raw,
                    processing_status=WebhookEvent.STATUS_PENDING,
                )
        except IntegrityError:
            # A concurrent delivery of the same event inserted first.
            return WebhookEvent.objects.select_for_update().get(idempotency_key=key)

    @staticmethod
    def _apply(event: WebhookEventData) -> tuple[str, str]:
        if event.event_type not in (EVENT_PAYMENT_SUCCEEDED, EVENT_PAYMENT_FAILED):
            return WebhookEvent.STATUS_IGNORED, "unhandled_event_type"

        attempt = PaymentLedger.find_by_checkout_id(checkout_id=event.checkout_id)
        if attempt is None:
            logger.warning(
                "webhook_unknown_checkout",
                extra={"checkout_id": event.checkout_id, "event_type": event.event_type},
            )
            return WebhookEvent.STATUS_IGNORED, "unknown_checkout"
        if event.order_id and event.order_id != str(attempt.order_id):
            logger.warning(
                "webhook_order_mismatch",
                extra={"checkout_id": event.checkout_id, "order_id": event.order_id},
            )
            return WebhookEvent.STATUS_IGNORED, "order_mismatch"

        if event.event_type == EVENT_PAYMENT_SUCCEEDED:
            outcome = PaymentConfirmationService.confirm_online(
                attempt_id=attempt.pk,
                provider_payment_id=event.payment_id or None,
                source="webhook",
            )
            return WebhookEvent.STATUS_PROCESSED, outcome.reason

        closed = PaymentConfirmationService.record_failure(
            attempt_id=attempt.pk, reason="provider_failed", source="webhook"
        )
        return WebhookEvent.STATUS_PROCESSED, "payment_failed" if closed else "attempt_closed"
