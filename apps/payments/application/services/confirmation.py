from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.orders.domain.state_machine import OrderStatus, PaymentMethod
from apps.orders.models import Order
from apps.payments.application.services.ledger import PaymentLedger
from apps.payments.models import PaymentAttempt

logger = logging.getLogger("foodhub.payments")

REASON_CONFIRMED = "confirmed"
REASON_ALREADY_CONFIRMED = "already_confirmed"
REASON_ATTEMPT_CLOSED = "attempt_closed"
REASON_PAYMENT_FAILED = "payment_failed"
REASON_NOT_PAYABLE = "order_not_payable"


@dataclass(frozen=True)
class ConfirmationOutcome:
    confirmed: bool
    applied: bool
    reason: str


class PaymentConfirmationService:
    """
    The one place where an order becomes paid.

    Webhook, reconciliation poll and cash selection all end here. The ledger row
    goes pending -> completed with a conditional update and only the caller that
    wins that update flips `Order.payment_confirmed`; everyone else observes the
    state the winner left behind.
    """

    @staticmethod
    @transaction.atomic
    def confirm_online(*, attempt_id, provider_payment_id: str | None = None, source: str) -> ConfirmationOutcome:
        # Lock order before attempt, the same order checkout and cash use.
        order_id = PaymentAttempt.objects.filter(pk=attempt_id).values_list("order_id", flat=True).get()
        order = Order.objects.select_for_update().get(pk=order_id)

        won = PaymentLedger.mark_completed(attempt_id=attempt_id, provider_payment_id=provider_payment_id)
        attempt = PaymentAttempt.objects.get(pk=attempt_id)

        if not won:
            if attempt.status == PaymentAttempt.STATUS_COMPLETED:
                return ConfirmationOutcome(
                    confirmed=order.payment_confirmed, applied=False, reason=REASON_ALREADY_CONFIRMED
                )
            # Provider took the money for an attempt we already closed.
            logger.warning(
                "late_payment_success",
                extra={
                    "order_id": str(order.id),
                    "attempt_id": attempt.pk,
                    "checkout_id": attempt.provider_checkout_id,
                    "failure_reason": attempt.failure_reason,
                    "source": source,
                },
            )
            return ConfirmationOutcome(
                confirmed=order.payment_confirmed, applied=False, reason=REASON_ATTEMPT_CLOSED
            )

        flipped = Order.objects.filter(id=order.id, payment_confirmed=False).update(
            payment_confirmed=True,
            payment_method=PaymentMethod.ONLINE.value,
            updated_at=timezone.now(),
        )
        if flipped != 1:
            logger.warning(
                "payment_after_order_confirmed",
                extra={"order_id": str(order.id), "attempt_id": attempt.pk, "source": source},
            )
            return ConfirmationOutcome(confirmed=True, applied=False, reason=REASON_ALREADY_CONFIRMED)

        if order.status == OrderStatus.CANCELLED:
            logger.warning(
                "payment_for_cancelled_order",
                extra={"order_id": str(order.id), "attempt_id": attempt.pk, "source": source},
            )
        logger.info(
            "payment_confirmed",
            extra={
                "order_id": str(order.id),
                "attempt_id": attempt.pk,
                "checkout_id": attempt.provider_checkout_id,
                "amount": attempt.amount,
                "currency": attempt.currency,
                "source": source,
            },
        )
        return ConfirmationOutcome(confirmed=True, applied=True, reason=REASON_CONFIRMED)

    @staticmethod
    def record_failure(*, attempt_id, reason: str, source: str) -> bool:
        closed = PaymentLedger.mark_failed(attempt_id=attempt_id, reason=reason)
        if closed:
            logger.info(
                "payment_failed",
                extra={"attempt_id": attempt_id, "failure_reason": reason, "source": source},
            )
        return closed

    @staticmethod
    @transaction.atomic
    def confirm_cash(*, order_id) -> ConfirmationOutcome:
        Order.objects.select_for_update().filter(pk=order_id).first()
        superseded = PaymentLedger.supersede_pending(order_id=order_id, reason="superseded_by_cash")
        flipped = Order.objects.filter(
            id=order_id, payment_confirmed=False, status=OrderStatus.CONFIRMED.value
        ).update(
            payment_confirmed=True,
            payment_method=PaymentMethod.CASH.value,
            updated_at=timezone.now(),
        )
        if flipped != 1:
            already = Order.objects.filter(id=order_id, payment_confirmed=True).exists()
            return ConfirmationOutcome(
                confirmed=already,
                applied=False,
                reason=REASON_ALREADY_CONFIRMED if already else REASON_NOT_PAYABLE,
            )
        logger.info(
            "payment_confirmed",
            extra={"order_id": str(order_id), "source": "cash", "superseded_attempts": superseded},
        )
        return ConfirmationOutcome(confirmed=True, applied=True, reason=REASON_CONFIRMED)
