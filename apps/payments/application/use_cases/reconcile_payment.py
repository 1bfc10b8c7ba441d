from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from django.conf import settings

from apps.orders.application.services.order_access import OrderAccessService
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.services.confirmation import (
    REASON_ALREADY_CONFIRMED,
    REASON_PAYMENT_FAILED,
    PaymentConfirmationService,
)
from apps.payments.application.services.ledger import PaymentLedger
from apps.payments.domain.errors import ProviderError
from apps.payments.domain.policies import is_approved_status, is_failed_status, normalize_status
from apps.payments.models import PaymentAttempt
from apps.restaurants.application.services.credentials_service import RestaurantCredentialsService

logger = logging.getLogger("foodhub.payments")

REASON_NO_PENDING_PAYMENT = "no_pending_payment"
REASON_NOT_YET_CONFIRMED = "not_yet_confirmed"
REASON_CHECKOUT_FETCH_FAILED = "checkout_fetch_failed"


@dataclass(frozen=True)
class ReconcilePaymentCommand:
    order_id: object
    user: object


@dataclass(frozen=True)
class ReconcilePaymentResult:
    confirmed: bool
    reason: str | None = None
    checkout_id: str | None = None
    checkout_status: str | None = None
    payment_id: str | None = None
    payment_status: str | None = None


def provider_reports_paid(*, checkout_status: str | None, payment_id: str | None, payment_status: str | None) -> bool:
    return (
        is_approved_status(payment_status)
        or is_approved_status(checkout_status)
        or (bool(payment_id) and normalize_status(checkout_status) == "completed")
    )


class ReconcilePaymentUseCase:
    """
    Client-triggered fallback for a late or lost webhook: re-asks the provider
    about the order's pending checkout for a bounded window. Timing out never
    changes anything; the customer can simply poll again.
    """

    @staticmethod
    def execute(cmd: ReconcilePaymentCommand) -> ReconcilePaymentResult:
        order = OrderAccessService.get_for_customer(order_id=cmd.order_id, user=cmd.user)
        if order.payment_confirmed:
            return ReconcilePaymentResult(confirmed=True, reason=REASON_ALREADY_CONFIRMED)

        attempt = PaymentLedger.latest_pending(order_id=order.id)
        if attempt is None:
            return ReconcilePaymentResult(confirmed=False, reason=REASON_NO_PENDING_PAYMENT)

        secret_key = RestaurantCredentialsService.get_secret_key(restaurant_id=order.restaurant_id)
        gateway = PaymentGatewayFacade.get(attempt.provider)
        interval = max(0, getattr(settings, "PAYMENT_RECONCILE_INTERVAL_SECONDS", 2))
        deadline = time.monotonic() + getattr(settings, "PAYMENT_RECONCILE_TIMEOUT_SECONDS", 20)

        checkout_id = attempt.provider_checkout_id
        checkout_status = payment_id = payment_status = None
        last_reason = REASON_CHECKOUT_FETCH_FAILED
        answered = False

        while True:
            attempt.refresh_from_db(fields=["status", "provider_payment_id"])
            if attempt.status == PaymentAttempt.STATUS_COMPLETED:
                return ReconcilePaymentResult(
                    confirmed=True,
                    reason=REASON_ALREADY_CONFIRMED,
                    checkout_id=checkout_id,
                    checkout_status=checkout_status,
                    payment_id=attempt.provider_payment_id or payment_id,
                    payment_status=payment_status,
                )
            if attempt.status == PaymentAttempt.STATUS_FAILED:
                return ReconcilePaymentResult(
                    confirmed=False,
                    reason=REASON_PAYMENT_FAILED,
                    checkout_id=checkout_id,
                    checkout_status=checkout_status,
                )

            try:
                checkout = gateway.fetch_checkout(secret_key=secret_key, checkout_id=checkout_id)
            except ProviderError as exc:
                logger.warning(
                    "reconcile_fetch_failed",
                    extra={"order_id": str(order.id), "checkout_id": checkout_id, "error": str(exc)},
                )
            else:
                answered = True
                checkout_status = checkout.status
                payment_id = checkout.payment_id
                payment_status = None
                if payment_id:
                    try:
                        payment_status = gateway.fetch_payment(secret_key=secret_key, payment_id=payment_id).status
                    except ProviderError as exc:
                        logger.warning(
                            "reconcile_payment_fetch_failed",
                            extra={"order_id": str(order.id), "payment_id": payment_id, "error": str(exc)},
                        )

                if provider_reports_paid(
                    checkout_status=checkout_status, payment_id=payment_id, payment_status=payment_status
                ):
                    outcome = PaymentConfirmationService.confirm_online(
                        attempt_id=attempt.pk, provider_payment_id=payment_id, source="poll"
                    )
                    return ReconcilePaymentResult(
                        confirmed=outcome.confirmed,
                        reason=outcome.reason,
                        checkout_id=checkout_id,
                        checkout_status=checkout_status,
                        payment_id=payment_id,
                        payment_status=payment_status,
                    )
                if is_failed_status(payment_status) or is_failed_status(checkout_status):
                    closed = PaymentConfirmationService.record_failure(
                        attempt_id=attempt.pk,
                        reason=f"provider_{normalize_status(payment_status if is_failed_status(payment_status) else checkout_status)}",
                        source="poll",
                    )
                    if not closed:
                        # Someone else closed the attempt first; re-read it.
                        continue
                    return ReconcilePaymentResult(
                        confirmed=False,
                        reason=REASON_PAYMENT_FAILED,
                        checkout_id=checkout_id,
                        checkout_status=checkout_status,
                        payment_id=payment_id,
                        payment_status=payment_status,
                    )

            if answered:
                last_reason = REASON_NOT_YET_CONFIRMED
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(interval, remaining))

        logger.info(
            "reconcile_timed_out",
            extra={"order_id": str(order.id), "checkout_id": checkout_id, "reason": last_reason},
        )
        return ReconcilePaymentResult(
            confirmed=False,
            reason=last_reason,
            checkout_id=checkout_id,
            checkout_status=checkout_status,
            payment_id=payment_id,
            payment_status=payment_status,
        )
