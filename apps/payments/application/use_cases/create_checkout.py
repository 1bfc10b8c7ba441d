from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import uuid4

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.orders.application.services.order_access import OrderAccessService
from apps.orders.domain.state_machine import OrderStateMachine
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.services.ledger import PaymentLedger
from apps.payments.domain.policies import resolve_redirect_url, to_minor_units
from apps.payments.models import PaymentAttempt
from apps.restaurants.application.services.credentials_service import RestaurantCredentialsService

logger = logging.getLogger("foodhub.payments")


@dataclass(frozen=True)
class CreateCheckoutCommand:
    order_id: object
    user: object
    success_url: str = ""
    cancel_url: str = ""
    failure_url: str = ""


@dataclass(frozen=True)
class CreateCheckoutResult:
    checkout_url: str
    checkout_id: str
    reused: bool = False


def _is_reusable(attempt: PaymentAttempt, *, provider: str, amount: int, currency: str) -> bool:
    max_age = timedelta(seconds=getattr(settings, "PAYMENT_CHECKOUT_REUSE_SECONDS", 900))
    return (
        attempt.provider == provider
        and attempt.amount == amount
        and attempt.currency == currency
        and bool(attempt.redirect_url)
        and timezone.now() - attempt.created_at < max_age
    )


class CreateCheckoutUseCase:
    """
    Opens a hosted checkout for a confirmed, unpaid order.

    The order row stays locked for the whole call so two concurrent submissions
    for the same order end up sharing one provider session.
    """

    @staticmethod
    @transaction.atomic
    def execute(cmd: CreateCheckoutCommand) -> CreateCheckoutResult:
        order = OrderAccessService.get_for_customer(order_id=cmd.order_id, user=cmd.user, for_update=True)
        OrderStateMachine.ensure_payment_selectable(status=order.status, payment_confirmed=order.payment_confirmed)
        secret_key = RestaurantCredentialsService.get_secret_key(restaurant_id=order.restaurant_id)

        currency = (getattr(settings, "PAYMENT_CURRENCY", "ZAR") or "ZAR").upper()
        amount = to_minor_units(order.total_amount, currency)
        gateway = PaymentGatewayFacade.get()

        existing = PaymentLedger.latest_pending(order_id=order.id)
        if existing and _is_reusable(existing, provider=gateway.code, amount=amount, currency=currency):
            logger.info(
                "checkout_reused",
                extra={"order_id": str(order.id), "checkout_id": existing.provider_checkout_id},
            )
            return CreateCheckoutResult(
                checkout_url=existing.redirect_url,
                checkout_id=existing.provider_checkout_id,
                reused=True,
            )

        superseded = PaymentLedger.supersede_pending(order_id=order.id, reason="superseded")

        origin = settings.FRONTEND_ORIGIN
        session = gateway.create_checkout(
            secret_key=secret_key,
            amount=amount,
            currency=currency,
            success_url=resolve_redirect_url(
                cmd.success_url, allowed_origin=origin, order_id=order.id, outcome="success"
            ),
            cancel_url=resolve_redirect_url(
                cmd.cancel_url, allowed_origin=origin, order_id=order.id, outcome="cancelled"
            ),
            failure_url=resolve_redirect_url(
                cmd.failure_url, allowed_origin=origin, order_id=order.id, outcome="failed"
            ),
            metadata={"orderId": str(order.id), "restaurantId": str(order.restaurant_id)},
            idempotency_key=f"order-{order.id}-{uuid4().hex}",
        )
        attempt = PaymentLedger.open_attempt(
            order=order,
            provider=gateway.code,
            session=session,
            amount=amount,
            currency=currency,
        )

        logger.info(
            "checkout_created",
            extra={
                "order_id": str(order.id),
                "attempt_id": attempt.pk,
                "checkout_id": session.checkout_id,
                "amount": amount,
                "currency": currency,
                "superseded_attempts": superseded,
            },
        )
        return CreateCheckoutResult(checkout_url=session.redirect_url, checkout_id=session.checkout_id)
