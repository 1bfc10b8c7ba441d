from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class CheckoutSession:
    checkout_id: str
    redirect_url: str


@dataclass(frozen=True)
class CheckoutState:
    checkout_id: str
    status: str | None
    payment_id: str | None = None


@dataclass(frozen=True)
class PaymentState:
    payment_id: str
    status: str | None


@dataclass(frozen=True)
class WebhookEventData:
    event_id: str
    event_type: str
    checkout_id: str
    payment_id: str
    order_id: str
    raw: dict = field(default_factory=dict)


class PaymentGatewayPort(Protocol):
    code: str
    name: str

    def create_checkout(
        self,
        *,
        secret_key: str,
        amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        failure_url: str,
        metadata: dict,
        idempotency_key: str,
    ) -> CheckoutSession:
        ...

    def fetch_checkout(self, *, secret_key: str, checkout_id: str) -> CheckoutState:
        ...

    def fetch_payment(self, *, secret_key: str, payment_id: str) -> PaymentState:
        ...
