from __future__ import annotations

import threading
from uuid import uuid4

from apps.payments.domain.errors import ProviderError
from apps.payments.domain.ports import CheckoutSession, CheckoutState, PaymentState


class DummyGateway:
    """
    In-memory sandbox provider for local development and tests.

    Checkouts start as `created`; `settle()` moves one to whatever state a test
    or a developer wants the provider to report.
    """

    code = "dummy"
    name = "Dummy Gateway"
    redirect_base = "https://sandbox.payments.invalid/checkout"

    _lock = threading.Lock()
    _checkouts: dict[str, dict] = {}
    _payments: dict[str, str] = {}

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
        if not secret_key:
            raise ProviderError("Missing secret key.", status_code=401)
        checkout_id = f"ch_dummy_{uuid4().hex[:16]}"
        with self._lock:
            self._checkouts[checkout_id] = {
                "status": "created",
                "payment_id": None,
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "success_url": success_url,
            }
        return CheckoutSession(checkout_id=checkout_id, redirect_url=f"{self.redirect_base}/{checkout_id}")

    def fetch_checkout(self, *, secret_key: str, checkout_id: str) -> CheckoutState:
        with self._lock:
            record = self._checkouts.get(checkout_id)
        if record is None:
            raise ProviderError("Checkout not found.", status_code=404)
        return CheckoutState(checkout_id=checkout_id, status=record["status"], payment_id=record["payment_id"])

    def fetch_payment(self, *, secret_key: str, payment_id: str) -> PaymentState:
        with self._lock:
            status = self._payments.get(payment_id)
        if status is None:
            raise ProviderError("Payment not found.", status_code=404)
        return PaymentState(payment_id=payment_id, status=status)

    @classmethod
    def settle(
        cls,
        checkout_id: str,
        *,
        status: str,
        payment_id: str | None = None,
        payment_status: str | None = None,
    ) -> None:
        with cls._lock:
            record = cls._checkouts.setdefault(checkout_id, {"status": "created", "payment_id": None})
            record["status"] = status
            if payment_id:
                record["payment_id"] = payment_id
                cls._payments[payment_id] = payment_status or status

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._checkouts.clear()
            cls._payments.clear()
