from __future__ import annotations

from django.utils import timezone

from apps.payments.domain.ports import CheckoutSession
from apps.payments.models import PaymentAttempt


class PaymentLedger:
    """
    Every write that closes an attempt is a conditional update on `status='pending'`,
    so completed and failed rows are never touched again and concurrent writers
    learn whether they won from the affected row count.
    """

    @staticmethod
    def latest_pending(*, order_id) -> PaymentAttempt | None:
        return (
            PaymentAttempt.objects.filter(order_id=order_id, status=PaymentAttempt.STATUS_PENDING)
            .order_by("-created_at")
            .first()
        )

    @staticmethod
    def find_by_checkout_id(*, checkout_id: str) -> PaymentAttempt | None:
        if not checkout_id:
            return None
        return PaymentAttempt.objects.filter(provider_checkout_id=checkout_id).first()

    @staticmethod
    def open_attempt(
        *, order, provider: str, session: CheckoutSession, amount: int, currency: str
    ) -> PaymentAttempt:
        return PaymentAttempt.objects.create(
            order=order,
            provider=provider,
            provider_checkout_id=session.checkout_id,
            redirect_url=session.redirect_url,
            amount=amount,
            currency=currency,
            status=PaymentAttempt.STATUS_PENDING,
        )

    @staticmethod
    def mark_completed(*, attempt_id, provider_payment_id: str | None = None) -> bool:
        now = timezone.now()
        fields = {"status": PaymentAttempt.STATUS_COMPLETED, "completed_at": now, "updated_at": now}
        if provider_payment_id:
            fields["provider_payment_id"] = provider_payment_id
        updated = PaymentAttempt.objects.filter(
            pk=attempt_id, status=PaymentAttempt.STATUS_PENDING
        ).update(**fields)
        return updated == 1

    @staticmethod
    def mark_failed(*, attempt_id, reason: str) -> bool:
        updated = PaymentAttempt.objects.filter(
            pk=attempt_id, status=PaymentAttempt.STATUS_PENDING
        ).update(
            status=PaymentAttempt.STATUS_FAILED,
            failure_reason=reason[:64],
            updated_at=timezone.now(),
        )
        return updated == 1

    @staticmethod
    def supersede_pending(*, order_id, reason: str = "superseded") -> int:
        return PaymentAttempt.objects.filter(
            order_id=order_id, status=PaymentAttempt.STATUS_PENDING
        ).update(
            status=PaymentAttempt.STATUS_FAILED,
            failure_reason=reason,
            updated_at=timezone.now(),
        )
