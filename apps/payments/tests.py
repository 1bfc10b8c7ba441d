from __future__ import annotations

import itertools
import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import connection
from django.test import Client, SimpleTestCase, TestCase, override_settings
from django.test.utils import CaptureQueriesContext
from django.utils import timezone
from rest_framework.test import APIClient

from apps.orders.models import Order
from apps.payments.application.facade import PaymentGatewayFacade
from apps.payments.application.services.confirmation import PaymentConfirmationService
from apps.payments.application.use_cases.handle_webhook_event import (
    HandleWebhookEventCommand,
    HandleWebhookEventUseCase,
)
from apps.payments.application.use_cases.reconcile_payment import (
    ReconcilePaymentCommand,
    ReconcilePaymentUseCase,
)
from apps.payments.domain.errors import (
    InvalidAmountError,
    ProviderError,
    ProviderUnavailableError,
    UnknownProviderError,
    WebhookSecretMissingError,
    WebhookSignatureError,
)
from apps.payments.domain.policies import resolve_redirect_url, to_minor_units
from apps.payments.domain.ports import CheckoutState
from apps.payments.domain.signatures import compute_signature, verify_signature
from apps.payments.infrastructure.gateways.dummy_gateway import DummyGateway
from apps.payments.models import PaymentAttempt, WebhookEvent
from apps.restaurants.application.services.crypto import CredentialCrypto
from apps.restaurants.models import Restaurant, RestaurantPaymentCredentials

WEBHOOK_SECRET = "whsec_test_secret"
RECONCILE_TIME = "apps.payments.application.use_cases.reconcile_payment.time"


class AmountPolicyTests(SimpleTestCase):
    def test_rand_amount_converts_to_cents(self):
        self.assertEqual(to_minor_units(Decimal("150.00"), "ZAR"), 15000)
        self.assertEqual(to_minor_units("0.01", "zar"), 1)

    def test_zero_decimal_currency(self):
        self.assertEqual(to_minor_units(Decimal("1500"), "JPY"), 1500)
        with self.assertRaises(InvalidAmountError):
            to_minor_units(Decimal("1500.50"), "JPY")

    def test_non_positive_or_too_precise_amounts_are_rejected(self):
        for amount in (Decimal("0"), Decimal("-5.00"), Decimal("10.005"), "abc"):
            with self.assertRaises(InvalidAmountError):
                to_minor_units(amount, "ZAR")


class RedirectUrlPolicyTests(SimpleTestCase):
    origin = "https://app.example.com"
    order_id = "6f1c2f4e-1d7a-4a43-9d35-2a1f3f0b8a11"

    def test_same_origin_order_page_is_kept(self):
        url = f"{self.origin}/orders/{self.order_id}?paid=1"
        self.assertEqual(
            resolve_redirect_url(url, allowed_origin=self.origin, order_id=self.order_id, outcome="success"),
            url,
        )

    def test_foreign_origin_or_path_falls_back_to_default(self):
        default = f"{self.origin}/orders/{self.order_id}?payment=cancelled"
        for url in (
            "https://evil.example.net/orders/" + self.order_id,
            f"{self.origin}/admin/",
            f"{self.origin}/orders/another-order",
            "",
            None,
        ):
            self.assertEqual(
                resolve_redirect_url(url, allowed_origin=self.origin, order_id=self.order_id, outcome="cancelled"),
                default,
            )


class SignatureTests(SimpleTestCase):
    body = b'{"id":"evt_1","type":"payment.succeeded"}'

    def test_valid_signature_with_or_without_prefix(self):
        signature = compute_signature(secret=WEBHOOK_SECRET, body=self.body)
        verify_signature(secret=WEBHOOK_SECRET, body=self.body, provided=signature)
        verify_signature(secret=WEBHOOK_SECRET, body=self.body, provided=f"sha256={signature}")

    def test_signature_covers_exact_bytes(self):
        signature = compute_signature(secret=WEBHOOK_SECRET, body=self.body)
        with self.assertRaises(WebhookSignatureError):
            verify_signature(secret=WEBHOOK_SECRET, body=self.body + b" ", provided=signature)

    def test_missing_signature_or_secret(self):
        with self.assertRaises(WebhookSignatureError):
            verify_signature(secret=WEBHOOK_SECRET, body=self.body, provided="")
        with self.assertRaises(WebhookSecretMissingError):
            verify_signature(secret="", body=self.body, provided="anything")


class GatewayFacadeTests(SimpleTestCase):
    def test_provider_selected_by_code(self):
        self.assertEqual(PaymentGatewayFacade.get("dummy").code, "dummy")
        self.assertEqual(PaymentGatewayFacade.get("YOCO").code, "yoco")
        with self.assertRaises(UnknownProviderError):
            PaymentGatewayFacade.get("paypal")

    @override_settings(PAYMENT_PROVIDER="dummy")
    def test_default_provider_comes_from_settings(self):
        self.assertEqual(PaymentGatewayFacade.get().code, "dummy")


@override_settings(
    PAYMENT_PROVIDER="dummy",
    PAYMENT_CURRENCY="ZAR",
    PAYMENT_WEBHOOK_SECRET=WEBHOOK_SECRET,
    PAYMENT_WEBHOOK_SIGNATURE_HEADER="X-Webhook-Signature",
    PAYMENT_RECONCILE_TIMEOUT_SECONDS=2,
    PAYMENT_RECONCILE_INTERVAL_SECONDS=1,
    FRONTEND_ORIGIN="https://app.example.com",
)
class PaymentsTestCase(TestCase):
    def setUp(self) -> None:
        super().setUp()
        cache.clear()
        DummyGateway.reset()
        User = get_user_model()
        self.owner = User.objects.create_user(username="owner", password="StrongPass12345!")
        self.customer = User.objects.create_user(username="customer", password="StrongPass12345!")
        self.stranger = User.objects.create_user(username="stranger", password="StrongPass12345!")
        self.restaurant = Restaurant.objects.create(owner=self.owner, name="Mama's Kitchen")
        RestaurantPaymentCredentials.objects.create(
            restaurant=self.restaurant,
            secret_key_encrypted=CredentialCrypto.encrypt_json({"secret_key": "sk_test_abcdef123456"}),
        )
        self.order = Order.objects.create(
            restaurant=self.restaurant,
            customer=self.customer,
            status="confirmed",
            order_type="delivery",
            total_amount=Decimal("150.00"),
            delivery_address="12 Long Street, Cape Town",
        )
        self.client = APIClient()
        self.client.force_authenticate(self.customer)

    def start_checkout(self, **extra):
        data = {"order_id": str(self.order.id), **extra}
        return self.client.post("/api/payments/checkout/", data=data, format="json")

    def verify(self):
        return self.client.post("/api/payments/verify/", data={"order_id": str(self.order.id)}, format="json")

    def webhook_body(self, *, checkout_id, event_id="evt_1", event_type="payment.succeeded", payment_id="p_1"):
        return json.dumps(
            {
                "id": event_id,
                "type": event_type,
                "payload": {
                    "id": payment_id,
                    "status": "succeeded",
                    "metadata": {"checkoutId": checkout_id, "orderId": str(self.order.id)},
                },
            }
        ).encode("utf-8")

    def post_webhook(self, body: bytes, signature: str | None = "auto"):
        if signature == "auto":
            signature = compute_signature(secret=WEBHOOK_SECRET, body=body)
        headers = {"HTTP_X_WEBHOOK_SIGNATURE": signature} if signature is not None else {}
        return Client().post("/api/payments/webhook/", data=body, content_type="application/json", **headers)

    def open_attempt(self) -> PaymentAttempt:
        response = self.start_checkout()
        self.assertEqual(response.status_code, 200)
        return PaymentAttempt.objects.get(provider_checkout_id=response.json()["checkoutId"])


class CheckoutApiTests(PaymentsTestCase):
    def test_checkout_records_pending_attempt_in_minor_units(self):
        response = self.start_checkout(successUrl=f"https://app.example.com/orders/{self.order.id}")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["checkoutUrl"].endswith(payload["checkoutId"]))

        attempt = PaymentAttempt.objects.get(provider_checkout_id=payload["checkoutId"])
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_PENDING)
        self.assertEqual(attempt.amount, 15000)
        self.assertEqual(attempt.currency, "ZAR")
        self.assertEqual(attempt.provider, "dummy")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "confirmed")
        self.assertFalse(self.order.payment_confirmed)

    def test_resubmission_reuses_the_open_checkout(self):
        first = self.start_checkout().json()
        second = self.start_checkout().json()
        self.assertEqual(first, second)
        self.assertEqual(PaymentAttempt.objects.filter(order=self.order).count(), 1)

    def test_stale_checkout_is_superseded(self):
        first = self.start_checkout().json()
        PaymentAttempt.objects.filter(provider_checkout_id=first["checkoutId"]).update(
            created_at=timezone.now() - timedelta(hours=1)
        )
        second = self.start_checkout().json()
        self.assertNotEqual(first["checkoutId"], second["checkoutId"])

        stale = PaymentAttempt.objects.get(provider_checkout_id=first["checkoutId"])
        self.assertEqual(stale.status, PaymentAttempt.STATUS_FAILED)
        self.assertEqual(stale.failure_reason, "superseded")
        self.assertEqual(
            PaymentAttempt.objects.filter(order=self.order, status=PaymentAttempt.STATUS_PENDING).count(), 1
        )

    def test_missing_credentials(self):
        RestaurantPaymentCredentials.objects.all().delete()
        response = self.start_checkout()
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["reason"], "CredentialsMissing")
        self.assertFalse(PaymentAttempt.objects.exists())

    def test_only_the_customer_can_pay(self):
        self.client.force_authenticate(self.stranger)
        response = self.start_checkout()
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["reason"], "Unauthorized")

    def test_unknown_order(self):
        response = self.client.post(
            "/api/payments/checkout/",
            data={"order_id": "00000000-0000-0000-0000-000000000000"},
            format="json",
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["reason"], "OrderNotFound")

    def test_order_not_yet_accepted(self):
        Order.objects.filter(pk=self.order.pk).update(status="pending")
        response = self.start_checkout()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["reason"], "InvalidTransition")

    def test_already_paid_order(self):
        Order.objects.filter(pk=self.order.pk).update(payment_confirmed=True, payment_method="cash")
        response = self.start_checkout()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["reason"], "PaymentAlreadyConfirmed")

    def test_provider_outage_is_reported_and_nothing_is_recorded(self):
        with patch.object(
            DummyGateway, "create_checkout", side_effect=ProviderUnavailableError("Payment provider is unreachable.")
        ):
            response = self.start_checkout()
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["reason"], "ProviderUnavailable")
        self.assertFalse(PaymentAttempt.objects.exists())

    def test_provider_rejection_is_not_reported_as_retryable(self):
        with patch.object(
            DummyGateway, "create_checkout", side_effect=ProviderError("Rejected.", status_code=422)
        ):
            response = self.start_checkout()
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["reason"], "ProviderError")

    def test_checkout_passes_sanitised_redirects_to_provider(self):
        with patch.object(DummyGateway, "create_checkout", wraps=DummyGateway().create_checkout) as create:
            self.start_checkout(successUrl="https://evil.example.net/phish")
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["success_url"], f"https://app.example.com/orders/{self.order.id}?payment=success")
        self.assertEqual(kwargs["failure_url"], f"https://app.example.com/orders/{self.order.id}?payment=failed")
        self.assertEqual(kwargs["amount"], 15000)
        self.assertEqual(kwargs["metadata"]["orderId"], str(self.order.id))


class WebhookApiTests(PaymentsTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.attempt = self.open_attempt()

    def test_online_scenario_confirms_order_once(self):
        response = self.post_webhook(self.webhook_body(checkout_id=self.attempt.provider_checkout_id))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "processed")

        self.attempt.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_COMPLETED)
        self.assertEqual(self.attempt.provider_payment_id, "p_1")
        self.assertIsNotNone(self.attempt.completed_at)
        self.assertTrue(self.order.payment_confirmed)
        self.assertEqual(self.order.payment_method, "online")
        self.assertEqual(self.order.status, "confirmed")

        owner_client = APIClient()
        owner_client.force_authenticate(self.owner)
        advanced = owner_client.post(f"/api/orders/{self.order.id}/status/", data={"status": "preparing"}, format="json")
        self.assertEqual(advanced.status_code, 200)

    def test_redelivered_event_is_not_reapplied(self):
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id)
        self.assertEqual(self.post_webhook(body).status_code, 200)
        self.order.refresh_from_db()
        first_updated_at = self.order.updated_at

        with patch.object(PaymentConfirmationService, "confirm_online") as confirm:
            replay = self.post_webhook(body)
        self.assertEqual(replay.status_code, 200)
        self.assertEqual(replay.json()["status"], "duplicate")
        confirm.assert_not_called()

        self.order.refresh_from_db()
        self.assertEqual(self.order.updated_at, first_updated_at)
        self.assertEqual(WebhookEvent.objects.count(), 1)

    def test_second_success_event_for_same_checkout_is_a_no_op(self):
        self.post_webhook(self.webhook_body(checkout_id=self.attempt.provider_checkout_id, event_id="evt_1"))
        response = self.post_webhook(self.webhook_body(checkout_id=self.attempt.provider_checkout_id, event_id="evt_2"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(WebhookEvent.objects.get(event_id="evt_2").note, "already_confirmed")
        self.assertEqual(PaymentAttempt.objects.filter(status=PaymentAttempt.STATUS_COMPLETED).count(), 1)

    @override_settings(PAYMENT_WEBHOOK_SECRET="")
    def test_missing_secret_returns_503_without_processing(self):
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id)
        response = self.post_webhook(body, signature=compute_signature(secret=WEBHOOK_SECRET, body=body))
        self.assertEqual(response.status_code, 503)
        self.assertFalse(WebhookEvent.objects.exists())
        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_PENDING)

    def test_bad_or_missing_signature_returns_401_without_mutation(self):
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id)
        self.assertEqual(self.post_webhook(body, signature="deadbeef").status_code, 401)
        self.assertEqual(self.post_webhook(body, signature=None).status_code, 401)
        forged = compute_signature(secret="not-the-secret", body=body)
        self.assertEqual(self.post_webhook(body, signature=forged).status_code, 401)

        self.assertFalse(WebhookEvent.objects.exists())
        self.attempt.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_PENDING)
        self.assertFalse(self.order.payment_confirmed)

    def test_non_json_body_returns_400(self):
        response = self.post_webhook(b"not json at all")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["reason"], "InvalidPayload")

    def test_unknown_event_type_is_accepted_and_ignored(self):
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id, event_type="refund.succeeded")
        response = self.post_webhook(body)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ignored")
        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_PENDING)

    def test_unknown_checkout_is_ignored(self):
        response = self.post_webhook(self.webhook_body(checkout_id="ch_unknown"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(WebhookEvent.objects.get().note, "unknown_checkout")

    def test_failed_event_closes_attempt_and_leaves_order(self):
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id, event_type="payment.failed")
        self.assertEqual(self.post_webhook(body).status_code, 200)
        self.attempt.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_FAILED)
        self.assertEqual(self.order.status, "confirmed")
        self.assertFalse(self.order.payment_confirmed)

        success = self.webhook_body(checkout_id=self.attempt.provider_checkout_id, event_id="evt_late")
        self.post_webhook(success)
        self.attempt.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_FAILED)
        self.assertFalse(self.order.payment_confirmed)

    def test_event_without_id_is_deduplicated_by_body_hash(self):
        body = json.dumps(
            {
                "type": "payment.succeeded",
                "payload": {"id": "p_9", "metadata": {"checkoutId": self.attempt.provider_checkout_id}},
            }
        ).encode("utf-8")
        self.post_webhook(body)
        self.assertEqual(self.post_webhook(body).json()["status"], "duplicate")
        self.assertTrue(WebhookEvent.objects.get().idempotency_key.startswith("dummy:sha256:"))

    def test_oversized_event_id_is_stored_and_deduplicated(self):
        long_id = "evt_" + "x" * 300
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id, event_id=long_id)
        self.assertEqual(self.post_webhook(body).json()["status"], "processed")
        self.assertEqual(self.post_webhook(body).json()["status"], "duplicate")

        event = WebhookEvent.objects.get()
        self.assertEqual(len(event.event_id), 128)
        self.assertTrue(event.idempotency_key.startswith("dummy:id-sha256:"))
        self.assertLessEqual(len(event.idempotency_key), 200)

    def test_unexpected_failure_returns_500_so_provider_retries(self):
        body = self.webhook_body(checkout_id=self.attempt.provider_checkout_id)
        with patch.object(PaymentConfirmationService, "confirm_online", side_effect=RuntimeError("db down")):
            response = self.post_webhook(body)
        self.assertEqual(response.status_code, 500)
        self.assertFalse(WebhookEvent.objects.exists())

        self.assertEqual(self.post_webhook(body).json()["status"], "processed")
        self.order.refresh_from_db()
        self.assertTrue(self.order.payment_confirmed)


class ConfirmationServiceTests(PaymentsTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.attempt = self.open_attempt()

    def assert_order_row_taken_before_ledger_write(self, queries):
        sql = [query["sql"] for query in queries]
        order_read = next(i for i, text in enumerate(sql) if text.startswith("SELECT") and 'FROM "orders_order"' in text)
        ledger_write = next(i for i, text in enumerate(sql) if text.startswith('UPDATE "payments_paymentattempt"'))
        self.assertLess(order_read, ledger_write)

    def test_online_confirmation_locks_order_before_ledger(self):
        with CaptureQueriesContext(connection) as ctx:
            PaymentConfirmationService.confirm_online(attempt_id=self.attempt.pk, source="webhook")
        self.assert_order_row_taken_before_ledger_write(ctx.captured_queries)

    def test_cash_confirmation_locks_order_before_ledger(self):
        with CaptureQueriesContext(connection) as ctx:
            PaymentConfirmationService.confirm_cash(order_id=self.order.id)
        self.assert_order_row_taken_before_ledger_write(ctx.captured_queries)

    def test_confirmation_is_idempotent(self):
        first = PaymentConfirmationService.confirm_online(attempt_id=self.attempt.pk, source="webhook")
        second = PaymentConfirmationService.confirm_online(attempt_id=self.attempt.pk, source="poll")
        self.assertTrue(first.applied)
        self.assertFalse(second.applied)
        self.assertTrue(second.confirmed)
        self.assertEqual(second.reason, "already_confirmed")

    def test_late_online_success_after_cash_does_not_change_method(self):
        PaymentConfirmationService.confirm_cash(order_id=self.order.id)
        outcome = PaymentConfirmationService.confirm_online(attempt_id=self.attempt.pk, source="webhook")
        self.assertFalse(outcome.applied)
        self.assertEqual(outcome.reason, "attempt_closed")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_method, "cash")

    def test_failure_after_completion_is_ignored(self):
        PaymentConfirmationService.confirm_online(attempt_id=self.attempt.pk, source="webhook")
        self.assertFalse(
            PaymentConfirmationService.record_failure(attempt_id=self.attempt.pk, reason="provider_failed", source="poll")
        )
        self.attempt.refresh_from_db()
        self.assertEqual(self.attempt.status, PaymentAttempt.STATUS_COMPLETED)


class VerifyApiTests(PaymentsTestCase):
    def test_no_pending_payment(self):
        response = self.verify()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"confirmed": False, "reason": "no_pending_payment"})

    def test_already_confirmed_order(self):
        Order.objects.filter(pk=self.order.pk).update(payment_confirmed=True, payment_method="cash")
        self.assertEqual(self.verify().json(), {"confirmed": True, "reason": "already_confirmed"})

    def test_poll_confirms_when_provider_reports_success(self):
        attempt = self.open_attempt()
        DummyGateway.settle(
            attempt.provider_checkout_id, status="completed", payment_id="p_42", payment_status="succeeded"
        )
        response = self.verify()
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["confirmed"])
        self.assertEqual(payload["checkoutId"], attempt.provider_checkout_id)
        self.assertEqual(payload["paymentId"], "p_42")
        self.assertEqual(payload["paymentStatus"], "succeeded")

        attempt.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_COMPLETED)
        self.assertTrue(self.order.payment_confirmed)
        self.assertEqual(self.order.payment_method, "online")

    def test_poll_times_out_without_destructive_action(self):
        attempt = self.open_attempt()
        with patch(RECONCILE_TIME) as mocked_time:
            mocked_time.monotonic.side_effect = itertools.count(0, 1)
            response = self.verify()
        payload = response.json()
        self.assertFalse(payload["confirmed"])
        self.assertEqual(payload["reason"], "not_yet_confirmed")
        self.assertEqual(payload["checkoutStatus"], "created")
        mocked_time.sleep.assert_called_with(1)

        attempt.refresh_from_db()
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_PENDING)

    def test_provider_never_answering(self):
        self.open_attempt()
        with patch(RECONCILE_TIME) as mocked_time, patch.object(
            DummyGateway, "fetch_checkout", side_effect=ProviderError("boom", status_code=500)
        ):
            mocked_time.monotonic.side_effect = itertools.count(0, 1)
            payload = self.verify().json()
        self.assertFalse(payload["confirmed"])
        self.assertEqual(payload["reason"], "checkout_fetch_failed")

    def test_provider_failure_status_closes_attempt(self):
        attempt = self.open_attempt()
        DummyGateway.settle(attempt.provider_checkout_id, status="expired")
        payload = self.verify().json()
        self.assertFalse(payload["confirmed"])
        self.assertEqual(payload["reason"], "payment_failed")
        attempt.refresh_from_db()
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_FAILED)
        self.assertEqual(attempt.failure_reason, "provider_expired")

    def test_webhook_winning_mid_poll_converges(self):
        attempt = self.open_attempt()
        body = self.webhook_body(checkout_id=attempt.provider_checkout_id)
        signature = compute_signature(secret=WEBHOOK_SECRET, body=body)

        def webhook_lands_during_fetch(*, secret_key, checkout_id):
            HandleWebhookEventUseCase.execute(HandleWebhookEventCommand(raw_body=body, signature=signature))
            return CheckoutState(checkout_id=checkout_id, status="processing")

        with patch(RECONCILE_TIME) as mocked_time, patch.object(
            DummyGateway, "fetch_checkout", side_effect=webhook_lands_during_fetch
        ) as fetch:
            mocked_time.monotonic.side_effect = itertools.count(0, 1)
            result = ReconcilePaymentUseCase.execute(
                ReconcilePaymentCommand(order_id=self.order.id, user=self.customer)
            )

        self.assertTrue(result.confirmed)
        self.assertEqual(result.reason, "already_confirmed")
        self.assertEqual(fetch.call_count, 1)

        attempt.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_COMPLETED)
        self.assertEqual(attempt.provider_payment_id, "p_1")
        self.assertTrue(self.order.payment_confirmed)
        self.assertEqual(WebhookEvent.objects.get().note, "confirmed")

    def test_poll_after_webhook_reports_already_confirmed(self):
        attempt = self.open_attempt()
        self.post_webhook(self.webhook_body(checkout_id=attempt.provider_checkout_id))
        self.assertEqual(self.verify().json(), {"confirmed": True, "reason": "already_confirmed"})

    def test_stranger_cannot_poll(self):
        self.open_attempt()
        self.client.force_authenticate(self.stranger)
        self.assertEqual(self.verify().status_code, 403)
