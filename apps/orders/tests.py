from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from apps.orders.domain.errors import (
    InvalidTransitionError,
    PaymentAlreadyConfirmedError,
    PaymentSelectionNotAllowedError,
    TransitionNotPermittedError,
)
from apps.orders.domain.state_machine import Actor, OrderStateMachine, OrderStatus
from apps.orders.models import Order, OrderItem
from apps.payments.models import PaymentAttempt
from apps.restaurants.models import MenuItem, Restaurant


class OrderStateMachineTests(SimpleTestCase):
    def test_forward_path_is_strictly_ordered(self):
        self.assertEqual(OrderStateMachine.next_status("pending"), OrderStatus.CONFIRMED)
        self.assertEqual(OrderStateMachine.next_status("confirmed"), OrderStatus.PREPARING)
        self.assertEqual(OrderStateMachine.next_status("out_for_delivery"), OrderStatus.DELIVERED)
        self.assertIsNone(OrderStateMachine.next_status("delivered"))

    def test_skipping_a_step_is_rejected(self):
        with self.assertRaises(InvalidTransitionError):
            OrderStateMachine.transition(
                current="pending", target="preparing", actor=Actor.RESTAURANT, payment_confirmed=True
            )
        with self.assertRaises(InvalidTransitionError):
            OrderStateMachine.transition(
                current="preparing", target="delivered", actor=Actor.RESTAURANT, payment_confirmed=True
            )

    def test_terminal_states_cannot_change(self):
        for terminal in ("delivered", "cancelled"):
            for target in OrderStatus:
                with self.assertRaises(InvalidTransitionError):
                    OrderStateMachine.transition(
                        current=terminal, target=target.value, actor=Actor.RESTAURANT, payment_confirmed=True
                    )

    def test_preparing_requires_confirmed_payment(self):
        with self.assertRaises(InvalidTransitionError):
            OrderStateMachine.transition(
                current="confirmed", target="preparing", actor=Actor.RESTAURANT, payment_confirmed=False
            )
        rule = OrderStateMachine.transition(
            current="confirmed", target="preparing", actor=Actor.RESTAURANT, payment_confirmed=True
        )
        self.assertTrue(rule.requires_payment)

    def test_customer_cannot_drive_the_restaurant_flow(self):
        with self.assertRaises(TransitionNotPermittedError):
            OrderStateMachine.transition(
                current="pending", target="confirmed", actor=Actor.CUSTOMER, payment_confirmed=False
            )
        with self.assertRaises(TransitionNotPermittedError):
            OrderStateMachine.transition(
                current="pending", target="cancelled", actor=Actor.CUSTOMER, payment_confirmed=False
            )

    def test_system_may_cancel_but_not_advance(self):
        OrderStateMachine.transition(current="ready", target="cancelled", actor=Actor.SYSTEM, payment_confirmed=True)
        with self.assertRaises(TransitionNotPermittedError):
            OrderStateMachine.transition(
                current="ready", target="out_for_delivery", actor=Actor.SYSTEM, payment_confirmed=True
            )

    def test_unknown_status_is_an_invalid_transition(self):
        with self.assertRaises(InvalidTransitionError):
            OrderStateMachine.transition(
                current="pending", target="awaiting_payment", actor=Actor.RESTAURANT, payment_confirmed=False
            )

    def test_payment_selection_window(self):
        OrderStateMachine.ensure_payment_selectable(status="confirmed", payment_confirmed=False)
        with self.assertRaises(PaymentSelectionNotAllowedError):
            OrderStateMachine.ensure_payment_selectable(status="pending", payment_confirmed=False)
        with self.assertRaises(PaymentAlreadyConfirmedError):
            OrderStateMachine.ensure_payment_selectable(status="confirmed", payment_confirmed=True)


class OrderApiTestCase(TestCase):
    def setUp(self) -> None:
        super().setUp()
        cache.clear()
        User = get_user_model()
        self.owner = User.objects.create_user(username="owner", password="StrongPass12345!")
        self.customer = User.objects.create_user(username="customer", password="StrongPass12345!")
        self.stranger = User.objects.create_user(username="stranger", password="StrongPass12345!")
        self.restaurant = Restaurant.objects.create(owner=self.owner, name="Mama's Kitchen")
        self.burger = MenuItem.objects.create(restaurant=self.restaurant, name="Burger", price=Decimal("60.00"))
        self.chips = MenuItem.objects.create(restaurant=self.restaurant, name="Chips", price=Decimal("30.00"))

        self.customer_client = APIClient()
        self.customer_client.force_authenticate(self.customer)
        self.owner_client = APIClient()
        self.owner_client.force_authenticate(self.owner)

    def place_order(self, **overrides):
        data = {
            "restaurant_id": str(self.restaurant.id),
            "order_type": "delivery",
            "delivery_address": "12 Long Street, Cape Town",
            "items": [
                {"menu_item_id": str(self.burger.id), "quantity": 2},
                {"menu_item_id": str(self.chips.id), "quantity": 1},
            ],
        }
        data.update(overrides)
        return self.customer_client.post("/api/orders/", data=data, format="json")

    def set_status(self, order_id, status, client=None):
        client = client or self.owner_client
        return client.post(f"/api/orders/{order_id}/status/", data={"new_status": status}, format="json")


class PlaceOrderApiTests(OrderApiTestCase):
    def test_order_snapshots_items_and_totals(self):
        response = self.place_order()
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["status"], "pending")
        self.assertEqual(payload["total_amount"], "150.00")
        self.assertFalse(payload["payment_confirmed"])
        self.assertEqual(payload["payment_method"], "")
        self.assertEqual(len(payload["items"]), 2)

        order = Order.objects.get(pk=payload["id"])
        self.assertEqual(order.customer, self.customer)
        self.assertEqual(order.items.count(), 2)

    def test_menu_changes_do_not_alter_history(self):
        order_id = self.place_order().json()["id"]
        self.burger.price = Decimal("99.00")
        self.burger.name = "Deluxe Burger"
        self.burger.save()
        self.chips.delete()

        items = {item.item_name: item for item in OrderItem.objects.filter(order_id=order_id)}
        self.assertEqual(items["Burger"].price, Decimal("60.00"))
        self.assertIsNone(items["Chips"].menu_item_id)
        self.assertEqual(items["Chips"].price, Decimal("30.00"))
        self.assertEqual(Order.objects.get(pk=order_id).total_amount, Decimal("150.00"))

    def test_order_items_cannot_be_edited(self):
        order_id = self.place_order().json()["id"]
        item = OrderItem.objects.filter(order_id=order_id).first()
        item.quantity = 10
        with self.assertRaises(ValueError):
            item.save()

    def test_delivery_requires_an_address(self):
        response = self.place_order(delivery_address="")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "delivery_address")

    def test_collection_does_not_need_an_address(self):
        response = self.place_order(order_type="collection", delivery_address="")
        self.assertEqual(response.status_code, 201)

    def test_items_must_belong_to_the_restaurant(self):
        other = Restaurant.objects.create(owner=self.stranger, name="Other Place")
        foreign = MenuItem.objects.create(restaurant=other, name="Pizza", price=Decimal("90.00"))
        response = self.place_order(items=[{"menu_item_id": str(foreign.id), "quantity": 1}])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["reason"], "MenuItemUnavailable")
        self.assertFalse(Order.objects.exists())

    def test_unavailable_item_is_rejected(self):
        self.chips.is_available = False
        self.chips.save()
        response = self.place_order()
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Order.objects.exists())


class OrderStatusApiTests(OrderApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.order_id = self.place_order().json()["id"]

    def test_restaurant_accepts_order(self):
        response = self.set_status(self.order_id, "confirmed")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "confirmed")

    def test_status_request_carries_order_id_and_new_status(self):
        response = self.owner_client.post(
            f"/api/orders/{self.order_id}/status/",
            data={"order_id": self.order_id, "new_status": "confirmed"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "confirmed")

    def test_legacy_status_field_is_still_accepted(self):
        response = self.owner_client.post(
            f"/api/orders/{self.order_id}/status/", data={"status": "confirmed"}, format="json"
        )
        self.assertEqual(response.status_code, 200)

    def test_status_request_without_target_is_rejected(self):
        response = self.owner_client.post(f"/api/orders/{self.order_id}/status/", data={}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_body_order_id_must_match_url(self):
        response = self.owner_client.post(
            f"/api/orders/{self.order_id}/status/",
            data={"order_id": "00000000-0000-0000-0000-000000000000", "new_status": "confirmed"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "order_id")
        self.assertEqual(Order.objects.get(pk=self.order_id).status, "pending")

    def test_pending_to_preparing_is_rejected(self):
        response = self.set_status(self.order_id, "preparing")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["reason"], "InvalidTransition")
        self.assertEqual(Order.objects.get(pk=self.order_id).status, "pending")

    def test_customer_cannot_accept_own_order(self):
        response = self.set_status(self.order_id, "confirmed", client=self.customer_client)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(Order.objects.get(pk=self.order_id).status, "pending")

    def test_preparing_is_blocked_until_payment_is_confirmed(self):
        self.set_status(self.order_id, "confirmed")
        response = self.set_status(self.order_id, "preparing")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(Order.objects.get(pk=self.order_id).status, "confirmed")

    def test_decline_is_terminal(self):
        self.assertEqual(self.set_status(self.order_id, "cancelled").status_code, 200)
        response = self.set_status(self.order_id, "confirmed")
        self.assertEqual(response.status_code, 409)

    def test_stranger_cannot_see_or_change_order(self):
        stranger_client = APIClient()
        stranger_client.force_authenticate(self.stranger)
        self.assertEqual(stranger_client.get(f"/api/orders/{self.order_id}/").status_code, 403)
        self.assertEqual(self.set_status(self.order_id, "confirmed", client=stranger_client).status_code, 403)

    def test_unknown_order_returns_404(self):
        response = self.owner_client.get("/api/orders/00000000-0000-0000-0000-000000000000/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["reason"], "OrderNotFound")


class OrderConstraintTests(OrderApiTestCase):
    def test_database_refuses_unpaid_order_past_confirmed(self):
        order_id = self.place_order().json()["id"]
        for status in ("preparing", "ready", "out_for_delivery", "delivered"):
            with self.assertRaises(IntegrityError), transaction.atomic():
                Order.objects.filter(pk=order_id).update(status=status)
        self.assertEqual(Order.objects.get(pk=order_id).status, "pending")

    def test_database_refuses_paid_order_without_method(self):
        order_id = self.place_order().json()["id"]
        with self.assertRaises(IntegrityError), transaction.atomic():
            Order.objects.filter(pk=order_id).update(payment_confirmed=True)


class CashPaymentApiTests(OrderApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.order_id = self.place_order().json()["id"]

    def pay_cash(self):
        return self.customer_client.post(f"/api/orders/{self.order_id}/payment/cash/", format="json")

    def test_cash_scenario_runs_to_delivery_without_a_ledger_entry(self):
        self.set_status(self.order_id, "confirmed")

        response = self.pay_cash()
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "confirmed")
        self.assertEqual(payload["payment_method"], "cash")
        self.assertTrue(payload["payment_confirmed"])
        self.assertFalse(payload["awaiting_payment"])

        for status in ("preparing", "ready", "out_for_delivery", "delivered"):
            self.assertEqual(self.set_status(self.order_id, status).status_code, 200)

        self.assertFalse(PaymentAttempt.objects.filter(order_id=self.order_id).exists())
        self.assertEqual(Order.objects.get(pk=self.order_id).status, "delivered")

    def test_repeating_cash_confirmation_is_a_no_op(self):
        self.set_status(self.order_id, "confirmed")
        first = self.pay_cash()
        second = self.pay_cash()
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["updated_at"], first.json()["updated_at"])

    def test_cash_before_acceptance_is_rejected(self):
        response = self.pay_cash()
        self.assertEqual(response.status_code, 409)
        self.assertFalse(Order.objects.get(pk=self.order_id).payment_confirmed)

    def test_only_the_customer_can_choose_cash(self):
        self.set_status(self.order_id, "confirmed")
        response = self.owner_client.post(f"/api/orders/{self.order_id}/payment/cash/", format="json")
        self.assertEqual(response.status_code, 403)

    def test_awaiting_payment_reflects_a_pending_checkout(self):
        self.set_status(self.order_id, "confirmed")
        PaymentAttempt.objects.create(
            order_id=self.order_id,
            provider="dummy",
            provider_checkout_id="ch_dummy_pending",
            amount=15000,
            currency="ZAR",
            redirect_url="https://sandbox.payments.invalid/checkout/ch_dummy_pending",
        )
        payload = self.customer_client.get(f"/api/orders/{self.order_id}/").json()
        self.assertEqual(payload["status"], "confirmed")
        self.assertTrue(payload["awaiting_payment"])

        self.pay_cash()
        attempt = PaymentAttempt.objects.get(provider_checkout_id="ch_dummy_pending")
        self.assertEqual(attempt.status, PaymentAttempt.STATUS_FAILED)
        self.assertEqual(attempt.failure_reason, "superseded_by_cash")
        self.assertFalse(self.customer_client.get(f"/api/orders/{self.order_id}/").json()["awaiting_payment"])
