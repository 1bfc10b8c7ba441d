"""
Orders and their item snapshots.

`status` follows `apps.orders.domain.state_machine`; payment is tracked
separately by `payment_method` and `payment_confirmed`, which only the
payment confirmation service flips.
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q

from apps.orders.domain.state_machine import PAYMENT_REQUIRED_STATUSES, OrderStatus, OrderType, PaymentMethod


class Order(models.Model):
    STATUS_CHOICES = [(s.value, s.value.replace("_", " ").title()) for s in OrderStatus]
    ORDER_TYPE_CHOICES = [(t.value, t.value.title()) for t in OrderType]
    PAYMENT_METHOD_CHOICES = [(m.value, m.value.title()) for m in PaymentMethod]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey("restaurants.Restaurant", on_delete=models.PROTECT, related_name="orders")
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=OrderStatus.PENDING.value)
    order_type = models.CharField(max_length=20, choices=ORDER_TYPE_CHOICES, default=OrderType.DELIVERY.value)
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES, blank=True, default="")
    payment_confirmed = models.BooleanField(default=False)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    delivery_address = models.CharField(max_length=500, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["restaurant", "status"], name="order_restaurant_status_idx"),
            models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(payment_confirmed=False) | Q(payment_method__in=[m.value for m in PaymentMethod]),
                name="order_confirmed_payment_has_method",
            ),
            models.CheckConstraint(
                condition=Q(payment_confirmed=True)
                | ~Q(status__in=sorted(s.value for s in PAYMENT_REQUIRED_STATUSES)),
                name="order_preparing_requires_payment",
            ),
        ]

    def __str__(self) -> str:
        return f"Order {self.id} ({self.status})"

    def is_customer(self, user) -> bool:
        return getattr(user, "id", None) is not None and self.customer_id == user.id

    def is_restaurant_owner(self, user) -> bool:
        return getattr(user, "id", None) is not None and self.restaurant.owner_id == user.id


class OrderItem(models.Model):
    """Snapshot of a menu line at order time; never edited afterwards."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(
        "restaurants.MenuItem",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    item_name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField()

    def __str__(self) -> str:
        return f"{self.item_name} x{self.quantity}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Order items are immutable once created.")
        super().save(*args, **kwargs)
