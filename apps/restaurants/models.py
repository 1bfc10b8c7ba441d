"""
Restaurants, their menus and their payment-provider credentials.

Menu items are only referenced by orders at creation time; orders keep their
own snapshot of name and price.
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models


class Restaurant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="restaurants",
    )
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["owner", "is_active"], name="restaurant_owner_active_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    def is_owned_by(self, user) -> bool:
        return getattr(user, "id", None) is not None and self.owner_id == user.id


class MenuItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(Restaurant, on_delete=models.CASCADE, related_name="menu_items")
    name = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    is_available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["restaurant", "is_available"], name="menu_item_available_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.price})"


class RestaurantPaymentCredentials(models.Model):
    """Provider keys for one restaurant. The secret never leaves the server."""

    restaurant = models.OneToOneField(
        Restaurant,
        on_delete=models.CASCADE,
        related_name="payment_credentials",
    )
    public_key = models.CharField(max_length=200, blank=True, default="")
    secret_key_encrypted = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "Restaurant payment credentials"

    def __str__(self) -> str:
        return f"RestaurantPaymentCredentials(restaurant_id={self.restaurant_id})"

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key_encrypted)
