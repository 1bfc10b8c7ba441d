from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from django.db import transaction

from apps.restaurants.application.services.crypto import CredentialCrypto
from apps.restaurants.domain.errors import (
    PaymentCredentialsMissingError,
    RestaurantAccessDeniedError,
    RestaurantNotFoundError,
)
from apps.restaurants.domain.policies import mask_key, normalize_public_key, normalize_secret_key
from apps.restaurants.models import Restaurant, RestaurantPaymentCredentials


@dataclass(frozen=True)
class PaymentCredentialsSummary:
    """What the owner is allowed to see about stored credentials."""

    configured: bool
    public_key: str
    secret_key_hint: str
    updated_at: datetime | None


class RestaurantCredentialsService:
    @staticmethod
    def get_secret_key(*, restaurant_id) -> str:
        creds = RestaurantPaymentCredentials.objects.filter(restaurant_id=restaurant_id).first()
        if not creds or not creds.is_configured:
            raise PaymentCredentialsMissingError()
        payload = CredentialCrypto.decrypt_json(creds.secret_key_encrypted)
        secret = (payload.get("secret_key") or "").strip()
        if not secret:
            raise PaymentCredentialsMissingError()
        return secret

    @staticmethod
    def summary(*, restaurant: Restaurant, user) -> PaymentCredentialsSummary:
        RestaurantCredentialsService._ensure_owner(restaurant=restaurant, user=user)
        creds = RestaurantPaymentCredentials.objects.filter(restaurant=restaurant).first()
        return RestaurantCredentialsService._summarize(creds)

    @staticmethod
    @transaction.atomic
    def save(*, restaurant: Restaurant, user, secret_key: str, public_key: str = "") -> PaymentCredentialsSummary:
        RestaurantCredentialsService._ensure_owner(restaurant=restaurant, user=user)
        secret = normalize_secret_key(secret_key)
        public = normalize_public_key(public_key)
        creds, _ = RestaurantPaymentCredentials.objects.select_for_update().get_or_create(restaurant=restaurant)
        creds.secret_key_encrypted = CredentialCrypto.encrypt_json({"secret_key": secret})
        creds.public_key = public
        creds.save(update_fields=["secret_key_encrypted", "public_key", "updated_at"])
        return RestaurantCredentialsService._summarize(creds)

    @staticmethod
    @transaction.atomic
    def clear(*, restaurant: Restaurant, user) -> PaymentCredentialsSummary:
        RestaurantCredentialsService._ensure_owner(restaurant=restaurant, user=user)
        RestaurantPaymentCredentials.objects.filter(restaurant=restaurant).delete()
        return RestaurantCredentialsService._summarize(None)

    @staticmethod
    def get_restaurant(*, restaurant_id) -> Restaurant:
        restaurant = Restaurant.objects.filter(id=restaurant_id).first()
        if not restaurant:
            raise RestaurantNotFoundError("Restaurant not found.")
        return restaurant

    @staticmethod
    def _ensure_owner(*, restaurant: Restaurant, user) -> None:
        if not restaurant.is_owned_by(user):
            raise RestaurantAccessDeniedError("Only the restaurant owner can manage payment settings.")

    @staticmethod
    def _summarize(creds: RestaurantPaymentCredentials | None) -> PaymentCredentialsSummary:
        if not creds or not creds.is_configured:
            return PaymentCredentialsSummary(configured=False, public_key="", secret_key_hint="", updated_at=None)
        secret = (CredentialCrypto.decrypt_json(creds.secret_key_encrypted).get("secret_key") or "")
        return PaymentCredentialsSummary(
            configured=True,
            public_key=creds.public_key,
            secret_key_hint=mask_key(secret),
            updated_at=creds.updated_at,
        )
