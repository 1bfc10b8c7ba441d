from __future__ import annotations

from decimal import Decimal

from cryptography.fernet import Fernet
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from apps.restaurants.application.services.credentials_service import RestaurantCredentialsService
from apps.restaurants.application.services.crypto import CredentialCrypto
from apps.restaurants.domain.errors import PaymentCredentialsMissingError
from apps.restaurants.domain.policies import mask_key
from apps.restaurants.models import MenuItem, Restaurant, RestaurantPaymentCredentials


class CredentialCryptoTests(TestCase):
    def test_encrypted_token_is_prefixed_and_decrypts(self):
        token = CredentialCrypto.encrypt_json({"secret_key": "sk_test_abcdef123456"})
        self.assertTrue(token.startswith("fernet:"))
        self.assertNotIn("sk_test_abcdef123456", token)
        self.assertEqual(CredentialCrypto.decrypt_json(token), {"secret_key": "sk_test_abcdef123456"})

    def test_empty_token_decrypts_to_empty_dict(self):
        self.assertEqual(CredentialCrypto.decrypt_json(""), {})

    def test_token_from_another_key_is_rejected(self):
        token = CredentialCrypto.encrypt_json({"secret_key": "sk_test_abcdef123456"})
        with override_settings(PAYMENT_CREDENTIALS_ENCRYPTION_KEY=Fernet.generate_key().decode("ascii")):
            with self.assertRaises(RuntimeError):
                CredentialCrypto.decrypt_json(token)

    def test_mask_key_keeps_only_the_edges(self):
        self.assertEqual(mask_key("sk_test_abcdef123456"), "sk_t************3456")
        self.assertEqual(mask_key("short"), "*****")


class RestaurantPaymentCredentialsApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        cache.clear()
        User = get_user_model()
        self.owner = User.objects.create_user(username="owner", password="StrongPass12345!")
        self.stranger = User.objects.create_user(username="stranger", password="StrongPass12345!")
        self.restaurant = Restaurant.objects.create(owner=self.owner, name="Mama's Kitchen", phone="0210000000")
        MenuItem.objects.create(restaurant=self.restaurant, name="Bunny chow", price=Decimal("75.00"))
        self.url = f"/api/restaurants/{self.restaurant.id}/payment-credentials/"
        self.client = APIClient()

    def test_owner_saves_credentials_and_secret_is_never_returned(self):
        self.client.force_authenticate(self.owner)
        response = self.client.put(
            self.url,
            data={"secret_key": "sk_test_abcdef123456", "public_key": "pk_test_abcdef123456"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["configured"])
        self.assertEqual(payload["public_key"], "pk_test_abcdef123456")
        self.assertNotIn("secret_key", payload)
        self.assertNotIn(b"sk_test_abcdef123456", response.content)

        stored = RestaurantPaymentCredentials.objects.get(restaurant=self.restaurant)
        self.assertNotIn("sk_test_abcdef123456", stored.secret_key_encrypted)
        self.assertEqual(
            RestaurantCredentialsService.get_secret_key(restaurant_id=self.restaurant.id),
            "sk_test_abcdef123456",
        )

        summary = self.client.get(self.url)
        self.assertEqual(summary.status_code, 200)
        self.assertTrue(summary.json()["configured"])
        self.assertNotIn(b"sk_test_abcdef123456", summary.content)

    def test_unconfigured_restaurant_reports_not_configured(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["configured"])

    def test_only_the_owner_can_read_or_write(self):
        self.client.force_authenticate(self.stranger)
        self.assertEqual(self.client.get(self.url).status_code, 403)
        response = self.client.put(self.url, data={"secret_key": "sk_test_abcdef123456"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["reason"], "Unauthorized")
        self.assertFalse(RestaurantPaymentCredentials.objects.exists())

    def test_anonymous_request_is_rejected(self):
        self.assertEqual(self.client.get(self.url).status_code, 401)

    def test_malformed_secret_key_is_rejected(self):
        self.client.force_authenticate(self.owner)
        response = self.client.put(self.url, data={"secret_key": "bad key!"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "secret_key")

    def test_unknown_restaurant_returns_404(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get("/api/restaurants/00000000-0000-0000-0000-000000000000/payment-credentials/")
        self.assertEqual(response.status_code, 404)

    def test_delete_clears_credentials(self):
        RestaurantCredentialsService.save(
            restaurant=self.restaurant, user=self.owner, secret_key="sk_test_abcdef123456"
        )
        self.client.force_authenticate(self.owner)
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["configured"])
        with self.assertRaises(PaymentCredentialsMissingError):
            RestaurantCredentialsService.get_secret_key(restaurant_id=self.restaurant.id)
