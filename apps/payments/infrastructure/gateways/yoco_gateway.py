from __future__ import annotations

import asyncio
import json
import logging

import aiohttp
from asgiref.sync import async_to_sync
from django.conf import settings

from apps.payments.domain.errors import ProviderError, ProviderUnavailableError
from apps.payments.domain.ports import CheckoutSession, CheckoutState, PaymentState

logger = logging.getLogger("foodhub.payments")


class YocoGateway:
    """Hosted-checkout adapter for Yoco, authenticated per restaurant with its secret key."""

    code = "yoco"
    name = "Yoco"

    def __init__(self, *, base_url: str | None = None, timeout_seconds: int | None = None):
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

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
        body = {
            "amount": amount,
            "currency": currency,
            "successUrl": success_url,
            "cancelUrl": cancel_url,
            "failureUrl": failure_url,
            "metadata": metadata,
        }
        data = async_to_sync(self._request)(
            "POST",
            "/api/checkouts",
            secret_key=secret_key,
            payload=body,
            extra_headers={"Idempotency-Key": idempotency_key},
        )
        checkout_id = str(data.get("id") or "")
        redirect_url = str(data.get("redirectUrl") or "")
        if not checkout_id or not redirect_url:
            raise ProviderError("Provider response is missing the checkout id or redirect URL.")
        return CheckoutSession(checkout_id=checkout_id, redirect_url=redirect_url)

    def fetch_checkout(self, *, secret_key: str, checkout_id: str) -> CheckoutState:
        data = async_to_sync(self._request)("GET", f"/api/checkouts/{checkout_id}", secret_key=secret_key)
        return CheckoutState(
            checkout_id=checkout_id,
            status=data.get("status"),
            payment_id=data.get("paymentId") or None,
        )

    def fetch_payment(self, *, secret_key: str, payment_id: str) -> PaymentState:
        data = async_to_sync(self._request)("GET", f"/api/v1/payments/{payment_id}", secret_key=secret_key)
        return PaymentState(payment_id=payment_id, status=data.get("status"))

    def _url(self, path: str) -> str:
        base = self._base_url or getattr(settings, "PAYMENT_PROVIDER_BASE_URL", "https://payments.yoco.com")
        return base.rstrip("/") + path

    async def _request(
        self,
        method: str,
        path: str,
        *,
        secret_key: str,
        payload: dict | None = None,
        extra_headers: dict | None = None,
    ) -> dict:
        timeout = aiohttp.ClientTimeout(
            total=self._timeout_seconds or getattr(settings, "PAYMENT_PROVIDER_TIMEOUT_SECONDS", 10)
        )
        headers = {
            "Authorization": f"Bearer {secret_key}",
            "Content-Type": "application/json",
            **(extra_headers or {}),
        }
        url = self._url(path)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, json=payload, headers=headers) as response:
                    text = await response.text()
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("provider_request_failed", extra={"provider": self.code, "path": path, "error": str(exc)})
            raise ProviderUnavailableError("Payment provider is unreachable.") from exc

        if status >= 500 or status == 429:
            logger.warning("provider_unavailable", extra={"provider": self.code, "path": path, "status_code": status})
            raise ProviderUnavailableError(f"Payment provider returned {status}.", status_code=status)
        if status >= 400:
            logger.error(
                "provider_rejected_request",
                extra={"provider": self.code, "path": path, "status_code": status, "body": text[:500]},
            )
            raise ProviderError(f"Payment provider rejected the request ({status}).", status_code=status)

        try:
            data = json.loads(text) if text else {}
        except json.JSONDecodeError as exc:
            raise ProviderError("Payment provider returned malformed JSON.", status_code=status) from exc
        if not isinstance(data, dict):
            raise ProviderError("Payment provider returned an unexpected response.", status_code=status)
        return data
