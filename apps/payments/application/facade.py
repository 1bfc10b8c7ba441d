from __future__ import annotations

from django.conf import settings

from apps.payments.domain.errors import UnknownProviderError
from apps.payments.domain.ports import PaymentGatewayPort
from apps.payments.infrastructure.gateways.dummy_gateway import DummyGateway
from apps.payments.infrastructure.gateways.yoco_gateway import YocoGateway


class PaymentGatewayFacade:
    _registry: dict[str, PaymentGatewayPort] = {
        YocoGateway.code: YocoGateway(),
        DummyGateway.code: DummyGateway(),
    }

    @classmethod
    def get(cls, provider_code: str | None = None) -> PaymentGatewayPort:
        key = (provider_code or getattr(settings, "PAYMENT_PROVIDER", "") or "").strip().lower()
        if key not in cls._registry:
            raise UnknownProviderError(f"Unknown payment provider: {key or provider_code!r}")
        return cls._registry[key]
