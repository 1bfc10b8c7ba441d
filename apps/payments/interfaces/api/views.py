from __future__ import annotations

import logging

from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.orders.domain.errors import OrderDomainError
from apps.payments.application.use_cases.create_checkout import CreateCheckoutCommand, CreateCheckoutUseCase
from apps.payments.application.use_cases.handle_webhook_event import (
    HandleWebhookEventCommand,
    HandleWebhookEventUseCase,
)
from apps.payments.application.use_cases.reconcile_payment import (
    ReconcilePaymentCommand,
    ReconcilePaymentUseCase,
)
from apps.payments.domain.errors import (
    PaymentDomainError,
    WebhookPayloadError,
    WebhookSecretMissingError,
    WebhookSignatureError,
)
from apps.payments.interfaces.api.serializers import CheckoutInputSerializer, VerifyPaymentInputSerializer
from apps.restaurants.domain.errors import RestaurantDomainError

logger = logging.getLogger("foodhub.payments")

_HTTP_STATUS_BY_REASON = {
    "OrderNotFound": status.HTTP_404_NOT_FOUND,
    "Unauthorized": status.HTTP_403_FORBIDDEN,
    "InvalidTransition": status.HTTP_409_CONFLICT,
    "PaymentAlreadyConfirmed": status.HTTP_409_CONFLICT,
    "CredentialsMissing": status.HTTP_400_BAD_REQUEST,
    "InvalidAmount": status.HTTP_400_BAD_REQUEST,
    "ProviderError": status.HTTP_502_BAD_GATEWAY,
    "ProviderUnavailable": status.HTTP_502_BAD_GATEWAY,
}


def _error(*, message: str, reason: str, http_status: int = 400) -> Response:
    return Response({"error": message, "reason": reason}, status=http_status)


def _domain_error(exc: ValueError) -> Response:
    reason = getattr(exc, "reason", "ValidationError")
    return _error(
        message=str(exc),
        reason=reason,
        http_status=_HTTP_STATUS_BY_REASON.get(reason, status.HTTP_400_BAD_REQUEST),
    )


class CheckoutAPI(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    def post(self, request):
        serializer = CheckoutInputSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", reason="ValidationError")
        data = serializer.validated_data

        try:
            result = CreateCheckoutUseCase.execute(
                CreateCheckoutCommand(
                    order_id=data["order_id"],
                    user=request.user,
                    success_url=data["successUrl"],
                    cancel_url=data["cancelUrl"],
                    failure_url=data["failureUrl"],
                )
            )
        except (OrderDomainError, RestaurantDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)
        return Response({"checkoutUrl": result.checkout_url, "checkoutId": result.checkout_id})


class VerifyPaymentAPI(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    def post(self, request):
        serializer = VerifyPaymentInputSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", reason="ValidationError")

        try:
            result = ReconcilePaymentUseCase.execute(
                ReconcilePaymentCommand(order_id=serializer.validated_data["order_id"], user=request.user)
            )
        except (OrderDomainError, RestaurantDomainError, PaymentDomainError) as exc:
            return _domain_error(exc)

        payload = {
            "confirmed": result.confirmed,
            "reason": result.reason,
            "checkoutId": result.checkout_id,
            "checkoutStatus": result.checkout_status,
            "paymentId": result.payment_id,
            "paymentStatus": result.payment_status,
        }
        return Response({key: value for key, value in payload.items() if value is not None})


class PaymentWebhookAPI(APIView):
    """
    Provider callback. Authenticated by the body signature alone, so DRF auth is
    off and the raw bytes are read before anything parses them.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        header = getattr(settings, "PAYMENT_WEBHOOK_SIGNATURE_HEADER", "X-Webhook-Signature")
        try:
            result = HandleWebhookEventUseCase.execute(
                HandleWebhookEventCommand(raw_body=request.body, signature=request.headers.get(header))
            )
        except WebhookSecretMissingError as exc:
            logger.error("webhook_secret_missing")
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_503_SERVICE_UNAVAILABLE)
        except WebhookSignatureError as exc:
            logger.warning(
                "webhook_signature_rejected",
                extra={"remote_addr": request.META.get("REMOTE_ADDR"), "error": str(exc)},
            )
            return _error(message="Invalid signature.", reason=exc.reason, http_status=status.HTTP_401_UNAUTHORIZED)
        except WebhookPayloadError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_400_BAD_REQUEST)
        except Exception:
            logger.exception("webhook_processing_failed")
            return _error(
                message="Webhook processing failed.",
                reason="InternalError",
                http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({"received": True, "status": result.status})
