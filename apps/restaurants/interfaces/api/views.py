from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.restaurants.application.services.credentials_service import (
    PaymentCredentialsSummary,
    RestaurantCredentialsService,
)
from apps.restaurants.domain.errors import (
    PaymentCredentialsInvalidError,
    RestaurantAccessDeniedError,
    RestaurantNotFoundError,
)
from apps.restaurants.interfaces.api.serializers import PaymentCredentialsSerializer


def _error(*, message: str, reason: str, field: str | None = None, http_status: int = 400) -> Response:
    payload: dict = {"error": message, "reason": reason}
    if field:
        payload["field"] = field
    return Response(payload, status=http_status)


def _summary_payload(summary: PaymentCredentialsSummary) -> dict:
    return {
        "configured": summary.configured,
        "public_key": summary.public_key,
        "secret_key_hint": summary.secret_key_hint,
        "updated_at": summary.updated_at.isoformat() if summary.updated_at else None,
    }


class RestaurantPaymentCredentialsAPI(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    def get(self, request, restaurant_id):
        try:
            restaurant = RestaurantCredentialsService.get_restaurant(restaurant_id=restaurant_id)
            summary = RestaurantCredentialsService.summary(restaurant=restaurant, user=request.user)
        except RestaurantNotFoundError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_404_NOT_FOUND)
        except RestaurantAccessDeniedError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_403_FORBIDDEN)
        return Response(_summary_payload(summary))

    def put(self, request, restaurant_id):
        serializer = PaymentCredentialsSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", reason="ValidationError")

        try:
            restaurant = RestaurantCredentialsService.get_restaurant(restaurant_id=restaurant_id)
            summary = RestaurantCredentialsService.save(
                restaurant=restaurant,
                user=request.user,
                secret_key=serializer.validated_data["secret_key"],
                public_key=serializer.validated_data.get("public_key", ""),
            )
        except RestaurantNotFoundError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_404_NOT_FOUND)
        except RestaurantAccessDeniedError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_403_FORBIDDEN)
        except PaymentCredentialsInvalidError as exc:
            return _error(message=str(exc), reason=exc.reason, field=exc.field)
        return Response(_summary_payload(summary))

    def delete(self, request, restaurant_id):
        try:
            restaurant = RestaurantCredentialsService.get_restaurant(restaurant_id=restaurant_id)
            summary = RestaurantCredentialsService.clear(restaurant=restaurant, user=request.user)
        except RestaurantNotFoundError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_404_NOT_FOUND)
        except RestaurantAccessDeniedError as exc:
            return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_403_FORBIDDEN)
        return Response(_summary_payload(summary))
