from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.orders.application.services.order_access import OrderAccessService
from apps.orders.application.use_cases.confirm_cash_payment import (
    ConfirmCashPaymentCommand,
    ConfirmCashPaymentUseCase,
)
from apps.orders.application.use_cases.place_order import OrderLine, PlaceOrderCommand, PlaceOrderUseCase
from apps.orders.application.use_cases.update_order_status import (
    UpdateOrderStatusCommand,
    UpdateOrderStatusUseCase,
)
from apps.orders.domain.errors import (
    InvalidTransitionError,
    OrderAccessDeniedError,
    OrderDomainError,
    OrderNotFoundError,
    OrderValidationError,
    PaymentAlreadyConfirmedError,
)
from apps.orders.interfaces.api.serializers import (
    OrderSerializer,
    PlaceOrderInputSerializer,
    UpdateOrderStatusInputSerializer,
)


def _error(*, message: str, reason: str, field: str | None = None, http_status: int = 400) -> Response:
    payload: dict = {"error": message, "reason": reason}
    if field:
        payload["field"] = field
    return Response(payload, status=http_status)


def _order_error(exc: OrderDomainError) -> Response:
    if isinstance(exc, OrderNotFoundError):
        return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, OrderAccessDeniedError):
        return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, (InvalidTransitionError, PaymentAlreadyConfirmedError)):
        return _error(message=str(exc), reason=exc.reason, http_status=status.HTTP_409_CONFLICT)
    if isinstance(exc, OrderValidationError):
        return _error(message=str(exc), reason=exc.reason, field=exc.field)
    return _error(message=str(exc), reason=exc.reason)


def _load_order(order_id, user):
    return OrderSerializer(OrderAccessService.get_for_participant(order_id=order_id, user=user)).data


class PlaceOrderAPI(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders"

    def post(self, request):
        serializer = PlaceOrderInputSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", reason="ValidationError")
        data = serializer.validated_data

        try:
            order = PlaceOrderUseCase.execute(
                PlaceOrderCommand(
                    customer=request.user,
                    restaurant_id=data["restaurant_id"],
                    order_type=data["order_type"],
                    lines=[OrderLine(menu_item_id=line["menu_item_id"], quantity=line["quantity"]) for line in data["items"]],
                    delivery_address=data["delivery_address"],
                    notes=data["notes"],
                )
            )
        except OrderDomainError as exc:
            return _order_error(exc)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailAPI(APIView):
    def get(self, request, order_id):
        try:
            payload = _load_order(order_id, request.user)
        except OrderDomainError as exc:
            return _order_error(exc)
        return Response(payload)


class UpdateOrderStatusAPI(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders"

    def post(self, request, order_id):
        serializer = UpdateOrderStatusInputSerializer(data=request.data)
        if not serializer.is_valid():
            return _error(message="Invalid input.", reason="ValidationError")
        body_order_id = serializer.validated_data.get("order_id")
        if body_order_id and body_order_id != order_id:
            return _error(message="order_id does not match the URL.", reason="ValidationError", field="order_id")

        try:
            order = UpdateOrderStatusUseCase.execute(
                UpdateOrderStatusCommand(
                    order_id=order_id,
                    user=request.user,
                    new_status=serializer.validated_data["new_status"],
                )
            )
        except OrderDomainError as exc:
            return _order_error(exc)
        return Response(OrderSerializer(order).data)


class ConfirmCashPaymentAPI(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    def post(self, request, order_id):
        try:
            order = ConfirmCashPaymentUseCase.execute(ConfirmCashPaymentCommand(order_id=order_id, user=request.user))
        except OrderDomainError as exc:
            return _order_error(exc)
        return Response(OrderSerializer(order).data)
