from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError

from apps.orders.domain.errors import OrderAccessDeniedError, OrderNotFoundError
from apps.orders.domain.state_machine import Actor
from apps.orders.models import Order


class OrderAccessService:
    """Loads orders on behalf of a user and resolves which actor that user is."""

    @staticmethod
    def get(*, order_id, for_update: bool = False) -> Order:
        qs = Order.objects.select_related("restaurant")
        if for_update:
            qs = qs.select_for_update(of=("self",))
        try:
            order = qs.filter(id=order_id).first()
        except (DjangoValidationError, ValueError):
            order = None
        if not order:
            raise OrderNotFoundError()
        return order

    @staticmethod
    def resolve_actor(*, order: Order, user) -> Actor:
        if order.is_restaurant_owner(user):
            return Actor.RESTAURANT
        if order.is_customer(user):
            return Actor.CUSTOMER
        raise OrderAccessDeniedError("You do not have access to this order.")

    @staticmethod
    def get_for_customer(*, order_id, user, for_update: bool = False) -> Order:
        order = OrderAccessService.get(order_id=order_id, for_update=for_update)
        if not order.is_customer(user):
            raise OrderAccessDeniedError("Only the customer who placed this order can do that.")
        return order

    @staticmethod
    def get_for_participant(*, order_id, user) -> Order:
        order = OrderAccessService.get(order_id=order_id)
        OrderAccessService.resolve_actor(order=order, user=user)
        return order
