from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.db import transaction

from apps.orders.domain.errors import MenuItemUnavailableError, OrderValidationError
from apps.orders.domain.policies import (
    MAX_LINES_PER_ORDER,
    order_total,
    validate_delivery_address,
    validate_order_type,
    validate_quantity,
)
from apps.orders.models import Order, OrderItem
from apps.restaurants.models import MenuItem, Restaurant

logger = logging.getLogger("foodhub.orders")


@dataclass(frozen=True)
class OrderLine:
    menu_item_id: object
    quantity: int


@dataclass(frozen=True)
class PlaceOrderCommand:
    customer: object
    restaurant_id: object
    order_type: str
    lines: list[OrderLine] = field(default_factory=list)
    delivery_address: str = ""
    notes: str = ""


class PlaceOrderUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: PlaceOrderCommand) -> Order:
        order_type = validate_order_type(cmd.order_type)
        address = validate_delivery_address(order_type=order_type, raw=cmd.delivery_address)

        if not cmd.lines:
            raise OrderValidationError("An order needs at least one item.", field="items")
        if len(cmd.lines) > MAX_LINES_PER_ORDER:
            raise OrderValidationError("Too many items in one order.", field="items")

        restaurant = Restaurant.objects.filter(id=cmd.restaurant_id, is_active=True).first()
        if not restaurant:
            raise OrderValidationError("Restaurant is not accepting orders.", field="restaurant_id")

        wanted_ids = {line.menu_item_id for line in cmd.lines}
        menu = {
            item.id: item
            for item in MenuItem.objects.filter(id__in=wanted_ids, restaurant=restaurant, is_available=True)
        }

        snapshot: list[tuple[MenuItem, int]] = []
        for line in cmd.lines:
            item = menu.get(line.menu_item_id)
            if item is None:
                raise MenuItemUnavailableError(
                    f"Menu item {line.menu_item_id} is not available from this restaurant.",
                    field="items",
                )
            snapshot.append((item, validate_quantity(int(line.quantity))))

        total = order_total([(item.price, qty) for item, qty in snapshot])
        order = Order.objects.create(
            restaurant=restaurant,
            customer=cmd.customer,
            order_type=order_type.value,
            total_amount=total,
            delivery_address=address,
            notes=(cmd.notes or "").strip(),
        )
        OrderItem.objects.bulk_create(
            [
                OrderItem(order=order, menu_item=item, item_name=item.name, price=item.price, quantity=qty)
                for item, qty in snapshot
            ]
        )
        logger.info(
            "order_placed",
            extra={"order_id": str(order.id), "restaurant_id": str(restaurant.id), "total_amount": str(total)},
        )
        return order
