from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from apps.orders.domain.errors import OrderValidationError
from apps.orders.domain.state_machine import OrderType

MAX_ITEM_QUANTITY = 50
MAX_LINES_PER_ORDER = 100
CENT = Decimal("0.01")


def validate_order_type(raw: str) -> OrderType:
    try:
        return OrderType((raw or "").strip().lower())
    except ValueError as exc:
        raise OrderValidationError("Order type must be delivery or collection.", field="order_type") from exc


def validate_delivery_address(*, order_type: OrderType, raw: str) -> str:
    address = (raw or "").strip()
    if order_type == OrderType.DELIVERY and not address:
        raise OrderValidationError("A delivery address is required for delivery orders.", field="delivery_address")
    if len(address) > 500:
        raise OrderValidationError("Delivery address must be 500 characters or fewer.", field="delivery_address")
    return address


def validate_quantity(quantity: int) -> int:
    if quantity < 1 or quantity > MAX_ITEM_QUANTITY:
        raise OrderValidationError(f"Quantity must be between 1 and {MAX_ITEM_QUANTITY}.", field="items")
    return quantity


def line_total(*, price: Decimal, quantity: int) -> Decimal:
    return (price * quantity).quantize(CENT, rounding=ROUND_HALF_UP)


def order_total(lines: list[tuple[Decimal, int]]) -> Decimal:
    total = sum((line_total(price=price, quantity=qty) for price, qty in lines), Decimal("0.00"))
    if total <= 0:
        raise OrderValidationError("Order total must be greater than zero.", field="items")
    return total
