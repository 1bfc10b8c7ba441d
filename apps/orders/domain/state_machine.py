from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from apps.orders.domain.errors import (
    InvalidTransitionError,
    PaymentAlreadyConfirmedError,
    PaymentSelectionNotAllowedError,
    TransitionNotPermittedError,
)


class OrderStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(StrEnum):
    DELIVERY = "delivery"
    COLLECTION = "collection"


class PaymentMethod(StrEnum):
    CASH = "cash"
    ONLINE = "online"


class Actor(StrEnum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    SYSTEM = "system"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Statuses that may only be held by an order whose payment is confirmed.
PAYMENT_REQUIRED_STATUSES = frozenset(
    {
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
    }
)


@dataclass(frozen=True)
class Transition:
    actors: frozenset[Actor]
    requires_payment: bool = False


_RESTAURANT = frozenset({Actor.RESTAURANT})
_RESTAURANT_OR_SYSTEM = frozenset({Actor.RESTAURANT, Actor.SYSTEM})

TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], Transition] = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED): Transition(actors=_RESTAURANT),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): Transition(actors=_RESTAURANT_OR_SYSTEM),
    (OrderStatus.CONFIRMED, OrderStatus.PREPARING): Transition(actors=_RESTAURANT, requires_payment=True),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): Transition(actors=_RESTAURANT_OR_SYSTEM),
    (OrderStatus.PREPARING, OrderStatus.READY): Transition(actors=_RESTAURANT),
    (OrderStatus.PREPARING, OrderStatus.CANCELLED): Transition(actors=_RESTAURANT_OR_SYSTEM),
    (OrderStatus.READY, OrderStatus.OUT_FOR_DELIVERY): Transition(actors=_RESTAURANT),
    (OrderStatus.READY, OrderStatus.CANCELLED): Transition(actors=_RESTAURANT_OR_SYSTEM),
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED): Transition(actors=_RESTAURANT),
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED): Transition(actors=_RESTAURANT_OR_SYSTEM),
}


def parse_status(raw: str) -> OrderStatus:
    try:
        return OrderStatus((raw or "").strip().lower())
    except ValueError as exc:
        raise InvalidTransitionError(f"Unknown order status: {raw!r}.", target=raw) from exc


class OrderStateMachine:
    """
    Order lifecycle:

        pending -> confirmed -> preparing -> ready -> out_for_delivery -> delivered

    `cancelled` is reachable from every non-terminal status. Payment is tracked
    separately (`payment_confirmed`); an order only leaves `confirmed` for
    `preparing` once payment is confirmed.
    """

    @staticmethod
    def allowed_targets(current: str) -> list[OrderStatus]:
        current_status = OrderStatus(current)
        return [target for (source, target) in TRANSITIONS if source == current_status]

    @staticmethod
    def next_status(current: str) -> OrderStatus | None:
        """The forward (non-cancel) step from `current`, if any."""
        for target in OrderStateMachine.allowed_targets(current):
            if target != OrderStatus.CANCELLED:
                return target
        return None

    @staticmethod
    def transition(*, current: str, target: str, actor: Actor, payment_confirmed: bool) -> Transition:
        current_status = OrderStatus(current)
        target_status = parse_status(target)

        if current_status in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Order is {current_status.value}; no further changes are allowed.",
                current=current_status.value,
                target=target_status.value,
            )

        rule = TRANSITIONS.get((current_status, target_status))
        if rule is None:
            raise InvalidTransitionError(
                f"Cannot move an order from {current_status.value} to {target_status.value}.",
                current=current_status.value,
                target=target_status.value,
            )
        if actor not in rule.actors:
            raise TransitionNotPermittedError(
                f"A {actor.value} cannot move an order to {target_status.value}."
            )
        if rule.requires_payment and not payment_confirmed:
            raise InvalidTransitionError(
                "Payment must be confirmed before the order can be prepared.",
                current=current_status.value,
                target=target_status.value,
            )
        return rule

    @staticmethod
    def ensure_payment_selectable(*, status: str, payment_confirmed: bool) -> None:
        if payment_confirmed:
            raise PaymentAlreadyConfirmedError()
        if OrderStatus(status) != OrderStatus.CONFIRMED:
            raise PaymentSelectionNotAllowedError(
                "A payment method can only be chosen once the restaurant has accepted the order "
                "and before payment is confirmed.",
                current=str(status),
            )
