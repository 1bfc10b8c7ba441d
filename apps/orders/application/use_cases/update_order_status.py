from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from apps.orders.application.services.order_access import OrderAccessService
from apps.orders.domain.errors import InvalidTransitionError
from apps.orders.domain.state_machine import OrderStateMachine, parse_status
from apps.orders.models import Order

logger = logging.getLogger("foodhub.orders")


@dataclass(frozen=True)
class UpdateOrderStatusCommand:
    order_id: object
    user: object
    new_status: str


class UpdateOrderStatusUseCase:
    @staticmethod
    @transaction.atomic
    def execute(cmd: UpdateOrderStatusCommand) -> Order:
        order = OrderAccessService.get(order_id=cmd.order_id, for_update=True)
        actor = OrderAccessService.resolve_actor(order=order, user=cmd.user)
        target = parse_status(cmd.new_status)
        rule = OrderStateMachine.transition(
            current=order.status,
            target=target,
            actor=actor,
            payment_confirmed=order.payment_confirmed,
        )

        guard = {"id": order.id, "status": order.status}
        if rule.requires_payment:
            guard["payment_confirmed"] = True
        updated = Order.objects.filter(**guard).update(status=target.value, updated_at=timezone.now())
        if updated != 1:
            raise InvalidTransitionError(
                "Order changed while updating; reload and try again.",
                current=order.status,
                target=target.value,
            )

        logger.info(
            "order_status_changed",
            extra={
                "order_id": str(order.id),
                "from_status": order.status,
                "to_status": target.value,
                "actor": actor.value,
            },
        )
        order.refresh_from_db()
        return order
