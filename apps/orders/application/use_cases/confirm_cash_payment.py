from __future__ import annotations

from dataclasses import dataclass

from django.db import transaction

from apps.orders.application.services.order_access import OrderAccessService
from apps.orders.domain.state_machine import OrderStateMachine, PaymentMethod
from apps.orders.models import Order
from apps.payments.application.services.confirmation import PaymentConfirmationService


@dataclass(frozen=True)
class ConfirmCashPaymentCommand:
    order_id: object
    user: object


class ConfirmCashPaymentUseCase:
    """Customer chooses to pay cash; the order is confirmed without any ledger entry."""

    @staticmethod
    @transaction.atomic
    def execute(cmd: ConfirmCashPaymentCommand) -> Order:
        order = OrderAccessService.get_for_customer(order_id=cmd.order_id, user=cmd.user, for_update=True)
        if order.payment_confirmed and order.payment_method == PaymentMethod.CASH:
            return order
        OrderStateMachine.ensure_payment_selectable(status=order.status, payment_confirmed=order.payment_confirmed)
        PaymentConfirmationService.confirm_cash(order_id=order.id)
        order.refresh_from_db()
        return order
