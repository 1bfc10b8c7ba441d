from __future__ import annotations


class OrderDomainError(ValueError):
    reason = "OrderError"


class OrderValidationError(OrderDomainError):
    reason = "ValidationError"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class OrderNotFoundError(OrderDomainError):
    reason = "OrderNotFound"

    def __init__(self, message: str = "Order not found."):
        super().__init__(message)


class OrderAccessDeniedError(OrderDomainError):
    reason = "Unauthorized"


class TransitionNotPermittedError(OrderAccessDeniedError):
    """The actor is not allowed to trigger this transition."""


class InvalidTransitionError(OrderDomainError):
    reason = "InvalidTransition"

    def __init__(self, message: str, *, current: str | None = None, target: str | None = None):
        super().__init__(message)
        self.current = current
        self.target = target


class PaymentSelectionNotAllowedError(InvalidTransitionError):
    pass


class PaymentAlreadyConfirmedError(OrderDomainError):
    reason = "PaymentAlreadyConfirmed"

    def __init__(self, message: str = "Payment for this order is already confirmed."):
        super().__init__(message)


class MenuItemUnavailableError(OrderValidationError):
    reason = "MenuItemUnavailable"
