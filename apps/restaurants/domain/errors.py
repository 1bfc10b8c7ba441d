from __future__ import annotations


class RestaurantDomainError(ValueError):
    reason = "RestaurantError"


class RestaurantNotFoundError(RestaurantDomainError):
    reason = "RestaurantNotFound"


class RestaurantAccessDeniedError(RestaurantDomainError):
    reason = "Unauthorized"


class PaymentCredentialsMissingError(RestaurantDomainError):
    reason = "CredentialsMissing"

    def __init__(self, message: str = "Online payment is unavailable for this restaurant."):
        super().__init__(message)


class PaymentCredentialsInvalidError(RestaurantDomainError):
    reason = "CredentialsInvalid"

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field
