from __future__ import annotations


class PaymentDomainError(ValueError):
    reason = "PaymentError"


class InvalidAmountError(PaymentDomainError):
    reason = "InvalidAmount"


class UnknownProviderError(PaymentDomainError):
    reason = "ProviderError"


class ProviderError(PaymentDomainError):
    """The provider rejected a request."""

    reason = "ProviderError"

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailableError(ProviderError):
    """Network failure, timeout or 5xx from the provider. The caller may retry."""

    reason = "ProviderUnavailable"


class WebhookSecretMissingError(PaymentDomainError):
    reason = "WebhookSecretMissing"

    def __init__(self, message: str = "Webhook secret is not configured."):
        super().__init__(message)


class WebhookSignatureError(PaymentDomainError):
    reason = "InvalidSignature"


class WebhookPayloadError(PaymentDomainError):
    reason = "InvalidPayload"
