from __future__ import annotations

from decimal import Decimal, InvalidOperation
from urllib.parse import urlsplit

from apps.payments.domain.errors import InvalidAmountError

APPROVED_STATUSES = frozenset({"approved", "succeeded", "completed", "successful"})
FAILED_STATUSES = frozenset({"failed", "declined", "cancelled", "canceled", "expired"})

# ISO 4217 minor-unit exponents for currencies that differ from the usual 2.
_CURRENCY_EXPONENTS = {
    "JPY": 0,
    "KRW": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
}


def normalize_status(status: str | None) -> str:
    return (status or "").strip().lower()


def is_approved_status(status: str | None) -> bool:
    return normalize_status(status) in APPROVED_STATUSES


def is_failed_status(status: str | None) -> bool:
    return normalize_status(status) in FAILED_STATUSES


def currency_exponent(currency: str) -> int:
    return _CURRENCY_EXPONENTS.get((currency or "").upper(), 2)


def to_minor_units(amount, currency: str) -> int:
    """Convert a decimal currency amount into integer minor units, refusing lossy conversions."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError("Order total is not a valid amount.") from exc
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError("Order total must be greater than zero.")
    scaled = value.scaleb(currency_exponent(currency))
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(f"Order total has more precision than {currency.upper()} allows.")
    return int(scaled)


def resolve_redirect_url(url: str | None, *, allowed_origin: str, order_id, outcome: str) -> str:
    """
    Keep a caller-supplied redirect only when it stays on our frontend and points
    at this order's page; otherwise fall back to the default order page.
    """
    origin = allowed_origin.rstrip("/")
    default = f"{origin}/orders/{order_id}?payment={outcome}"
    candidate = (url or "").strip()
    if not candidate:
        return default
    parts = urlsplit(candidate)
    if f"{parts.scheme}://{parts.netloc}" != origin:
        return default
    if not parts.path.rstrip("/") == f"/orders/{order_id}":
        return default
    return candidate
