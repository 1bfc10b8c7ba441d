from __future__ import annotations

import re

from .errors import PaymentCredentialsInvalidError

_KEY_RE = re.compile(r"^[A-Za-z0-9_\-]{8,200}$")


def normalize_secret_key(raw: str) -> str:
    key = (raw or "").strip()
    if not key:
        raise PaymentCredentialsInvalidError("Secret key is required.", field="secret_key")
    if not _KEY_RE.match(key):
        raise PaymentCredentialsInvalidError("Secret key format is invalid.", field="secret_key")
    return key


def normalize_public_key(raw: str) -> str:
    key = (raw or "").strip()
    if key and not _KEY_RE.match(key):
        raise PaymentCredentialsInvalidError("Public key format is invalid.", field="public_key")
    return key


def mask_key(key: str) -> str:
    key = key or ""
    if len(key) <= 8:
        return "*" * len(key)
    return f"{key[:4]}{'*' * (len(key) - 8)}{key[-4:]}"
