"""
Webhook signature helpers (HMAC-SHA256, hex encoded).
"""

import hashlib
import hmac
from typing import Mapping, Any


def payment_signature(fields: Mapping[str, Any], salt: str) -> str:
    """
    Signature of a payment webhook: HMAC over every field except `hmac`,
    concatenated as key+value in alphabetical key order.
    """
    message = "".join(
        f"{key}{'' if fields[key] is None else fields[key]}"
        for key in sorted(fields)
        if key != "hmac"
    )
    return hmac.new(salt.encode(), message.encode(), hashlib.sha256).hexdigest()


def delivery_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def signatures_match(expected: str, received: str) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.lower(), received.strip().lower())
