"""HMAC signing for inbound card-network webhooks"""

import hashlib
import hmac
import time
from typing import Optional


class SignatureError(Exception):
    """Webhook signature headers are missing, stale, or do not match"""

    pass


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Hex HMAC-SHA256 over "<timestamp>.<raw body>" """
    signed_payload = timestamp.encode("utf-8") + b"." + body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_signature(
    secret: str,
    signature: Optional[str],
    timestamp: Optional[str],
    body: bytes,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> None:
    """
    Validate a webhook signature.

    Raises:
        SignatureError: with a caller-safe message describing the failure
    """
    if not signature:
        raise SignatureError("Missing signature header (X-Webhook-Signature)")
    if not timestamp:
        raise SignatureError("Missing timestamp header (X-Webhook-Timestamp)")

    try:
        timestamp_seconds = int(timestamp)
    except ValueError:
        raise SignatureError("Invalid timestamp format")

    current = int(now if now is not None else time.time())
    drift = abs(current - timestamp_seconds)
    if drift > tolerance_seconds:
        raise SignatureError(
            f"Request timestamp too old or in future. Time difference: {drift}s (max: {tolerance_seconds}s)"
        )

    expected = compute_signature(secret, timestamp, body)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        raise SignatureError("Invalid signature")
