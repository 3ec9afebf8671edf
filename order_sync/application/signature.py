from __future__ import annotations

import hashlib
import hmac
import time
from datetime import datetime

from order_sync.shared.logging import get_logger

log = get_logger(__name__)

SIGNATURE_PREFIX = "sha256="
DEFAULT_TOLERANCE_SECONDS = 300


class SignatureError(Exception):
    """Delivery failed authentication; ``reason`` is safe to echo to the caller."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def compute_signature(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def parse_timestamp(value: str) -> float | None:
    """Epoch seconds, epoch milliseconds or ISO-8601; ``None`` if unreadable."""
    raw = value.strip()
    if not raw:
        return None
    try:
        number = float(raw)
    except ValueError:
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return None
    return number / 1000.0 if number >= 1e12 else number


def verify_signature(
    secret: str | None,
    raw_body: bytes,
    signature_header: str | None,
    timestamp_header: str | None = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Check the HMAC-SHA256 of the exact body and bound the replay window.

    Returns ``False`` when no secret is configured (nothing was verified) and
    ``True`` when the delivery is authentic. Raises :class:`SignatureError`
    otherwise. A timestamp that cannot be parsed is not treated as stale.
    """
    if not secret:
        log.warning("webhook secret not configured; signature not verified")
        return False

    if not signature_header:
        raise SignatureError("missing signature")

    provided = signature_header.strip().removeprefix(SIGNATURE_PREFIX)
    expected = compute_signature(secret, raw_body)
    if not hmac.compare_digest(expected.encode(), provided.encode()):
        raise SignatureError("invalid signature")

    if timestamp_header:
        sent_at = parse_timestamp(timestamp_header)
        current = time.time() if now is None else now
        if sent_at is not None and abs(current - sent_at) > tolerance_seconds:
            raise SignatureError("stale timestamp")

    return True
