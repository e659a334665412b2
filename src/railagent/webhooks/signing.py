"""
Webhook signing and verification.

Signature = hex HMAC-SHA256 over "{unix_timestamp}.{payload}" with the shared
secret. Subscribers verify with verify_webhook_signature.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Optional, Union

from ..schemas import WebhookEvent

SIGNATURE_HEADER = "x-railagent-signature"
EVENT_HEADER = "x-railagent-event"
TIMESTAMP_HEADER = "x-railagent-timestamp"
DEFAULT_TOLERANCE_SEC = 300


def serialize_event(event: WebhookEvent) -> str:
    """
    Canonical JSON form of an event; this exact string is signed and sent.
    """
    return json.dumps(event.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))


def sign_payload(secret: str, payload: str, timestamp: Union[int, str]) -> str:
    signed = f"{timestamp}.{payload}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class SignatureCheck:
    ok: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


def verify_webhook_signature(
    secret: str,
    payload: str,
    signature: Optional[str],
    timestamp: Optional[Union[int, str]],
    tolerance_sec: int = DEFAULT_TOLERANCE_SEC,
    now: Optional[float] = None,
) -> SignatureCheck:
    """
    Check a delivery: timestamp within tolerance (either direction), then a
    constant-time digest comparison.
    """
    if not signature or timestamp is None or timestamp == "":
        return SignatureCheck(False, "MISSING_HEADERS")
    try:
        ts = int(str(timestamp).strip())
    except ValueError:
        return SignatureCheck(False, "INVALID_TIMESTAMP")

    current = int(now if now is not None else time.time())
    if abs(current - ts) > tolerance_sec:
        return SignatureCheck(False, "TIMESTAMP_OUTSIDE_TOLERANCE")

    # Digest covers the header exactly as sent
    expected = sign_payload(secret, payload, timestamp)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        return SignatureCheck(False, "INVALID_SIGNATURE")
    return SignatureCheck(True)
