from .dispatcher import DeliveryAttempt, RETRY_DELAYS_SECONDS, WebhookDispatcher, create_webhook_event
from .receiver import WebhookSignatureVerifier
from .signing import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    SignatureCheck,
    serialize_event,
    sign_payload,
    verify_webhook_signature,
)

__all__ = [
    "DeliveryAttempt",
    "EVENT_HEADER",
    "RETRY_DELAYS_SECONDS",
    "SIGNATURE_HEADER",
    "SignatureCheck",
    "TIMESTAMP_HEADER",
    "WebhookDispatcher",
    "WebhookSignatureVerifier",
    "create_webhook_event",
    "serialize_event",
    "sign_payload",
    "verify_webhook_signature",
]
