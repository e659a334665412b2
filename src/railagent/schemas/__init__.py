"""
Schemas for the transfer pipeline
"""

from .intent import IntentDraft, RouteCandidate
from .policy import PolicyContext, PolicyDecision, PolicyViolation, TransferPolicyConfig
from .transfer import (
    AuditRecord,
    ProviderMode,
    StateHistoryEntry,
    Transfer,
    TransferIntent,
    TransferState,
    TransferStatus,
)
from .webhook import WebhookEvent, WebhookEventType, WebhookTarget

__all__ = [
    "AuditRecord",
    "IntentDraft",
    "PolicyContext",
    "PolicyDecision",
    "PolicyViolation",
    "ProviderMode",
    "RouteCandidate",
    "StateHistoryEntry",
    "Transfer",
    "TransferIntent",
    "TransferPolicyConfig",
    "TransferState",
    "TransferStatus",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookTarget",
]
