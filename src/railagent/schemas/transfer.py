"""
Transfer entity, its history entries and the audit projection.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import Field

from .base import WireModel

TransferState = Literal["submitted", "settled", "failed"]
ProviderMode = Literal["mock", "live"]


class StateHistoryEntry(WireModel):
    status: TransferState
    timestamp: datetime
    tx_hash: Optional[str] = None


class Transfer(WireModel):
    id: str
    quote_id: str
    recipient: str
    amount: Decimal
    from_token: str
    to_token: str
    provider_name: str
    provider_mode: ProviderMode
    status: TransferState
    tx_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    idempotency_key: Optional[str] = None
    state_history: List[StateHistoryEntry] = Field(default_factory=list)


class AuditRecord(WireModel):
    id: str
    quote_id: str
    from_token: str
    to_token: str
    amount: Decimal
    status: TransferState
    provider_mode: ProviderMode
    tx_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TransferStatus(WireModel):
    id: str
    status: TransferState
    tx_hash: Optional[str] = None


class TransferIntent(WireModel):
    """
    A transfer request as handed to the pipeline. Fields are loosely typed on
    purpose: the policy engine turns malformed values into violations.
    """

    amount: Optional[Any] = None
    from_token: Optional[str] = None
    to_token: Optional[str] = None
    recipient: Optional[str] = None
    destination_hint: Optional[str] = None
    quote_id: Optional[str] = None
