"""
Policy models: process-wide limits and the per-request decision.
"""

from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import ConfigDict, Field

from .base import WireModel


class TransferPolicyConfig(WireModel):
    model_config = ConfigDict(frozen=True)

    max_amount: Decimal = Decimal("1000")
    max_amount_per_currency: Dict[str, Decimal] = Field(default_factory=dict)
    allowed_corridors: FrozenSet[str] = frozenset({"USD->PHP", "EUR->NGN", "GBP->KES"})
    require_recipient: bool = True
    require_idempotency_key: bool = True
    risk_destinations: FrozenSet[str] = frozenset()


class PolicyViolation(WireModel):
    code: str
    message: str
    field: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None


class PolicyContext(WireModel):
    corridor: Optional[str] = None
    amount: Optional[Decimal] = None
    max_amount: Decimal
    destination_hint: Optional[str] = None


class PolicyDecision(WireModel):
    allowed: bool
    violations: List[PolicyViolation] = Field(default_factory=list)
    context: PolicyContext

    @property
    def codes(self) -> List[str]:
        return [v.code for v in self.violations]
