"""
Shapes handed to the pipeline by its external collaborators (intent parser,
route scoring). Only the fields the orchestrator reads are modelled.
"""

from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from .base import WireModel


class IntentDraft(WireModel):
    amount: Optional[Decimal] = None
    source_currency: Optional[str] = None
    target_currency: Optional[str] = None
    recipient: Optional[str] = None
    destination_hint: Optional[str] = None
    needs_clarification: bool = False
    clarification_questions: List[str] = Field(default_factory=list)
    confidence: float = 0.0


class RouteCandidate(WireModel):
    route: str
    estimated_receive: str
    fee: str
    eta_seconds: int
