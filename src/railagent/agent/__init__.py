"""
Agent package for RailAgent:
- orchestrator.py: TransferOrchestrator (policy -> provider -> store -> webhooks)
- settlement.py: settlement confirmation sources
"""

from .orchestrator import (  # noqa: F401
    ProviderInfo,
    TransferOrchestrator,
    TransferQuote,
    TransferSubmission,
    create_quote_id,
)
from .settlement import ManualSettlementSource, SettlementSource, TimerSettlementSource  # noqa: F401
