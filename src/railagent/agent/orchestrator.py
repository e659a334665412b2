"""
agent/orchestrator.py

TransferOrchestrator:
- Gates each request through the policy engine.
- Executes via the selected settlement provider.
- Persists the transfer, then enqueues the matching webhook event.
- Applies settlement confirmations the same way: persist first, then notify.

The caller's response never waits on webhook delivery or settlement.
"""

import hashlib
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import Field

from ..db import DuplicateIdempotencyKeyError, TransferStore
from ..guards import PolicyEngine, sanitize_for_audit
from ..logging_config import get_logger
from ..providers import (
    ExecuteTransferRequest,
    ProviderExecutionError,
    ProviderSelection,
    QuoteRequest,
    QuoteResult,
)
from ..schemas import (
    AuditRecord,
    IntentDraft,
    PolicyDecision,
    RouteCandidate,
    Transfer,
    TransferIntent,
    TransferStatus,
)
from ..schemas.base import WireModel
from ..webhooks import WebhookDispatcher, create_webhook_event
from .settlement import SettlementSource, TimerSettlementSource

logger = get_logger("railagent.orchestrator")

SETTLEMENT_EVENTS = {"settled": "transfer.settled", "failed": "transfer.failed"}


class ProviderInfo(WireModel):
    name: str
    mode: str
    fallback_reason: Optional[str] = None


class TransferSubmission(WireModel):
    status: Literal["submitted", "replayed", "rejected", "needs_clarification"]
    transfer: Optional[Transfer] = None
    policy_decision: Optional[PolicyDecision] = None
    provider: Optional[ProviderInfo] = None
    fee: Optional[str] = None
    missing_fields: List[str] = Field(default_factory=list)
    clarification_questions: List[str] = Field(default_factory=list)


class TransferQuote(WireModel):
    quote_id: str
    quote: QuoteResult


def create_quote_id(from_token: str, to_token: str, amount: Any, route: str) -> str:
    normalized = f"{from_token}-{to_token}-{amount}-{route}"
    return "qt_" + hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:10]


def _event_data(transfer: Transfer) -> Dict[str, Any]:
    return {
        "transferId": transfer.id,
        "quoteId": transfer.quote_id,
        "status": transfer.status,
        "txHash": transfer.tx_hash,
        "amount": str(transfer.amount),
        "fromToken": transfer.from_token,
        "toToken": transfer.to_token,
        "providerMode": transfer.provider_mode,
    }


class TransferOrchestrator:
    def __init__(
        self,
        store: TransferStore,
        dispatcher: WebhookDispatcher,
        providers: ProviderSelection,
        policy_engine: Optional[PolicyEngine] = None,
        settlement: Optional[SettlementSource] = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.providers = providers
        self.policy_engine = policy_engine if policy_engine is not None else PolicyEngine()
        self.settlement = settlement if settlement is not None else TimerSettlementSource()

    def provider_info(self) -> ProviderInfo:
        return ProviderInfo(
            name=self.providers.name,
            mode=self.providers.mode,
            fallback_reason=self.providers.fallback_reason,
        )

    async def quote(self, from_token: str, to_token: str, amount: Decimal) -> TransferQuote:
        """
        Quote through the quote provider and keep a snapshot of the result.
        """
        request = QuoteRequest(from_token=from_token.upper(), to_token=to_token.upper(), amount=Decimal(amount))
        result = await self.providers.quote_provider.quote(request)
        quote_id = create_quote_id(request.from_token, request.to_token, request.amount, result.route_hint)
        await self.store.save_quote_snapshot(
            quote_id=quote_id,
            from_token=request.from_token,
            to_token=request.to_token,
            amount=request.amount,
            payload=result.model_dump(mode="json", by_alias=True),
            provider_mode=result.mode,
        )
        return TransferQuote(quote_id=quote_id, quote=result)

    async def submit_transfer(
        self,
        intent: TransferIntent,
        idempotency_key: Optional[str],
        route: Optional[RouteCandidate] = None,
    ) -> TransferSubmission:
        """
        Policy -> provider -> store -> webhook. Policy denials come back as a
        ``rejected`` submission; provider and store failures raise.
        """
        provider = self.provider_info()
        fee = route.fee if route is not None else None

        decision = self.policy_engine.evaluate(intent, idempotency_key)
        logger.info("Submit transfer corridor=%s amount=%s recipient=%s destination=%s",
                    decision.context.corridor, decision.context.amount,
                    sanitize_for_audit(intent.recipient), decision.context.destination_hint)
        if not decision.allowed:
            logger.info("Transfer rejected by policy: %s", decision.codes)
            return TransferSubmission(status="rejected", policy_decision=decision, provider=provider, fee=fee)

        if idempotency_key:
            existing = await self.store.get_transfer_by_idempotency_key(idempotency_key)
            if existing is not None:
                logger.info("Idempotent replay key=%s transfer_id=%s", idempotency_key, existing.id)
                return TransferSubmission(status="replayed", transfer=existing, policy_decision=decision,
                                          provider=provider, fee=fee)

        from_token = intent.from_token.strip().upper()
        to_token = intent.to_token.strip().upper()
        amount = decision.context.amount
        quote_id = intent.quote_id or create_quote_id(
            from_token, to_token, amount, route.route if route is not None else self.providers.name
        )

        request = ExecuteTransferRequest(
            quote_id=quote_id,
            recipient=(intent.recipient or "").strip(),
            amount=amount,
            from_token=from_token,
            to_token=to_token,
            idempotency_key=idempotency_key,
        )
        result = await self.providers.execution_provider.execute_transfer(request)
        if result.status != "submitted":
            raise ProviderExecutionError(f"Provider {result.provider} reported status {result.status}")

        try:
            transfer = await self.store.create_transfer(
                id=result.transfer_id,
                quote_id=quote_id,
                recipient=request.recipient,
                amount=amount,
                from_token=from_token,
                to_token=to_token,
                provider_name=result.provider,
                provider_mode=result.mode,
                tx_hash=result.tx_hash,
                idempotency_key=idempotency_key,
            )
        except DuplicateIdempotencyKeyError as e:
            # Lost a race with a concurrent submission using the same key
            existing = await self.store.get_transfer(e.transfer_id)
            logger.info("Concurrent duplicate key=%s resolved to transfer_id=%s", idempotency_key, e.transfer_id)
            return TransferSubmission(status="replayed", transfer=existing, policy_decision=decision,
                                      provider=provider, fee=fee)

        self.dispatcher.enqueue_event(create_webhook_event("transfer.submitted", _event_data(transfer)))
        self.settlement.watch(transfer.id, result.tx_hash, self.record_settlement)

        return TransferSubmission(status="submitted", transfer=transfer, policy_decision=decision,
                                  provider=provider, fee=fee)

    async def submit_from_intent(
        self,
        draft: IntentDraft,
        idempotency_key: Optional[str],
        routes: Sequence[RouteCandidate] = (),
        quote_id: Optional[str] = None,
    ) -> TransferSubmission:
        """
        Submit a parsed intent. Drafts that still need clarification, or lack
        amount/currencies, are returned without touching policy or provider.
        """
        missing = []
        if draft.amount is None:
            missing.append("amount")
        if not draft.source_currency:
            missing.append("sourceCurrency")
        if not draft.target_currency:
            missing.append("targetCurrency")

        if draft.needs_clarification or missing:
            logger.info("Intent needs clarification missing=%s confidence=%.2f", missing, draft.confidence)
            return TransferSubmission(
                status="needs_clarification",
                missing_fields=missing,
                clarification_questions=list(draft.clarification_questions),
            )

        intent = TransferIntent(
            amount=draft.amount,
            from_token=draft.source_currency,
            to_token=draft.target_currency,
            recipient=draft.recipient,
            destination_hint=draft.destination_hint,
            quote_id=quote_id,
        )
        return await self.submit_transfer(intent, idempotency_key, route=routes[0] if routes else None)

    async def record_settlement(self, transfer_id: str, outcome: str, tx_hash: Optional[str] = None) -> Transfer:
        """
        Persist a settlement outcome, then enqueue its notification. Nothing
        is enqueued if the write fails.
        """
        event_type = SETTLEMENT_EVENTS.get(outcome)
        if event_type is None:
            raise ValueError(f"Unknown settlement outcome: {outcome!r}")

        transfer = await self.store.append_status(transfer_id, outcome, tx_hash)
        self.dispatcher.enqueue_event(create_webhook_event(event_type, _event_data(transfer)))
        return transfer

    async def get_transfer(self, transfer_id: str) -> Optional[Transfer]:
        return await self.store.get_transfer(transfer_id)

    async def get_transfer_status(self, transfer_id: str) -> Optional[TransferStatus]:
        transfer = await self.store.get_transfer(transfer_id)
        if transfer is None:
            return None
        return TransferStatus(id=transfer.id, status=transfer.status, tx_hash=transfer.tx_hash)

    async def list_audit(self, limit: int = 50) -> List[AuditRecord]:
        return await self.store.list_audit(limit)

    async def aclose(self) -> None:
        await self.settlement.aclose()
