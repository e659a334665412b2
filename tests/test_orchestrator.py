"""End-to-end tests for the transfer orchestrator."""

import asyncio
import logging
from decimal import Decimal

import pytest
import pytest_asyncio

from railagent.agent import ManualSettlementSource, TimerSettlementSource, TransferOrchestrator, create_quote_id
from railagent.guards import PolicyEngine
from railagent.providers import (
    ExecuteTransferResult,
    LiveMentoProvider,
    MockMentoProvider,
    ProviderConfig,
    ProviderExecutionError,
    ProviderSelection,
    UnsupportedCorridorError,
    create_providers,
)
from railagent.schemas import IntentDraft, RouteCandidate, TransferIntent, TransferPolicyConfig
from railagent.webhooks import WebhookDispatcher

from .helpers import RecordingEndpoint


class CountingProvider(MockMentoProvider):
    def __init__(self):
        self.calls = 0

    async def execute_transfer(self, request):
        self.calls += 1
        return await super().execute_transfer(request)


class FailingProvider(MockMentoProvider):
    async def execute_transfer(self, request):
        return ExecuteTransferResult(provider=self.name, mode=self.mode, transfer_id="tr_x", status="failed")


@pytest.fixture
def endpoint():
    return RecordingEndpoint()


@pytest.fixture
def dispatcher(endpoint, clock):
    d = WebhookDispatcher("whsec_test", http_client=endpoint.client(), clock=clock)
    d.register_target("https://hooks.example.com/railagent")
    return d


@pytest.fixture
def settlement():
    return ManualSettlementSource()


@pytest_asyncio.fixture
async def orchestrator(store, dispatcher, settlement, policy_config):
    o = TransferOrchestrator(
        store=store,
        dispatcher=dispatcher,
        providers=create_providers({}),
        policy_engine=PolicyEngine(policy_config),
        settlement=settlement,
    )
    yield o
    await o.aclose()


def _intent(**overrides):
    data = dict(amount="100", from_token="usd", to_token="php", recipient="maria")
    data.update(overrides)
    return TransferIntent(**data)


def _queued_types(dispatcher):
    return [item.event.type for item in dispatcher.pending()]


@pytest.mark.asyncio
async def test_submit_then_settle(orchestrator, dispatcher, settlement, endpoint):
    submission = await orchestrator.submit_transfer(_intent(), "idem_abcdefghijk")

    assert submission.status == "submitted"
    transfer = submission.transfer
    assert transfer.id == "tr_idem_abcde"
    assert transfer.from_token == "USD"
    assert transfer.to_token == "PHP"
    assert transfer.amount == Decimal("100")
    assert submission.provider.mode == "mock"
    assert _queued_types(dispatcher) == ["transfer.submitted"]
    assert settlement.is_watching(transfer.id)

    settled = await settlement.confirm(transfer.id)

    assert settled.status == "settled"
    assert [h.status for h in settled.state_history] == ["submitted", "settled"]
    assert _queued_types(dispatcher) == ["transfer.submitted", "transfer.settled"]
    assert dispatcher.pending()[1].event.data["transferId"] == transfer.id

    assert await dispatcher.process_queue() == 2
    assert len(endpoint.requests) == 2


@pytest.mark.asyncio
async def test_timer_settlement(store, dispatcher, policy_config):
    timer = TimerSettlementSource(delay_seconds=0)
    orchestrator = TransferOrchestrator(store, dispatcher, create_providers({}), PolicyEngine(policy_config), timer)

    submission = await orchestrator.submit_transfer(_intent(), "idem_timer")
    await timer.wait_idle()

    status = await orchestrator.get_transfer_status(submission.transfer.id)
    assert status.status == "settled"
    assert status.tx_hash == submission.transfer.tx_hash
    await orchestrator.aclose()


@pytest.mark.asyncio
async def test_policy_denial_writes_nothing(orchestrator, dispatcher, settlement):
    submission = await orchestrator.submit_transfer(_intent(amount="5000", to_token="KES"), "idem_denied")

    assert submission.status == "rejected"
    assert submission.transfer is None
    assert "POLICY_MAX_AMOUNT_EXCEEDED" in submission.policy_decision.codes
    assert "POLICY_CORRIDOR_NOT_ALLOWED" in submission.policy_decision.codes
    assert await orchestrator.list_audit() == []
    assert dispatcher.pending() == []


@pytest.mark.asyncio
async def test_missing_key_is_rejected(orchestrator):
    submission = await orchestrator.submit_transfer(_intent(), None)

    assert submission.status == "rejected"
    assert submission.policy_decision.codes == ["POLICY_IDEMPOTENCY_KEY_REQUIRED"]


@pytest.mark.asyncio
async def test_replay_returns_original_without_executing(store, dispatcher, settlement, policy_config):
    provider = CountingProvider()
    orchestrator = TransferOrchestrator(
        store, dispatcher, ProviderSelection(provider, provider), PolicyEngine(policy_config), settlement
    )

    first = await orchestrator.submit_transfer(_intent(), "idem_replay")
    second = await orchestrator.submit_transfer(_intent(amount="250"), "idem_replay")

    assert first.status == "submitted"
    assert second.status == "replayed"
    assert second.transfer.id == first.transfer.id
    assert second.transfer.amount == Decimal("100")
    assert provider.calls == 1
    assert len(await orchestrator.list_audit()) == 1
    assert _queued_types(dispatcher) == ["transfer.submitted"]


@pytest.mark.asyncio
async def test_provider_error_persists_nothing(store, dispatcher, settlement, policy_config):
    live = LiveMentoProvider(ProviderConfig(mode="live", rpc_url="https://forno.celo.test", chain_id=42220,
                                            private_key="0xkey"))
    orchestrator = TransferOrchestrator(
        store, dispatcher, ProviderSelection(live, live), PolicyEngine(policy_config), settlement
    )

    with pytest.raises(UnsupportedCorridorError):
        await orchestrator.submit_transfer(_intent(from_token="EUR", to_token="NGN"), "idem_eur")

    assert await store.get_transfer_by_idempotency_key("idem_eur") is None
    assert dispatcher.pending() == []
    await live.aclose()


@pytest.mark.asyncio
async def test_failed_execution_status_raises(store, dispatcher, settlement, policy_config):
    provider = FailingProvider()
    orchestrator = TransferOrchestrator(
        store, dispatcher, ProviderSelection(provider, provider), PolicyEngine(policy_config), settlement
    )

    with pytest.raises(ProviderExecutionError):
        await orchestrator.submit_transfer(_intent(), "idem_fail")

    assert await store.list_audit() == []


@pytest.mark.asyncio
async def test_store_failure_enqueues_no_event(orchestrator, store, dispatcher, settlement, monkeypatch):
    async def broken_history(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "_insert_history", broken_history)

    with pytest.raises(RuntimeError):
        await orchestrator.submit_transfer(_intent(), "idem_store")

    assert dispatcher.pending() == []
    assert not settlement.is_watching("tr_idem_store")
    assert await orchestrator.list_audit() == []


@pytest.mark.asyncio
async def test_settlement_write_failure_enqueues_no_event(orchestrator, store, dispatcher, settlement, monkeypatch):
    submission = await orchestrator.submit_transfer(_intent(), "idem_settle")

    async def broken_history(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "_insert_history", broken_history)

    with pytest.raises(RuntimeError):
        await settlement.confirm(submission.transfer.id)

    assert _queued_types(dispatcher) == ["transfer.submitted"]
    assert (await orchestrator.get_transfer(submission.transfer.id)).status == "submitted"


@pytest.mark.asyncio
async def test_failed_settlement(orchestrator, dispatcher, settlement):
    submission = await orchestrator.submit_transfer(_intent(), "idem_failed")

    failed = await settlement.confirm(submission.transfer.id, outcome="failed")

    assert failed.status == "failed"
    assert _queued_types(dispatcher) == ["transfer.submitted", "transfer.failed"]


@pytest.mark.asyncio
async def test_unknown_settlement_outcome(orchestrator):
    submission = await orchestrator.submit_transfer(_intent(), "idem_unknown")

    with pytest.raises(ValueError):
        await orchestrator.record_settlement(submission.transfer.id, "refunded")


@pytest.mark.asyncio
async def test_submit_from_intent_needs_clarification(orchestrator, dispatcher):
    draft = IntentDraft(
        amount=None,
        source_currency="USD",
        target_currency=None,
        recipient="maria",
        needs_clarification=True,
        clarification_questions=["How much should Maria receive?"],
        confidence=0.4,
    )

    submission = await orchestrator.submit_from_intent(draft, "idem_draft")

    assert submission.status == "needs_clarification"
    assert submission.missing_fields == ["amount", "targetCurrency"]
    assert submission.clarification_questions == ["How much should Maria receive?"]
    assert submission.policy_decision is None
    assert await orchestrator.list_audit() == []
    assert dispatcher.pending() == []


@pytest.mark.asyncio
async def test_submit_from_intent_echoes_route_fee(orchestrator):
    draft = IntentDraft(
        amount=Decimal("50"),
        source_currency="EUR",
        target_currency="NGN",
        recipient="ade",
        confidence=0.95,
    )
    route = RouteCandidate(route="celo->mento->bank", estimated_receive="84100", fee="0.12", eta_seconds=30)

    submission = await orchestrator.submit_from_intent(draft, "idem_route", routes=[route])

    assert submission.status == "submitted"
    assert submission.fee == "0.12"
    assert submission.transfer.quote_id == create_quote_id("EUR", "NGN", Decimal("50"), "celo->mento->bank")


@pytest.mark.asyncio
async def test_quote_saves_snapshot(orchestrator, store):
    quote = await orchestrator.quote("usd", "php", Decimal("10"))

    assert quote.quote_id.startswith("qt_")
    assert quote.quote.estimated_receive == "561.000000"
    snapshot = await store.get_quote_snapshot(quote.quote_id)
    assert snapshot["fromToken"] == "USD"
    assert snapshot["payload"]["routeHint"] == "celo->mento->destination"


@pytest.mark.asyncio
async def test_transfer_keeps_given_quote_id(orchestrator):
    submission = await orchestrator.submit_transfer(_intent(quote_id="qt_given"), "idem_quote")

    assert submission.transfer.quote_id == "qt_given"


@pytest.mark.asyncio
async def test_provider_info_reports_fallback(store, dispatcher):
    orchestrator = TransferOrchestrator(store, dispatcher, create_providers({"MENTO_PROVIDER_MODE": "live"}))

    info = orchestrator.provider_info()

    assert info.mode == "mock"
    assert info.name == "mock-mento"
    assert "MENTO_RPC_URL" in info.fallback_reason


@pytest.mark.asyncio
async def test_submit_from_intent_keeps_exact_amount(orchestrator):
    draft = IntentDraft.model_validate({
        "amount": "0.1",
        "sourceCurrency": "USD",
        "targetCurrency": "PHP",
        "recipient": "maria",
        "confidence": 0.9,
    })

    submission = await orchestrator.submit_from_intent(draft, "idem_dime")

    assert draft.amount == Decimal("0.1")
    assert submission.transfer.amount == Decimal("0.1")


@pytest.mark.asyncio
async def test_identical_keyless_transfers_are_both_stored(store, dispatcher, settlement):
    config = TransferPolicyConfig(allowed_corridors=frozenset({"USD->PHP"}), require_idempotency_key=False)
    orchestrator = TransferOrchestrator(store, dispatcher, create_providers({}), PolicyEngine(config), settlement)

    first = await orchestrator.submit_transfer(_intent(), None)
    second = await orchestrator.submit_transfer(_intent(), None)

    assert first.status == second.status == "submitted"
    assert first.transfer.id != second.transfer.id
    assert len(await orchestrator.list_audit()) == 2
    assert _queued_types(dispatcher) == ["transfer.submitted", "transfer.submitted"]


@pytest.mark.asyncio
async def test_concurrent_submissions_with_same_key(orchestrator, store, dispatcher):
    results = await asyncio.gather(
        orchestrator.submit_transfer(_intent(), "idem_race"),
        orchestrator.submit_transfer(_intent(), "idem_race"),
    )

    assert sorted(r.status for r in results) == ["replayed", "submitted"]
    assert results[0].transfer.id == results[1].transfer.id
    assert [r.id for r in await store.list_audit()] == [results[0].transfer.id]
    assert _queued_types(dispatcher) == ["transfer.submitted"]


@pytest.mark.asyncio
async def test_submit_log_shows_corridor(orchestrator, caplog):
    caplog.set_level(logging.INFO, logger="railagent.orchestrator")

    await orchestrator.submit_transfer(_intent(), "idem_logged")

    submit_lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Submit transfer")]
    assert submit_lines
    assert "corridor=USD->PHP" in submit_lines[0]
    assert "amount=100" in submit_lines[0]
