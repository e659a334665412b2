"""
service.py

Wires the pipeline together from Settings:
- logging (rotating files under LOG_DIR)
- transfer store (DATABASE_URL)
- provider selection (MENTO_* variables, falls back to mock)
- webhook dispatcher (WEBHOOK_* variables)
- orchestrator with timer-driven settlement

Start and stop are explicit; nothing runs at import time.
"""

from dataclasses import dataclass
from typing import Mapping, Optional

from .agent import TimerSettlementSource, TransferOrchestrator
from .config import Settings, load_settings
from .db import TransferStore
from .guards import PolicyEngine, read_policy_config
from .logging_config import get_logger, setup_logging
from .providers import create_providers
from .webhooks import WebhookDispatcher

logger = get_logger("railagent.orchestrator")


@dataclass
class Pipeline:
    settings: Settings
    store: TransferStore
    dispatcher: WebhookDispatcher
    orchestrator: TransferOrchestrator

    async def start(self) -> None:
        await self.store.init_models()
        for url in self.settings.webhook_urls:
            self.dispatcher.register_target(url)
        self.dispatcher.start()
        logger.info("Pipeline started (provider=%s mode=%s)",
                    self.orchestrator.providers.name, self.orchestrator.providers.mode)

    async def stop(self) -> None:
        await self.orchestrator.aclose()
        await self.orchestrator.providers.aclose()
        await self.dispatcher.stop()
        await self.store.dispose()
        logger.info("Pipeline stopped")


def build_pipeline(
    settings: Optional[Settings] = None,
    env: Optional[Mapping[str, str]] = None,
    configure_logging: bool = True,
) -> Pipeline:
    settings = settings if settings is not None else load_settings(env)
    if configure_logging:
        setup_logging(settings.log_level, settings.log_dir)

    providers = create_providers(env)
    if providers.fallback_reason:
        logger.warning("Provider fallback: %s", providers.fallback_reason)

    store = TransferStore.from_url(settings.database_url)
    dispatcher = WebhookDispatcher(
        settings.webhook_secret,
        poll_interval=settings.webhook_poll_interval,
        timeout=settings.webhook_timeout,
    )
    orchestrator = TransferOrchestrator(
        store=store,
        dispatcher=dispatcher,
        providers=providers,
        policy_engine=PolicyEngine(read_policy_config(env)),
        settlement=TimerSettlementSource(settings.settlement_delay_seconds),
    )
    return Pipeline(settings=settings, store=store, dispatcher=dispatcher, orchestrator=orchestrator)
