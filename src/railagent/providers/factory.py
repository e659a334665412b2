"""
Provider selection.

Reads the provider config from the environment and picks the live backend
when it is asked for and usable, otherwise the mock backend with a recorded
fallback reason.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

import httpx

from ..logging_config import get_logger
from .base import ExecutionProvider, ProviderNotConfiguredError, QuoteProvider
from .live_provider import LiveMentoProvider, ProviderConfig
from .mock_provider import MockMentoProvider

logger = get_logger("railagent.providers")


@dataclass
class ProviderSelection:
    quote_provider: QuoteProvider
    execution_provider: ExecutionProvider
    fallback_reason: Optional[str] = None

    @property
    def mode(self) -> str:
        return self.execution_provider.mode

    @property
    def name(self) -> str:
        return self.execution_provider.name

    async def aclose(self) -> None:
        """
        Close every provider that holds resources (the live provider's HTTP client).
        """
        providers = [self.quote_provider]
        if self.execution_provider is not self.quote_provider:
            providers.append(self.execution_provider)
        for provider in providers:
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()


def _parse_chain_id(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def read_provider_config(env: Optional[Mapping[str, str]] = None) -> ProviderConfig:
    env = os.environ if env is None else env
    return ProviderConfig(
        mode="live" if (env.get("MENTO_PROVIDER_MODE") or "").strip().lower() == "live" else "mock",
        rpc_url=env.get("MENTO_RPC_URL") or None,
        chain_id=_parse_chain_id(env.get("MENTO_CHAIN_ID")),
        private_key=env.get("MENTO_PRIVATE_KEY") or None,
    )


def create_providers(
    env: Optional[Mapping[str, str]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ProviderSelection:
    """
    Build quote/execution providers. Never raises on misconfiguration.
    """
    config = read_provider_config(env)

    if config.mode == "live":
        try:
            live = LiveMentoProvider(config, http_client=http_client)
            logger.info("Using live provider rpc_url=%s chain_id=%s", config.rpc_url, config.chain_id)
            return ProviderSelection(quote_provider=live, execution_provider=live)
        except ProviderNotConfiguredError as e:
            logger.warning("Live provider unavailable, falling back to mock: %s", e)
            mock = MockMentoProvider()
            return ProviderSelection(quote_provider=mock, execution_provider=mock, fallback_reason=str(e))

    mock = MockMentoProvider()
    return ProviderSelection(quote_provider=mock, execution_provider=mock)


def create_providers_strict(
    env: Optional[Mapping[str, str]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ProviderSelection:
    """
    Build the live provider or raise ProviderNotConfiguredError. No fallback.
    """
    config = read_provider_config(env)
    live = LiveMentoProvider(config, http_client=http_client)
    return ProviderSelection(quote_provider=live, execution_provider=live)
