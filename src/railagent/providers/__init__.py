from .base import (
    ExecuteTransferRequest,
    ExecuteTransferResult,
    ExecutionProvider,
    ProviderError,
    ProviderExecutionError,
    ProviderNotConfiguredError,
    QuoteProvider,
    QuoteRequest,
    QuoteResult,
    UnsupportedCorridorError,
)
from .factory import ProviderSelection, create_providers, create_providers_strict, read_provider_config
from .live_provider import LiveMentoProvider, ProviderConfig
from .mock_provider import MockMentoProvider

__all__ = [
    "ExecuteTransferRequest",
    "ExecuteTransferResult",
    "ExecutionProvider",
    "LiveMentoProvider",
    "MockMentoProvider",
    "ProviderConfig",
    "ProviderError",
    "ProviderExecutionError",
    "ProviderNotConfiguredError",
    "ProviderSelection",
    "QuoteProvider",
    "QuoteRequest",
    "QuoteResult",
    "UnsupportedCorridorError",
    "create_providers",
    "create_providers_strict",
    "read_provider_config",
]
