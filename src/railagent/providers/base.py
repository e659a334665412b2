"""
Settlement provider capabilities.

Callers depend only on the two protocols below; which backend sits behind
them (mock or live) is decided once by providers.factory.
"""

from decimal import Decimal
from typing import List, Literal, Optional, Protocol, runtime_checkable

from ..schemas.base import WireModel
from ..schemas.transfer import ProviderMode


class QuoteRequest(WireModel):
    from_token: str
    to_token: str
    amount: Decimal


class QuoteResult(WireModel):
    provider: str
    mode: ProviderMode
    estimated_rate: Decimal
    estimated_receive: str
    fee_usd: str
    route_hint: str


class ExecuteTransferRequest(WireModel):
    quote_id: str
    recipient: str
    amount: Decimal
    from_token: str
    to_token: str
    idempotency_key: Optional[str] = None


class ExecuteTransferResult(WireModel):
    provider: str
    mode: ProviderMode
    transfer_id: str
    status: Literal["submitted", "failed"]
    tx_hash: Optional[str] = None


@runtime_checkable
class QuoteProvider(Protocol):
    name: str
    mode: ProviderMode

    async def quote(self, request: QuoteRequest) -> QuoteResult:
        ...


@runtime_checkable
class ExecutionProvider(Protocol):
    name: str
    mode: ProviderMode

    async def execute_transfer(self, request: ExecuteTransferRequest) -> ExecuteTransferResult:
        ...


class ProviderError(Exception):
    code = "PROVIDER_ERROR"


class ProviderNotConfiguredError(ProviderError):
    code = "PROVIDER_NOT_CONFIGURED"

    def __init__(self, message: str, missing_keys: List[str]):
        super().__init__(message)
        self.missing_keys = list(missing_keys)


class UnsupportedCorridorError(ProviderError):
    code = "UNSUPPORTED_CORRIDOR"

    def __init__(self, corridor: str, supported: str):
        super().__init__(f"Corridor {corridor} is not supported by this provider (supported: {supported})")
        self.corridor = corridor
        self.supported = supported


class ProviderExecutionError(ProviderError):
    code = "PROVIDER_EXECUTION_FAILED"
