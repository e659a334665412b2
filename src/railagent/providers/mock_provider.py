"""
Mock Settlement Provider
Deterministic quotes and executions for development and tests
"""

import secrets
from decimal import Decimal
from typing import Dict

from ..logging_config import get_logger
from .base import ExecuteTransferRequest, ExecuteTransferResult, QuoteRequest, QuoteResult

logger = get_logger("railagent.providers")

# pair -> rate
MOCK_RATES: Dict[str, Decimal] = {
    "USD-PHP": Decimal("56.1"),
    "EUR-NGN": Decimal("1682"),
    "GBP-KES": Decimal("163.7"),
}
DEFAULT_RATE = Decimal("1")
MOCK_TX_HASH = "0x" + "ab" * 32
TRANSFER_ID_PREFIX = "tr_"
KEY_SLICE = 10


class MockMentoProvider:
    """
    Mock provider implementing both quote and execution capabilities.

    The transfer id is built from the idempotency key, so the same key always
    maps to the same id.
    """

    name = "mock-mento"
    mode = "mock"

    async def quote(self, request: QuoteRequest) -> QuoteResult:
        pair = f"{request.from_token.upper()}-{request.to_token.upper()}"
        rate = MOCK_RATES.get(pair, DEFAULT_RATE)
        estimated_receive = (request.amount * rate).quantize(Decimal("0.000001"))
        return QuoteResult(
            provider=self.name,
            mode=self.mode,
            estimated_rate=rate,
            estimated_receive=str(estimated_receive),
            fee_usd="0.12",
            route_hint="celo->mento->destination",
        )

    async def execute_transfer(self, request: ExecuteTransferRequest) -> ExecuteTransferResult:
        if request.idempotency_key:
            suffix = request.idempotency_key[:KEY_SLICE]
        else:
            # No key, no replay contract: every keyless execution is a new transfer
            suffix = secrets.token_hex(KEY_SLICE // 2)
        transfer_id = f"{TRANSFER_ID_PREFIX}{suffix}"
        logger.info("Mock execute transfer_id=%s amount=%s %s->%s", transfer_id, request.amount,
                    request.from_token, request.to_token)
        return ExecuteTransferResult(
            provider=self.name,
            mode=self.mode,
            transfer_id=transfer_id,
            status="submitted",
            tx_hash=MOCK_TX_HASH,
        )
