"""
Settlement confirmation sources.

The orchestrator hands each submitted transfer to a source with a callback;
the source calls back once the transfer settles (or fails). The timer source
simulates settlement latency; the manual source lets an external signal
(chain watcher, provider callback, tests) drive the transition.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Protocol, Set

from ..logging_config import get_logger

logger = get_logger("railagent.orchestrator")

# (transfer_id, outcome, tx_hash)
SettlementCallback = Callable[[str, str, Optional[str]], Awaitable[object]]


class SettlementSource(Protocol):
    def watch(self, transfer_id: str, tx_hash: Optional[str], on_confirmed: SettlementCallback) -> None:
        ...

    async def aclose(self) -> None:
        ...


class TimerSettlementSource:
    """
    Confirms every watched transfer after a fixed delay.
    """

    def __init__(self, delay_seconds: float = 1.5, outcome: str = "settled"):
        self.delay_seconds = delay_seconds
        self.outcome = outcome
        self._tasks: Set[asyncio.Task] = set()

    async def _confirm_later(self, transfer_id: str, tx_hash: Optional[str], on_confirmed: SettlementCallback) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            await on_confirmed(transfer_id, self.outcome, tx_hash)
        except Exception:
            logger.exception("Settlement handling failed for transfer_id=%s", transfer_id)

    def watch(self, transfer_id: str, tx_hash: Optional[str], on_confirmed: SettlementCallback) -> None:
        task = asyncio.get_running_loop().create_task(self._confirm_later(transfer_id, tx_hash, on_confirmed))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """
        Wait until every scheduled confirmation has run.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()


class ManualSettlementSource:
    """
    Holds callbacks until confirm() is called for the transfer.
    """

    def __init__(self):
        self._watching: Dict[str, tuple] = {}

    def watch(self, transfer_id: str, tx_hash: Optional[str], on_confirmed: SettlementCallback) -> None:
        self._watching[transfer_id] = (tx_hash, on_confirmed)

    def is_watching(self, transfer_id: str) -> bool:
        return transfer_id in self._watching

    async def confirm(self, transfer_id: str, outcome: str = "settled", tx_hash: Optional[str] = None):
        """
        Deliver the confirmation signal. Errors from the callback propagate.
        """
        if transfer_id not in self._watching:
            raise KeyError(f"No pending settlement for transfer {transfer_id}")
        submitted_hash, on_confirmed = self._watching.pop(transfer_id)
        return await on_confirmed(transfer_id, outcome, tx_hash or submitted_hash)

    async def aclose(self) -> None:
        self._watching.clear()
