"""
Webhook Dispatcher
Fans transfer events out to registered endpoints with signed, retried POSTs.

The queue lives in process memory only. Each tick delivers every due item;
failures are rescheduled on a fixed escalating delay until the retry budget
is spent, then dropped.
"""

import asyncio
import secrets
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from ..logging_config import get_logger
from ..schemas import WebhookEvent, WebhookEventType, WebhookTarget
from .signing import EVENT_HEADER, SIGNATURE_HEADER, TIMESTAMP_HEADER, serialize_event, sign_payload

logger = get_logger("railagent.webhooks")

RETRY_DELAYS_SECONDS = (1.0, 3.0, 7.0)
DEFAULT_POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class DeliveryAttempt:
    target: WebhookTarget
    event: WebhookEvent
    attempt: int
    next_attempt_at: float


def create_webhook_event(event_type: WebhookEventType, data: Dict[str, Any]) -> WebhookEvent:
    return WebhookEvent(
        id=f"evt_{secrets.token_hex(4)}",
        type=event_type,
        timestamp=datetime.now(timezone.utc),
        data=data,
    )


class WebhookDispatcher:
    """
    Owns the target list and the delivery queue; start()/stop() control the
    polling loop.
    """

    def __init__(
        self,
        secret: str,
        http_client: Optional[httpx.AsyncClient] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        retry_delays: Sequence[float] = RETRY_DELAYS_SECONDS,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        self.secret = secret
        self.poll_interval = poll_interval
        self.retry_delays = tuple(retry_delays)
        self._clock = clock
        self._owns_client = http_client is None
        self._client = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._targets: List[WebhookTarget] = []
        self._queue: List[DeliveryAttempt] = []
        self._drain_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------
    def register_target(self, url: str) -> WebhookTarget:
        """
        Register a delivery URL. Re-registering a known URL returns the
        existing target.
        """
        for target in self._targets:
            if target.url == url:
                return target

        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise ValueError(f"Webhook target must be an absolute http(s) URL: {url!r}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError(f"Webhook target must be an absolute http(s) URL: {url!r}")

        target = WebhookTarget(
            id=f"wh_{secrets.token_hex(4)}",
            url=url,
            created_at=datetime.now(timezone.utc),
        )
        self._targets.append(target)
        logger.info("Registered webhook target id=%s url=%s", target.id, url)
        return target

    def list_targets(self) -> List[WebhookTarget]:
        return list(self._targets)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------
    def enqueue_event(self, event: WebhookEvent) -> int:
        """
        Queue ``event`` for every target registered right now. Returns the
        number of deliveries queued.
        """
        now = self._clock()
        for target in self._targets:
            self._queue.append(DeliveryAttempt(target=target, event=event, attempt=0, next_attempt_at=now))
        logger.info("Enqueued %s event=%s for %d target(s)", event.type, event.id, len(self._targets))
        return len(self._targets)

    def pending(self) -> List[DeliveryAttempt]:
        return list(self._queue)

    async def process_queue(self) -> int:
        """
        Run one tick: attempt every due item, reschedule failures. Returns the
        number of successful deliveries.
        """
        async with self._drain_lock:
            now = self._clock()
            due = [item for item in self._queue if item.next_attempt_at <= now]
            self._queue = [item for item in self._queue if item.next_attempt_at > now]

            delivered = 0
            for item in due:
                if await self._deliver(item):
                    delivered += 1
                    continue

                if item.attempt < len(self.retry_delays):
                    delay = self.retry_delays[item.attempt]
                    self._queue.append(replace(item, attempt=item.attempt + 1, next_attempt_at=self._clock() + delay))
                    logger.info("Retry %d for event=%s target=%s in %.1fs",
                                item.attempt + 1, item.event.id, item.target.url, delay)
                else:
                    logger.warning("Dropping event=%s for target=%s after %d attempts",
                                   item.event.id, item.target.url, item.attempt + 1)
            return delivered

    async def _deliver(self, item: DeliveryAttempt) -> bool:
        payload = serialize_event(item.event)
        timestamp = int(self._clock())
        headers = {
            "content-type": "application/json",
            SIGNATURE_HEADER: sign_payload(self.secret, payload, timestamp),
            EVENT_HEADER: item.event.type,
            TIMESTAMP_HEADER: str(timestamp),
        }
        try:
            response = await self._client.post(item.target.url, content=payload.encode("utf-8"), headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Delivery of event=%s to %s failed: %s", item.event.id, item.target.url, e)
            return False

        if response.is_success:
            logger.info("Delivered event=%s to %s status=%s", item.event.id, item.target.url, response.status_code)
            return True
        logger.warning("Delivery of event=%s to %s got status=%s",
                       item.event.id, item.target.url, response.status_code)
        return False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            try:
                await self.process_queue()
            except Exception:
                logger.exception("Webhook queue tick failed")
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.info("Webhook dispatcher started (poll=%.2fs)", self.poll_interval)

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_client:
            await self._client.aclose()
        logger.info("Webhook dispatcher stopped; %d deliveries dropped from queue", len(self._queue))
