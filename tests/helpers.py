"""
Test doubles shared across modules.
"""

from typing import List, Optional, Sequence

import httpx


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingEndpoint:
    """
    httpx handler that records requests and answers with scripted statuses
    (the last status repeats once the script runs out).
    """

    def __init__(self, statuses: Sequence[int] = (200,), error: Optional[Exception] = None):
        self.statuses = list(statuses)
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        index = min(len(self.requests) - 1, len(self.statuses) - 1)
        return httpx.Response(self.statuses[index])

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))
