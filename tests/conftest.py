"""
Shared fixtures: policy config, fake clock, file-backed SQLite store.
"""

from decimal import Decimal

import pytest
import pytest_asyncio

from railagent.db import TransferStore
from railagent.schemas import TransferPolicyConfig

from .helpers import FakeClock


@pytest.fixture
def policy_config() -> TransferPolicyConfig:
    return TransferPolicyConfig(
        max_amount=Decimal("1000"),
        allowed_corridors=frozenset({"USD->PHP", "EUR->NGN"}),
        require_recipient=True,
        require_idempotency_key=True,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store(tmp_path):
    s = TransferStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'transfers.db'}")
    await s.init_models()
    yield s
    await s.dispose()
