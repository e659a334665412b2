"""
Runtime configuration for the transfer pipeline.

Environment is loaded once from the nearest .env file (existing process
variables win). Policy-specific settings live in guards/policy_engine.py and
provider credentials in providers/factory.py; this module only covers the
service-level knobs.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(), override=False)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/railagent.db"


def env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None and value.strip() else default
    except ValueError:
        return default


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    webhook_secret: str = "dev-webhook-secret"
    webhook_poll_interval: float = 0.5
    webhook_timeout: float = 10.0
    webhook_urls: List[str] = field(default_factory=list)
    settlement_delay_seconds: float = 1.5
    log_level: str = "INFO"
    log_dir: str = "logs"


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment (or an explicit mapping, for tests).
    """
    env = os.environ if env is None else env
    return Settings(
        database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
        webhook_secret=env.get("WEBHOOK_SECRET") or "dev-webhook-secret",
        webhook_poll_interval=env_float(env.get("WEBHOOK_POLL_INTERVAL"), 0.5),
        webhook_timeout=env_float(env.get("WEBHOOK_TIMEOUT"), 10.0),
        webhook_urls=split_csv(env.get("WEBHOOK_URLS")),
        settlement_delay_seconds=env_float(env.get("SETTLEMENT_DELAY_SECONDS"), 1.5),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_dir=env.get("LOG_DIR") or "logs",
    )
