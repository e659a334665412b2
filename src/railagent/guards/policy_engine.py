"""
Policy Engine
Gates transfer execution against the configured business limits.

Evaluation is pure: same input and config always give an identical decision,
and malformed input is reported as violations instead of raising.
"""

import math
import os
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import env_flag, split_csv
from ..schemas import PolicyContext, PolicyDecision, PolicyViolation, TransferIntent, TransferPolicyConfig

DEFAULT_MAX_AMOUNT = Decimal("1000")
DEFAULT_CORRIDORS = "USD->PHP,EUR->NGN,GBP->KES"

PolicyInput = Union[TransferIntent, Mapping[str, Any]]


class ViolationCode(str, Enum):
    AMOUNT_REQUIRED = "POLICY_AMOUNT_REQUIRED"
    MAX_AMOUNT_EXCEEDED = "POLICY_MAX_AMOUNT_EXCEEDED"
    CURRENCY_MAX_EXCEEDED = "POLICY_CURRENCY_MAX_EXCEEDED"
    CORRIDOR_NOT_ALLOWED = "POLICY_CORRIDOR_NOT_ALLOWED"
    RISK_DESTINATION = "POLICY_RISK_DESTINATION"
    RECIPIENT_REQUIRED = "POLICY_RECIPIENT_REQUIRED"
    IDEMPOTENCY_KEY_REQUIRED = "POLICY_IDEMPOTENCY_KEY_REQUIRED"


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        parsed = Decimal(str(value).strip()) if isinstance(value, (str, float)) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def _parse_currency_limits(raw: Optional[str]) -> Dict[str, Decimal]:
    limits: Dict[str, Decimal] = {}
    for entry in split_csv(raw):
        currency, _, amount = entry.partition(":")
        ceiling = _parse_decimal(amount)
        if not currency.strip() or ceiling is None:
            continue
        limits[currency.strip().upper()] = ceiling
    return limits


def read_policy_config(env: Optional[Mapping[str, str]] = None) -> TransferPolicyConfig:
    """
    Build the policy config from environment variables.
    """
    env = os.environ if env is None else env
    max_amount = _parse_decimal(env.get("TRANSFER_MAX_AMOUNT"))
    corridors = env.get("TRANSFER_ALLOWED_CORRIDORS")
    if corridors is None:
        corridors = DEFAULT_CORRIDORS

    return TransferPolicyConfig(
        max_amount=max_amount if max_amount is not None else DEFAULT_MAX_AMOUNT,
        max_amount_per_currency=_parse_currency_limits(env.get("TRANSFER_MAX_AMOUNT_PER_CURRENCY")),
        allowed_corridors=frozenset(c.upper() for c in split_csv(corridors)),
        require_recipient=env_flag(env.get("TRANSFER_REQUIRE_RECIPIENT"), True),
        require_idempotency_key=env_flag(env.get("TRANSFER_REQUIRE_IDEMPOTENCY_KEY"), True),
        risk_destinations=frozenset(d.lower() for d in split_csv(env.get("TRANSFER_RISK_DESTINATIONS"))),
    )


@lru_cache(maxsize=1)
def get_policy_config() -> TransferPolicyConfig:
    """
    Process-wide policy config, loaded once.
    """
    return read_policy_config()


def corridor_key(from_token: Any, to_token: Any) -> Optional[str]:
    if not isinstance(from_token, str) or not isinstance(to_token, str):
        return None
    if not from_token.strip() or not to_token.strip():
        return None
    return f"{from_token.strip().upper()}->{to_token.strip().upper()}"


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def _read(source: PolicyInput, name: str) -> Any:
    if isinstance(source, TransferIntent):
        return getattr(source, name, None)
    if isinstance(source, Mapping):
        return source.get(name)
    return None


def evaluate_transfer_policy(
    intent: PolicyInput,
    config: TransferPolicyConfig,
    idempotency_key: Optional[str] = None,
) -> PolicyDecision:
    """
    Evaluate a transfer intent against every policy rule.

    All rules run; the decision lists every violation in rule order so the
    caller can fix everything in one pass. The idempotency key may come either
    as an argument or as an ``idempotency_key`` entry of a mapping input.
    """
    if idempotency_key is None:
        idempotency_key = _read(intent, "idempotency_key")

    raw_amount = _read(intent, "amount")
    from_token = _read(intent, "from_token")
    to_token = _read(intent, "to_token")
    recipient = _read(intent, "recipient")
    destination_hint = _read(intent, "destination_hint")

    amount = _parse_decimal(raw_amount)
    corridor = corridor_key(from_token, to_token)
    violations: List[PolicyViolation] = []

    if amount is None or amount <= 0:
        violations.append(PolicyViolation(
            code=ViolationCode.AMOUNT_REQUIRED.value,
            field="amount",
            message="Amount is required and must be greater than zero",
        ))
        amount_ok = False
    else:
        amount_ok = True
        if amount > config.max_amount:
            violations.append(PolicyViolation(
                code=ViolationCode.MAX_AMOUNT_EXCEEDED.value,
                field="amount",
                message=f"Amount exceeds max transfer policy ({config.max_amount})",
                meta={"maxAmount": str(config.max_amount), "receivedAmount": str(amount)},
            ))

    currency = from_token.strip().upper() if isinstance(from_token, str) else None
    currency_ceiling = config.max_amount_per_currency.get(currency) if currency else None
    if amount_ok and currency_ceiling is not None and amount > currency_ceiling:
        violations.append(PolicyViolation(
            code=ViolationCode.CURRENCY_MAX_EXCEEDED.value,
            field="amount",
            message=f"Amount exceeds {currency} transfer limit ({currency_ceiling})",
            meta={"currency": currency, "maxAmount": str(currency_ceiling), "receivedAmount": str(amount)},
        ))

    if corridor is None or corridor not in config.allowed_corridors:
        violations.append(PolicyViolation(
            code=ViolationCode.CORRIDOR_NOT_ALLOWED.value,
            field="fromToken,toToken",
            message="Transfer corridor is not allowed",
            meta={"allowedCorridors": sorted(config.allowed_corridors), "requestedCorridor": corridor},
        ))

    hint = destination_hint.strip().lower() if isinstance(destination_hint, str) else None
    if hint and hint in config.risk_destinations:
        violations.append(PolicyViolation(
            code=ViolationCode.RISK_DESTINATION.value,
            field="destinationHint",
            message="Destination is flagged for risk review",
            meta={"destinationHint": hint},
        ))

    if config.require_recipient and _is_blank(recipient):
        violations.append(PolicyViolation(
            code=ViolationCode.RECIPIENT_REQUIRED.value,
            field="recipient",
            message="Recipient is required",
        ))

    if config.require_idempotency_key and _is_blank(idempotency_key):
        violations.append(PolicyViolation(
            code=ViolationCode.IDEMPOTENCY_KEY_REQUIRED.value,
            field="idempotencyKey",
            message="Idempotency key is required",
        ))

    return PolicyDecision(
        allowed=len(violations) == 0,
        violations=violations,
        context=PolicyContext(
            corridor=corridor,
            amount=amount,
            max_amount=config.max_amount,
            destination_hint=hint,
        ),
    )


class PolicyEngine:
    """
    Evaluates transfer intents against a fixed policy config
    """

    def __init__(self, config: Optional[TransferPolicyConfig] = None):
        self.config = config if config is not None else get_policy_config()

    def evaluate(self, intent: PolicyInput, idempotency_key: Optional[str] = None) -> PolicyDecision:
        return evaluate_transfer_policy(intent, self.config, idempotency_key)
