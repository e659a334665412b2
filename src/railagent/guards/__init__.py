from .policy_engine import PolicyEngine, ViolationCode, evaluate_transfer_policy, get_policy_config, read_policy_config
from .redaction import sanitize_for_audit

__all__ = [
    "PolicyEngine",
    "ViolationCode",
    "evaluate_transfer_policy",
    "get_policy_config",
    "read_policy_config",
    "sanitize_for_audit",
]
