"""
Redaction for audit logging.
Strips credentials and trims long values before anything is written to logs.
"""

import re
from typing import Any

SENSITIVE_KEY = re.compile(r"key|secret|token|signature|private", re.IGNORECASE)
SENSITIVE_VALUE = re.compile(r"key|secret|token|private", re.IGNORECASE)
MAX_VALUE_LENGTH = 120
REDACTED = "[REDACTED]"


def sanitize_for_audit(value: Any) -> Any:
    """
    Return a copy of ``value`` safe to log.

    Mapping keys that look like credentials are redacted, as are string values
    that mention one. Strings longer than 120 characters are truncated.
    """
    if value is None:
        return value
    if isinstance(value, str):
        if len(value) > MAX_VALUE_LENGTH:
            return f"{value[:MAX_VALUE_LENGTH]}..."
        if SENSITIVE_VALUE.search(value):
            return REDACTED
        return value
    if isinstance(value, (list, tuple)):
        return [sanitize_for_audit(item) for item in value]
    if isinstance(value, dict):
        return {
            k: REDACTED if SENSITIVE_KEY.search(str(k)) else sanitize_for_audit(v)
            for k, v in value.items()
        }
    return value
