"""Redaction module to mask API keys in logs and exported metrics."""
import re
from typing import Any, Dict

REDACTED = "[REDACTED]"

SECRET_KEYS = ("x-api-key", "api_key", "apikey", "api-key", "authorization", "service_role")

_PATTERNS = [
    (re.compile(r'(x-api-key["\']?\s*[:=]\s*["\']?)([^"\'\s,}&]+)', re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r'(api_?key["\']?\s*[:=]\s*["\']?)([^"\'\s,}&]+)', re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r"(Bearer\s+)([A-Za-z0-9._\-]+)", re.IGNORECASE), rf"\1{REDACTED}"),
]


def redact_string(text: str) -> str:
    """Redact secrets from a string."""
    if not text:
        return text

    result = text
    for pattern, replacement in _PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def redact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively redact secrets from a dictionary."""
    redacted = {}
    for key, value in data.items():
        if str(key).lower() in SECRET_KEYS:
            redacted[key] = REDACTED
        else:
            redacted[key] = redact_json(value)
    return redacted


def redact_json(data: Any) -> Any:
    """Redact secrets from JSON-serializable data."""
    if isinstance(data, dict):
        return redact_dict(data)
    elif isinstance(data, list):
        return [redact_json(item) for item in data]
    elif isinstance(data, str):
        return redact_string(data)
    return data
