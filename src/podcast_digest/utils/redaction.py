"""Secret redaction for configuration dumps and user-visible error text.

``redact_secrets`` scrubs dictionaries before they are logged;
``redact_text`` scrubs free-form messages before they reach a progress event.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Set

REDACTED = "__redacted__"

# Keys matching these patterns (case-insensitive) will have their values redacted
SECRET_KEY_PATTERNS: Set[str] = {
    "api_key",
    "apikey",
    "api-key",
    "token",
    "authorization",
    "password",
    "secret",
    "credential",
    "private_key",
    "access_token",
    "bearer",
}

# Values that look like API keys or tokens
API_KEY_PATTERN = re.compile(r"^(sk-[a-zA-Z0-9_\-]{20,}|Bearer\s+[a-zA-Z0-9._\-]{20,})$")

_TEXT_PATTERNS = (
    re.compile(r"sk-[A-Za-z0-9_\-]{16,}"),
    re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]{16,}"),
    re.compile(r"(?i)\b(api[_-]?key|key|token|sig|signature|access_token|password)=[^&\s'\"]+"),
)


def _is_secret_key(key: str) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SECRET_KEY_PATTERNS)


def _looks_like_secret(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return bool(API_KEY_PATTERN.match(value.strip()))


def redact_secrets(data: Any, redact_patterns: bool = True) -> Any:
    """Recursively redact secrets from a data structure.

    Args:
        data: Data structure to redact (dict, list, or primitive)
        redact_patterns: If True, also redact values that look like secrets

    Returns:
        Data structure with secrets replaced by ``"__redacted__"``
    """
    if isinstance(data, dict):
        redacted: Dict[str, Any] = {}
        for key, value in data.items():
            if _is_secret_key(str(key)) and value is not None:
                redacted[key] = REDACTED
            elif redact_patterns and _looks_like_secret(value):
                redacted[key] = REDACTED
            else:
                redacted[key] = redact_secrets(value, redact_patterns=redact_patterns)
        return redacted
    if isinstance(data, list):
        return [redact_secrets(item, redact_patterns=redact_patterns) for item in data]
    if redact_patterns and _looks_like_secret(data):
        return REDACTED
    return data


def _mask_match(match: "re.Match[str]") -> str:
    text = match.group(0)
    if "=" in text:
        name = text.split("=", 1)[0]
        return f"{name}={REDACTED}"
    if text.lower().startswith("bearer"):
        return f"Bearer {REDACTED}"
    return REDACTED


def redact_text(text: str) -> str:
    """Mask API-key shaped tokens and credential query parameters in ``text``."""
    if not text:
        return text
    for pattern in _TEXT_PATTERNS:
        text = pattern.sub(_mask_match, text)
    return text
