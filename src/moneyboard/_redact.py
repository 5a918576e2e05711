"""Helpers for safe debug logging.

Identity REST payloads carry the API key, custom tokens, ID tokens and
refresh tokens; mask them before they reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Credential fields of Identity Toolkit and Secure Token payloads.
_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {"key", "apikey", "token", "idtoken", "id_token", "refreshtoken", "refresh_token", "access_token"}
)


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of a JSON-like payload with credential values masked.

    Mapping keys are matched case-insensitively; long strings are cut at
    *max_string* characters.
    """
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>"
            if str(key).lower() in _SENSITIVE_VALUE_KEYS
            else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
