"""Redaction for DEBUG logs of cloud requests.

Login payloads carry credentials and snapshots carry whole record
collections; neither belongs in a log line verbatim.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {"password", "passwordconfirm", "identity", "token", "authorization", "cookie", "apikey"}
)


def redact_for_log(value: Any, *, max_string: int = 512, max_items: int = 5) -> Any:
    """Return a log-safe copy of a JSON-shaped *value*.

    Credential fields become ``<redacted>``, lists longer than *max_items*
    become ``<list:N items>`` and long strings are truncated.
    """
    if isinstance(value, Mapping):
        return {
            str(k): "<redacted>"
            if str(k).lower() in _SENSITIVE_KEYS
            else redact_for_log(v, max_string=max_string, max_items=max_items)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        if len(value) > max_items:
            return f"<list:{len(value)} items>"
        return [redact_for_log(v, max_string=max_string, max_items=max_items) for v in value]
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
