"""Helpers for safe debug logging.

Requests carry bearer tokens and documents carry customer contact
details.  Secrets are replaced outright; contact fields are masked so
a log line still shows *which* record was touched without exposing it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "idtoken",
        "accesstoken",
        "refreshtoken",
        "token",
        "password",
        "apikey",
    }
)

_CONTACT_KEYS: frozenset[str] = frozenset({"email", "phone", "address"})


def mask_contact(value: str) -> str:
    """Mask a contact value, keeping just enough to recognise it.

    ``"billing@acme.com"`` becomes ``"b***@acme.com"``; other values keep
    their last two characters.
    """
    text = value.strip()
    if not text:
        return text
    local, at, domain = text.partition("@")
    if at:
        return f"{local[:1]}***@{domain}"
    if len(text) <= 2:
        return "***"
    return f"***{text[-2:]}"


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"

    if value is None or isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if lowered in _SECRET_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _CONTACT_KEYS and isinstance(v, str):
                redacted[key] = mask_contact(v)
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
