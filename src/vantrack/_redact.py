"""Helpers for safe debug logging.

Verification payloads carry live custody secrets (guardian codes, handover
tokens, submitted PINs). Anything logged at DEBUG goes through
:func:`redact_for_log` first.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from pydantic import BaseModel

_REDACTED = "<redacted>"

# Compared case-insensitively with underscores removed, so ``guardian_code``
# and ``guardianCode`` both hit ``guardiancode``.
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "pin",
        "guardiancode",
        "handovertoken",
        "scannedtoken",
        "token",
        "authorization",
        "cookie",
    }
)


def _is_sensitive(key: object) -> bool:
    return str(key).replace("_", "").lower() in _SENSITIVE_KEYS


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a JSON-friendly copy of *value* with secrets masked.

    Pydantic models are dumped by alias first; enums and datetimes are
    flattened to their wire form.
    """
    if _depth > 20:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)

    nested = _depth + 1
    if isinstance(value, Mapping):
        return {
            str(k): _REDACTED if _is_sensitive(k) else redact_for_log(v, max_string=max_string, _depth=nested)
            for k, v in value.items()
        }
    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=nested) for v in value]
    return repr(value)
