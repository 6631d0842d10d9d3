"""Normalization helpers.

Centralizes lenient parsing of client payloads and the movement
arithmetic shared by the broadcaster.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def moved_beyond(
    previous: tuple[float, float] | None,
    current: tuple[float, float],
    threshold_deg: float,
) -> bool:
    """True when *current* differs from *previous* by more than *threshold_deg* on either axis.

    A missing *previous* point always counts as moved (first sample of a session).
    """
    if previous is None:
        return True
    return abs(current[0] - previous[0]) > threshold_deg or abs(current[1] - previous[1]) > threshold_deg


def short_place_name(display_name: Any, parts: int = 2) -> str | None:
    """Keep the first *parts* comma-separated components of a geocoder display name."""
    text = safe_str(display_name)
    if text is None:
        return None
    pieces = [p.strip() for p in text.split(",") if p.strip()]
    if not pieces:
        return None
    return ", ".join(pieces[:parts])
