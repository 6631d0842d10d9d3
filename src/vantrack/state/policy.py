"""Acceptance rules applied by the store before a write."""

from __future__ import annotations

from datetime import datetime


def should_accept_sample(
    *,
    last_applied_at: datetime | None,
    incoming_at: datetime | None,
) -> bool:
    """Accept a position sample unless it is strictly older than the last applied one.

    Equal timestamps are accepted so duplicate device pushes still refresh the cell.
    """
    if last_applied_at is None or incoming_at is None:
        return True
    return incoming_at >= last_applied_at


def on_board_for(status: str) -> bool:
    return status == "picked_up"
