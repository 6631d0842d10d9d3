"""Append-only ledger of verification outcomes."""

from __future__ import annotations

import logging

from vantrack.models.verification import AuditAction, Outcome, VerificationEvent
from vantrack.state.store import TransitStore

_logger = logging.getLogger(__name__)


class AuditLedger:
    """Write and query :class:`VerificationEvent` rows.

    There is deliberately no update or delete operation.
    """

    def __init__(self, store: TransitStore) -> None:
        self._store = store

    def append(self, event: VerificationEvent) -> VerificationEvent:
        self._store.append_event(event)
        _logger.debug(
            "Audit append id=%s student=%s action=%s method=%s outcome=%s",
            event.id,
            event.student_id,
            event.action_type,
            event.method,
            event.outcome,
        )
        return event

    def events(self) -> list[VerificationEvent]:
        """All events in append order."""
        return self._store.events()

    def history(self, student_id: str, *, limit: int | None = None) -> list[VerificationEvent]:
        """Events for one student, newest first."""
        # Ties keep reverse append order.
        rows = [e for e in reversed(self._store.events()) if e.student_id == student_id]
        rows.sort(key=lambda e: e.timestamp, reverse=True)
        return rows[:limit] if limit is not None else rows

    def count(
        self,
        *,
        student_id: str | None = None,
        action_type: AuditAction | None = None,
        outcome: Outcome | None = None,
    ) -> int:
        return sum(
            1
            for e in self._store.events()
            if (student_id is None or e.student_id == student_id)
            and (action_type is None or e.action_type == action_type)
            and (outcome is None or e.outcome == outcome)
        )
