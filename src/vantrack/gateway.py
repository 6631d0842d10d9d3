"""Verification gateway: the only path allowed to request a custody transition."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Callable
from datetime import datetime

from vantrack._redact import redact_for_log
from vantrack.audit import AuditLedger
from vantrack.credentials import CredentialStore
from vantrack.exceptions import InvalidCredentialError
from vantrack.models._base import utcnow
from vantrack.models.student import Student
from vantrack.models.verification import (
    Outcome,
    PinClaim,
    QrClaim,
    TransitAction,
    VerificationEvent,
    VerificationRequest,
    VerificationResult,
)
from vantrack.state.store import TransitStore
from vantrack.transit import TransitStateMachine

_logger = logging.getLogger(__name__)


def _matches(submitted: str, expected: str) -> bool:
    if not submitted or not expected:
        return False
    return hmac.compare_digest(submitted.encode("utf-8"), expected.encode("utf-8"))


def check_claim(student: Student, claim: PinClaim | QrClaim) -> str | None:
    """Return ``None`` when *claim* authorizes a transfer for *student*, else a rejection reason.

    QR tokens must match exactly. PIN codes are compared after trimming
    whitespace on both sides. The two paths never fall back to each other.
    """
    match claim:
        case QrClaim(scanned_token=token):
            if _matches(token, student.handover_token):
                return None
            return "handover token mismatch"
        case PinClaim(pin=pin):
            if _matches(pin.strip(), student.guardian_code.strip()):
                return None
            return "guardian code mismatch" if pin.strip() else "guardian code missing"
    raise TypeError(f"unsupported claim type {type(claim).__name__}")


class VerificationGateway:
    """Validate a custody-transfer claim and apply it atomically.

    On acceptance the status transition, the guardian-code rotation (pickups
    only) and the success audit row are committed in one unit of work under
    the student's lock. On rejection a failure row is audited and
    :class:`InvalidCredentialError` is raised.
    """

    def __init__(
        self,
        store: TransitStore,
        *,
        transit: TransitStateMachine,
        credentials: CredentialStore,
        ledger: AuditLedger,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._transit = transit
        self._credentials = credentials
        self._ledger = ledger
        self._clock = clock

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        _logger.debug("Verification requested %s", redact_for_log(request))
        async with self._store.lock_for(request.student_id):
            student = self._store.get_student(request.student_id)
            reason = check_claim(student, request.claim)
            if reason is not None:
                self._record_failure(request, student, reason)
                _logger.warning(
                    "Verification rejected student=%s method=%s action=%s reason=%s",
                    request.student_id,
                    request.method,
                    request.action,
                    reason,
                )
                raise InvalidCredentialError(
                    f"Verification failed: {reason}",
                    student_id=request.student_id,
                    method=request.method.value,
                )

            with self._store.unit_of_work():
                updated = self._transit.apply_transition(student.id, request.action)
                if request.action is TransitAction.PICKED_UP:
                    self._credentials.rotate_guardian_code(student.id)
                event = self._ledger.append(self._event(request, student, Outcome.SUCCESS))

        _logger.info(
            "Verification accepted student=%s action=%s method=%s",
            student.id,
            request.action,
            request.method,
        )
        verb = "boarding" if request.action is TransitAction.PICKED_UP else "drop-off"
        return VerificationResult(
            success=True,
            student_id=student.id,
            status=updated.status,
            on_board=updated.on_board,
            event_id=event.id,
            message=f"{student.name or student.id} {verb} verified.",
        )

    def _event(
        self,
        request: VerificationRequest,
        student: Student,
        outcome: Outcome,
        reason: str | None = None,
    ) -> VerificationEvent:
        return VerificationEvent(
            student_id=student.id,
            operator_id=request.operator_id,
            vehicle_id=student.assigned_vehicle_id,
            method=request.method,
            action_type=request.action.audit_action,
            outcome=outcome,
            coordinates=request.coordinates,
            timestamp=self._clock(),
            reason=reason,
        )

    def _record_failure(self, request: VerificationRequest, student: Student, reason: str) -> None:
        self._ledger.append(self._event(request, student, Outcome.FAILURE, reason))
