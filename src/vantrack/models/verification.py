"""Custody-transfer claims, audit events and verification results."""

from __future__ import annotations

import enum
import uuid
from typing import Annotated, Literal

from pydantic import Field

from vantrack.models._base import Coordinates, Timestamp, VantrackBaseModel, utcnow
from vantrack.models.student import StudentStatus

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class VerificationMethod(enum.StrEnum):
    PIN = "PIN"
    QR = "QR"


class TransitAction(enum.StrEnum):
    """Action an operator claims, named after the status it produces."""

    PICKED_UP = "picked_up"
    DROPPED_OFF = "dropped_off"

    @property
    def status(self) -> StudentStatus:
        return StudentStatus(self.value)

    @property
    def audit_action(self) -> AuditAction:
        return AuditAction.PICKUP if self is TransitAction.PICKED_UP else AuditAction.DROPOFF


class AuditAction(enum.StrEnum):
    """``action_type`` as written to the audit ledger."""

    PICKUP = "pickup"
    DROPOFF = "dropoff"


class Outcome(enum.StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


# ------------------------------------------------------------------
# Claims
# ------------------------------------------------------------------


class PinClaim(VantrackBaseModel):
    """Manual verification with the guardian's rotating 6-digit code."""

    method: Literal["PIN"] = "PIN"
    pin: str = ""


class QrClaim(VantrackBaseModel):
    """Verification by scanning the student's handover token."""

    method: Literal["QR"] = "QR"
    scanned_token: str = ""


Claim = Annotated[PinClaim | QrClaim, Field(discriminator="method")]


class VerificationRequest(VantrackBaseModel):
    student_id: str
    operator_id: str
    action: TransitAction
    claim: Claim
    coordinates: Coordinates | None = None

    @property
    def method(self) -> VerificationMethod:
        return VerificationMethod(self.claim.method)


# ------------------------------------------------------------------
# Ledger entry / result
# ------------------------------------------------------------------


class VerificationEvent(VantrackBaseModel):
    """Immutable audit ledger entry."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    student_id: str
    operator_id: str
    vehicle_id: str | None = None
    method: VerificationMethod
    action_type: AuditAction
    outcome: Outcome
    coordinates: Coordinates | None = None
    timestamp: Timestamp = Field(default_factory=utcnow)
    reason: str | None = None
    """Why a failed attempt was rejected."""


class VerificationResult(VantrackBaseModel):
    success: bool
    student_id: str
    status: StudentStatus
    on_board: bool
    event_id: str
    message: str = ""
