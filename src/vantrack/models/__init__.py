"""Data models for the custody-transfer core."""

from vantrack.models._base import Coordinates, Timestamp, VantrackBaseModel, parse_timestamp
from vantrack.models.dashboard import StudentDashboard
from vantrack.models.location import Breadcrumb, PositionReport
from vantrack.models.student import GUARDIAN_CODE_PATTERN, Student, StudentStatus
from vantrack.models.vehicle import Vehicle, VehiclePosition, VehicleStatus
from vantrack.models.verification import (
    AuditAction,
    Claim,
    Outcome,
    PinClaim,
    QrClaim,
    TransitAction,
    VerificationEvent,
    VerificationMethod,
    VerificationRequest,
    VerificationResult,
)

__all__ = [
    "AuditAction",
    "Breadcrumb",
    "Claim",
    "Coordinates",
    "GUARDIAN_CODE_PATTERN",
    "Outcome",
    "PinClaim",
    "PositionReport",
    "QrClaim",
    "Student",
    "StudentDashboard",
    "StudentStatus",
    "Timestamp",
    "TransitAction",
    "VantrackBaseModel",
    "Vehicle",
    "VehiclePosition",
    "VehicleStatus",
    "VerificationEvent",
    "VerificationMethod",
    "VerificationRequest",
    "VerificationResult",
    "parse_timestamp",
]
