"""vantrack - custody-transfer core for school transport fleets."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vantrack")
except PackageNotFoundError:
    __version__ = "0+local"
from vantrack.audit import AuditLedger
from vantrack.broadcaster import LocationBroadcaster
from vantrack.config import MqttSettings, VantrackConfig
from vantrack.core import TransitCore
from vantrack.credentials import CredentialStore, generate_guardian_code
from vantrack.exceptions import (
    GeocodingError,
    InvalidCredentialError,
    NotFoundError,
    SchedulerBatchError,
    StudentNotFoundError,
    TransientStoreError,
    VantrackConfigError,
    VantrackError,
    VehicleNotFoundError,
)
from vantrack.gateway import VerificationGateway
from vantrack.models import (
    AuditAction,
    Breadcrumb,
    Coordinates,
    Outcome,
    PinClaim,
    PositionReport,
    QrClaim,
    Student,
    StudentDashboard,
    StudentStatus,
    TransitAction,
    Vehicle,
    VehiclePosition,
    VehicleStatus,
    VerificationEvent,
    VerificationMethod,
    VerificationRequest,
    VerificationResult,
)
from vantrack.proximity import ProximityAlert, ProximityMonitor, haversine_km
from vantrack.scheduler import DailyResetScheduler, ResetReport
from vantrack.state.store import TransitStore
from vantrack.transit import TransitStateMachine

__all__ = [
    "__version__",
    "AuditAction",
    "AuditLedger",
    "Breadcrumb",
    "Coordinates",
    "CredentialStore",
    "DailyResetScheduler",
    "GeocodingError",
    "InvalidCredentialError",
    "LocationBroadcaster",
    "MqttSettings",
    "NotFoundError",
    "Outcome",
    "PinClaim",
    "PositionReport",
    "ProximityAlert",
    "ProximityMonitor",
    "QrClaim",
    "ResetReport",
    "SchedulerBatchError",
    "Student",
    "StudentDashboard",
    "StudentNotFoundError",
    "StudentStatus",
    "TransientStoreError",
    "TransitAction",
    "TransitCore",
    "TransitStateMachine",
    "TransitStore",
    "VantrackConfig",
    "VantrackConfigError",
    "VantrackError",
    "Vehicle",
    "VehicleNotFoundError",
    "VehiclePosition",
    "VehicleStatus",
    "VerificationEvent",
    "VerificationGateway",
    "VerificationMethod",
    "VerificationRequest",
    "VerificationResult",
    "generate_guardian_code",
    "haversine_km",
]
