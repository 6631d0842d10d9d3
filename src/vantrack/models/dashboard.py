"""Guardian-facing read model."""

from __future__ import annotations

from vantrack.models._base import Coordinates, Timestamp, VantrackBaseModel
from vantrack.models.student import Student, StudentStatus
from vantrack.models.vehicle import Vehicle


class StudentDashboard(VantrackBaseModel):
    student_id: str
    status: StudentStatus
    on_board: bool
    guardian_code: str
    handover_token: str
    vehicle_id: str | None = None
    vehicle_position: Coordinates | None = None
    vehicle_speed: int = 0
    location_name: str | None = None
    position_updated_at: Timestamp = None

    @classmethod
    def build(cls, student: Student, vehicle: Vehicle | None) -> StudentDashboard:
        position = vehicle.position if vehicle is not None else None
        return cls(
            student_id=student.id,
            status=student.status,
            on_board=student.on_board,
            guardian_code=student.guardian_code,
            handover_token=student.handover_token,
            vehicle_id=vehicle.id if vehicle is not None else None,
            vehicle_position=position.coordinates if position is not None else None,
            vehicle_speed=position.speed if position is not None else 0,
            location_name=position.location_name if position is not None else None,
            position_updated_at=position.updated_at if position is not None else None,
        )
