from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from vantrack.models import (
    PinClaim,
    PositionReport,
    QrClaim,
    Student,
    StudentDashboard,
    StudentStatus,
    Vehicle,
    VehiclePosition,
    VerificationMethod,
    VerificationRequest,
)


def test_student_parses_camel_case_payload() -> None:
    student = Student.model_validate(
        {
            "id": "stu-1",
            "guardianCode": 482913,
            "handoverToken": "tok-1",
            "assignedVehicleId": "van-1",
            "homeLocation": {"lat": 0.33, "lng": 32.6},
            "status": "picked_up",
            "onBoard": True,
        }
    )

    assert student.guardian_code == "482913"
    assert student.status == StudentStatus.PICKED_UP
    assert student.home_location is not None and student.home_location.as_tuple() == (0.33, 32.6)


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": "picked_up", "on_board": False},
        {"status": "waiting", "on_board": True},
        {"guardian_code": "12345"},
        {"guardian_code": "12a456"},
        {"handover_token": "   "},
    ],
)
def test_student_invariants(overrides: dict[str, object]) -> None:
    data: dict[str, object] = {"id": "stu-1", "guardian_code": "482913", "handover_token": "tok-1"}
    data.update(overrides)
    with pytest.raises(ValidationError):
        Student.model_validate(data)


def test_position_report_aliases_and_epoch_millis() -> None:
    report = PositionReport.model_validate(
        {"latitude": "0.31", "longitude": 32.58, "gpsSpeed": "--", "course": 90, "time": 1772434800000}
    )

    assert (report.lat, report.lng) == (0.31, 32.58)
    assert report.speed is None
    assert report.heading == 90.0
    assert report.timestamp == datetime(2026, 3, 2, 7, 0, tzinfo=UTC)


def test_position_report_rejects_out_of_range() -> None:
    with pytest.raises(ValidationError):
        PositionReport(lat=91.0, lng=0.0)


def test_claim_discriminator() -> None:
    request = VerificationRequest.model_validate(
        {
            "studentId": "stu-1",
            "operatorId": "op-1",
            "action": "dropped_off",
            "claim": {"method": "QR", "scannedToken": "tok-1"},
        }
    )

    assert isinstance(request.claim, QrClaim)
    assert request.method == VerificationMethod.QR
    assert isinstance(
        VerificationRequest(student_id="s", operator_id="o", action="picked_up", claim=PinClaim(pin="1")).claim,
        PinClaim,
    )


def test_dashboard_json_shape() -> None:
    student = Student(id="stu-1", guardian_code="482913", handover_token="tok-1", assigned_vehicle_id="van-1")
    vehicle = Vehicle(
        id="van-1",
        position=VehiclePosition(lat=0.31, lng=32.58, speed=42, location_name="Kampala Road, Nakasero"),
    )

    body = StudentDashboard.build(student, vehicle).to_json_dict()

    assert body["status"] == "waiting"
    assert body["onBoard"] is False
    assert body["guardianCode"] == "482913"
    assert body["handoverToken"] == "tok-1"
    assert body["vehiclePosition"] == {"lat": 0.31, "lng": 32.58}
    assert body["vehicleSpeed"] == 42
    assert body["locationName"] == "Kampala Road, Nakasero"


def test_dashboard_without_vehicle() -> None:
    student = Student(id="stu-1", guardian_code="482913", handover_token="tok-1")

    dashboard = StudentDashboard.build(student, None)

    assert dashboard.vehicle_position is None
    assert dashboard.vehicle_speed == 0


def test_handover_token_is_stored_exactly_as_issued() -> None:
    student = Student(id=" stu-1 ", guardian_code="482913", handover_token=" TKN-7F3 ")

    assert student.handover_token == " TKN-7F3 "
    assert student.id == "stu-1"
