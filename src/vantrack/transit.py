"""Board/alight state machine for students, plus route finishing."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from vantrack.models._base import utcnow
from vantrack.models.student import Student, StudentStatus
from vantrack.models.vehicle import VehiclePosition, VehicleStatus
from vantrack.models.verification import TransitAction
from vantrack.state.policy import on_board_for
from vantrack.state.store import TransitStore

_logger = logging.getLogger(__name__)


class TransitStateMachine:
    """Apply custody transitions.

    Transitions are last-write-wins: no precondition on the current status
    is checked, and repeating a transition applies it again. Callers that
    need serialization hold :meth:`TransitStore.lock_for`.
    """

    def __init__(self, store: TransitStore, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._store = store
        self._clock = clock

    def apply_transition(self, student_id: str, action: TransitAction) -> Student:
        action = TransitAction(action)
        status = action.status
        stamp_field = "last_pickup_time" if action is TransitAction.PICKED_UP else "last_dropoff_time"
        student = self._store.update_student(
            student_id,
            status=status,
            on_board=on_board_for(status),
            **{stamp_field: self._clock()},
        )
        _logger.debug("Transition student=%s -> %s", student_id, status.value)
        return student

    def reset_student(self, student_id: str) -> Student:
        """Force the start-of-day state (``waiting``, not on board)."""
        return self._store.update_student(student_id, status=StudentStatus.WAITING, on_board=False)

    def finish_route(self, vehicle_id: str) -> int:
        """End a shift: park the vehicle, clear its position, reset its students.

        Guardian codes are not rotated. Returns the number of students reset.
        """
        with self._store.unit_of_work():
            self._store.get_vehicle(vehicle_id)
            self._store.update_vehicle(
                vehicle_id,
                operational_status=VehicleStatus.PARKED,
                position=VehiclePosition.shift_ended().model_copy(update={"updated_at": self._clock()}),
            )
            students = self._store.students_for_vehicle(vehicle_id)
            for student in students:
                self.reset_student(student.id)
        _logger.info("Route finished vehicle=%s students_reset=%d", vehicle_id, len(students))
        return len(students)
