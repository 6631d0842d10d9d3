"""In-memory authoritative store.

Records are immutable pydantic models; a write replaces the record with a
re-validated copy, so model invariants (``on_board`` vs ``status``, the
6-digit guardian code) are checked on every mutation.
"""

from __future__ import annotations

import asyncio
import contextlib
import contextvars
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from vantrack.exceptions import (
    StudentNotFoundError,
    TransientStoreError,
    VantrackError,
    VehicleNotFoundError,
)
from vantrack.models.location import Breadcrumb
from vantrack.models.student import Student
from vantrack.models.vehicle import Vehicle
from vantrack.models.verification import VerificationEvent
from vantrack.state.events import ChangeEvent, ChangeKind

_logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ChangeListener = Callable[[ChangeEvent], None]

# Sentinel for "row did not exist before this unit of work".
_ABSENT = object()


def _replace(model: M, changes: dict[str, Any]) -> M:
    """Return a validated copy of *model* with *changes* applied."""
    data = model.model_dump()
    data.update(changes)
    return type(model).model_validate(data)


@dataclass
class UnitOfWork:
    """Undo log for one atomic group of writes.

    Only rows touched inside the unit are restored on rollback, so
    concurrent units on other rows are never clobbered.
    """

    students: dict[str, Any] = field(default_factory=dict)
    vehicles: dict[str, Any] = field(default_factory=dict)
    event_ids: list[str] = field(default_factory=list)
    breadcrumbs: list[tuple[str, Breadcrumb]] = field(default_factory=list)
    changes: list[ChangeEvent] = field(default_factory=list)


class TransitStore:
    """Single authoritative store for students, vehicles, breadcrumbs and the ledger."""

    def __init__(self) -> None:
        self._students: dict[str, Student] = {}
        self._vehicles: dict[str, Vehicle] = {}
        self._breadcrumbs: dict[str, list[Breadcrumb]] = {}
        self._events: list[VerificationEvent] = []
        self._locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[ChangeListener] = []
        self._uow: contextvars.ContextVar[UnitOfWork | None] = contextvars.ContextVar(
            f"vantrack_uow_{id(self)}", default=None
        )

    # ------------------------------------------------------------------
    # Provisioning (fed by the external roster layer)
    # ------------------------------------------------------------------

    def add_student(self, student: Student) -> None:
        self._students[student.id] = student

    def add_vehicle(self, vehicle: Vehicle) -> None:
        self._vehicles[vehicle.id] = vehicle

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_student(self, student_id: str) -> Student | None:
        return self._students.get(student_id)

    def get_student(self, student_id: str) -> Student:
        student = self._students.get(student_id)
        if student is None:
            raise StudentNotFoundError(f"Student {student_id!r} not found", entity_id=student_id)
        return student

    def find_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return self._vehicles.get(vehicle_id)

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        vehicle = self._vehicles.get(vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError(f"Vehicle {vehicle_id!r} not found", entity_id=vehicle_id)
        return vehicle

    def students(self) -> list[Student]:
        return list(self._students.values())

    def students_for_vehicle(self, vehicle_id: str) -> list[Student]:
        return [s for s in self._students.values() if s.assigned_vehicle_id == vehicle_id]

    def events(self) -> list[VerificationEvent]:
        return list(self._events)

    def breadcrumbs(self, vehicle_id: str) -> list[Breadcrumb]:
        return list(self._breadcrumbs.get(vehicle_id, ()))

    # ------------------------------------------------------------------
    # Per-student serialization
    # ------------------------------------------------------------------

    def lock_for(self, student_id: str) -> asyncio.Lock:
        """Per-student lock, created only for provisioned students."""
        lock = self._locks.get(student_id)
        if lock is None:
            self.get_student(student_id)
            lock = asyncio.Lock()
            self._locks[student_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        with contextlib.suppress(ValueError):
            self._listeners.remove(listener)

    def _publish(self, changes: list[ChangeEvent]) -> None:
        for change in changes:
            for listener in list(self._listeners):
                try:
                    listener(change)
                except Exception:
                    _logger.exception("Change listener failed kind=%s id=%s", change.kind, change.entity_id)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """Group writes so they commit or roll back together.

        Nested calls join the outer unit. Any exception rolls back every
        row touched in the unit; non-vantrack exceptions are re-raised as
        :class:`TransientStoreError`.
        """
        current = self._uow.get()
        if current is not None:
            yield current
            return

        uow = UnitOfWork()
        token = self._uow.set(uow)
        try:
            yield uow
        except BaseException as exc:
            self._rollback(uow)
            if isinstance(exc, (VantrackError, ValidationError)) or not isinstance(exc, Exception):
                raise
            raise TransientStoreError(f"Store write failed: {exc}") from exc
        finally:
            self._uow.reset(token)
        self._publish(uow.changes)

    def _rollback(self, uow: UnitOfWork) -> None:
        for student_id, original in uow.students.items():
            if original is _ABSENT:
                self._students.pop(student_id, None)
            else:
                self._students[student_id] = original
        for vehicle_id, original in uow.vehicles.items():
            if original is _ABSENT:
                self._vehicles.pop(vehicle_id, None)
            else:
                self._vehicles[vehicle_id] = original
        if uow.event_ids:
            dropped = set(uow.event_ids)
            self._events = [e for e in self._events if e.id not in dropped]
        for vehicle_id, crumb in uow.breadcrumbs:
            trail = self._breadcrumbs.get(vehicle_id)
            if trail and crumb in trail:
                trail.remove(crumb)
        _logger.debug(
            "Rolled back unit of work students=%d vehicles=%d events=%d breadcrumbs=%d",
            len(uow.students),
            len(uow.vehicles),
            len(uow.event_ids),
            len(uow.breadcrumbs),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_student(self, student_id: str, **changes: Any) -> Student:
        """Apply *changes* to a student, bumping its version."""
        with self.unit_of_work() as uow:
            current = self.get_student(student_id)
            updated = _replace(current, {**changes, "version": current.version + 1})
            uow.students.setdefault(student_id, current)
            self._write_student(updated)
            if current.status != updated.status or current.on_board != updated.on_board:
                uow.changes.append(
                    ChangeEvent(
                        kind=ChangeKind.STUDENT_STATUS,
                        entity_id=student_id,
                        vehicle_id=updated.assigned_vehicle_id,
                        data={"status": updated.status.value, "onBoard": updated.on_board},
                    )
                )
            return updated

    def update_vehicle(self, vehicle_id: str, **changes: Any) -> Vehicle:
        with self.unit_of_work() as uow:
            current = self.get_vehicle(vehicle_id)
            updated = _replace(current, changes)
            uow.vehicles.setdefault(vehicle_id, current)
            self._write_vehicle(updated)
            if current.position != updated.position:
                uow.changes.append(
                    ChangeEvent(
                        kind=ChangeKind.VEHICLE_POSITION,
                        entity_id=vehicle_id,
                        vehicle_id=vehicle_id,
                        data=updated.position.to_json_dict(),
                    )
                )
            if current.operational_status != updated.operational_status:
                uow.changes.append(
                    ChangeEvent(
                        kind=ChangeKind.VEHICLE_STATUS,
                        entity_id=vehicle_id,
                        vehicle_id=vehicle_id,
                        data={"operationalStatus": updated.operational_status.value},
                    )
                )
            return updated

    def append_event(self, event: VerificationEvent) -> None:
        with self.unit_of_work() as uow:
            self._write_event(event)
            uow.event_ids.append(event.id)

    def append_breadcrumb(self, crumb: Breadcrumb) -> None:
        with self.unit_of_work() as uow:
            self._write_breadcrumb(crumb)
            uow.breadcrumbs.append((crumb.vehicle_id, crumb))

    # Physical writes. A persistent backend overrides these; any exception
    # they raise aborts the enclosing unit of work.

    def _write_student(self, student: Student) -> None:
        self._students[student.id] = student

    def _write_vehicle(self, vehicle: Vehicle) -> None:
        self._vehicles[vehicle.id] = vehicle

    def _write_event(self, event: VerificationEvent) -> None:
        self._events.append(event)

    def _write_breadcrumb(self, crumb: Breadcrumb) -> None:
        self._breadcrumbs.setdefault(crumb.vehicle_id, []).append(crumb)
