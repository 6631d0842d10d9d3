"""Once-a-day fleet reset."""

from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from vantrack.config import VantrackConfig
from vantrack.credentials import CredentialStore
from vantrack.exceptions import SchedulerBatchError
from vantrack.models._base import utcnow
from vantrack.state.store import TransitStore
from vantrack.transit import TransitStateMachine

_logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ResetReport:
    students_reset: int
    started_at: dt.datetime
    finished_at: dt.datetime


class DailyResetScheduler:
    """Reset every student to ``waiting`` and rotate every guardian code.

    :meth:`run_once` is the idempotent batch (safe to trigger by hand);
    :meth:`start` runs it at ``config.reset_time`` in ``config.time_zone``
    every day. Clock and sleep are injectable.
    """

    def __init__(
        self,
        store: TransitStore,
        *,
        credentials: CredentialStore,
        transit: TransitStateMachine,
        config: VantrackConfig | None = None,
        clock: Callable[[], dt.datetime] = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._credentials = credentials
        self._transit = transit
        self._config = config or VantrackConfig()
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self.last_report: ResetReport | None = None
        self.last_error: SchedulerBatchError | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run_at(self, now: dt.datetime | None = None) -> dt.datetime:
        """Next occurrence of the reset time strictly after *now*, in the fleet's zone."""
        tz = self._config.tz
        local = (now or self._clock()).astimezone(tz)
        candidate = dt.datetime.combine(local.date(), self._config.reset_time, tzinfo=tz)
        if candidate <= local:
            candidate = dt.datetime.combine(local.date() + dt.timedelta(days=1), self._config.reset_time, tzinfo=tz)
        return candidate

    async def run_once(self) -> ResetReport:
        """Reset all students as one bulk unit of work.

        On failure nothing is committed and :class:`SchedulerBatchError`
        carries the number of rows processed before the failure.
        """
        started = self._clock()
        students = sorted(self._store.students(), key=lambda s: s.id)
        processed = 0
        async with contextlib.AsyncExitStack() as stack:
            for student in students:
                await stack.enter_async_context(self._store.lock_for(student.id))
            try:
                with self._store.unit_of_work():
                    for student in students:
                        self._transit.reset_student(student.id)
                        self._credentials.rotate_guardian_code(student.id)
                        processed += 1
            except Exception as exc:
                raise SchedulerBatchError(
                    f"Daily reset failed after {processed} of {len(students)} students: {exc}",
                    affected_rows=processed,
                ) from exc

        report = ResetReport(students_reset=processed, started_at=started, finished_at=self._clock())
        self.last_report = report
        _logger.info("Daily reset complete students=%d", processed)
        return report

    async def _run_logged(self) -> None:
        try:
            await self.run_once()
        except SchedulerBatchError as exc:
            self.last_error = exc
            _logger.exception("Daily reset failed affected_rows=%d", exc.affected_rows)
        except Exception:
            _logger.exception("Daily reset crashed")

    async def _loop(self) -> None:
        while True:
            now = self._clock()
            target = self.next_run_at(now)
            delay = max(0.0, (target - now).total_seconds())
            _logger.debug("Next daily reset at %s (in %.0fs)", target.isoformat(), delay)
            await self._sleep(delay)
            await self._run_logged()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="vantrack-daily-reset")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
