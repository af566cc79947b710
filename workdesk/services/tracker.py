"""In-process work-session tracker used by views of one (project, member) pair.

The store stays the source of truth. The tracker keeps the last confirmed
state plus an optional pending (optimistic) state, allows one mutating call at
a time, and owns the periodic refresh of the live timer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Protocol

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..config import get_settings
from ..timeutils import utcnow
from . import work_store
from .work_sessions import (
    WorkEventType,
    WorkSessionError,
    WorkSessionState,
    WorkStatus,
    check_transition,
    elapsed_seconds,
)

logger = logging.getLogger(__name__)

BUSY = "busy"
TIMEOUT = "timeout"


class WorkEventStore(Protocol):
    async def record_work_event(
        self,
        project_id: int,
        member_id: int,
        event_type: WorkEventType,
        note: str | None = None,
    ) -> work_store.WorkEventResult: ...

    async def get_session_state(self, project_id: int, member_id: int) -> WorkSessionState | None: ...


class DatabaseWorkEventStore:
    """Async adapter over :mod:`work_store`; each call gets its own DB session."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _call(self, func, *args, **kwargs):
        with self._session_factory() as db:
            return func(db, *args, **kwargs)

    async def record_work_event(self, project_id, member_id, event_type, note=None):
        return await run_in_threadpool(
            self._call, work_store.record_work_event, project_id, member_id, event_type, note
        )

    async def get_session_state(self, project_id, member_id):
        return await run_in_threadpool(self._call, work_store.get_session_state, project_id, member_id)


@dataclass(frozen=True)
class TrackerSnapshot:
    status: WorkStatus
    running_since: datetime | None
    accumulated_seconds: float
    is_updating: bool


@dataclass(frozen=True)
class TransitionOutcome:
    ok: bool
    state: WorkSessionState
    error: str | None = None
    error_code: str | None = None


class WorkSessionTracker:
    def __init__(
        self,
        project_id: int,
        member_id: int,
        store: WorkEventStore,
        initial_state: WorkSessionState | None = None,
        clock: Callable[[], datetime] = utcnow,
        timeout: float | None = None,
    ):
        self.project_id = project_id
        self.member_id = member_id
        self._store = store
        self._clock = clock
        self._timeout = timeout if timeout is not None else get_settings().store_timeout_seconds
        self.confirmed_state = initial_state or WorkSessionState()
        self.pending_state: WorkSessionState | None = None
        self._in_flight = False
        self._listeners: list[Callable[[TrackerSnapshot], None]] = []

    @property
    def is_updating(self) -> bool:
        return self._in_flight

    @property
    def state(self) -> WorkSessionState:
        return self.reconcile()

    def reconcile(self) -> WorkSessionState:
        """Displayed state: the optimistic shadow when present, else the confirmed one."""
        return self.pending_state if self.pending_state is not None else self.confirmed_state

    def snapshot(self) -> TrackerSnapshot:
        shown = self.reconcile()
        return TrackerSnapshot(
            status=shown.status,
            running_since=shown.running_since,
            accumulated_seconds=shown.accumulated_seconds,
            is_updating=self._in_flight,
        )

    def subscribe(self, listener: Callable[[TrackerSnapshot], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Work session listener failed for project=%s user=%s", self.project_id, self.member_id)

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        return elapsed_seconds(self.reconcile(), now or self._clock())

    def _fail(self, message: str, code: str) -> TransitionOutcome:
        return TransitionOutcome(ok=False, state=self.reconcile(), error=message, error_code=code)

    async def transition(self, event_type: WorkEventType | str, note: str | None = None) -> TransitionOutcome:
        if self._in_flight:
            logger.info("Ignoring %s for project=%s user=%s: update in flight", event_type, self.project_id, self.member_id)
            return self._fail("Another work update is still in progress", BUSY)

        try:
            kind = WorkEventType(event_type)
        except ValueError:
            return self._fail(f"Unknown work event: {event_type}", work_store.INVALID_EVENT)
        try:
            check_transition(self.confirmed_state, kind, note)
        except WorkSessionError as exc:
            logger.info("Rejected %s for project=%s user=%s: %s", kind.value, self.project_id, self.member_id, exc)
            return self._fail(str(exc), exc.code)

        self._in_flight = True
        if kind is WorkEventType.START:
            now = self._clock()
            self.pending_state = WorkSessionState(
                status=WorkStatus.START,
                running_since=now,
                accumulated_seconds=0.0,
                cycle=self.confirmed_state.cycle + 1,
            )
        self._notify()

        try:
            result = await asyncio.wait_for(
                self._store.record_work_event(self.project_id, self.member_id, kind, note),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            # the store may still have committed; show whatever it holds now
            result = work_store.WorkEventResult(
                session_state=await self._reload_after_timeout(),
                error="Work update timed out",
                error_code=TIMEOUT,
            )
        except asyncio.CancelledError:
            logger.info("Work %s cancelled for project=%s user=%s", kind.value, self.project_id, self.member_id)
            self._in_flight = False
            self.pending_state = None
            self._notify()
            raise
        except Exception as exc:
            logger.exception("Work store call failed for project=%s user=%s", self.project_id, self.member_id)
            result = work_store.WorkEventResult(error=str(exc) or "Work update failed", error_code=work_store.STORE_FAILURE)
        finally:
            self._in_flight = False
            self.pending_state = None

        if result.session_state is not None:
            self.confirmed_state = result.session_state
        if not result.ok:
            logger.warning(
                "Work %s failed for project=%s user=%s: %s; showing confirmed state",
                kind.value,
                self.project_id,
                self.member_id,
                result.error,
            )
            self._notify()
            return TransitionOutcome(
                ok=False, state=self.confirmed_state, error=result.error, error_code=result.error_code
            )

        self._notify()
        return TransitionOutcome(ok=True, state=self.confirmed_state)

    async def _reload_after_timeout(self) -> WorkSessionState | None:
        try:
            return await asyncio.wait_for(
                self._store.get_session_state(self.project_id, self.member_id), timeout=self._timeout
            )
        except Exception:
            logger.warning(
                "Could not reload work state after timeout for project=%s user=%s",
                self.project_id,
                self.member_id,
                exc_info=True,
            )
            return None

    async def refresh(self) -> WorkSessionState:
        if self._in_flight:
            return self.reconcile()
        state = await self._store.get_session_state(self.project_id, self.member_id)
        if state is not None:
            self.confirmed_state = state
            self._notify()
        return self.confirmed_state

    @contextlib.asynccontextmanager
    async def live_ticker(
        self,
        callback: Callable[[float], Awaitable[None] | None],
        interval: float | None = None,
    ) -> AsyncIterator[LiveTicker]:
        ticker = LiveTicker(self, callback, interval or get_settings().live_tick_seconds)
        ticker.start()
        try:
            yield ticker
        finally:
            await ticker.stop()


class LiveTicker:
    """One periodic refresh task per open view; ends when the session stops running."""

    def __init__(self, tracker: WorkSessionTracker, callback, interval: float):
        self._tracker = tracker
        self._callback = callback
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._stopping: set[asyncio.Task] = set()
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._tracker.subscribe(self._on_change)
        self._on_change(self._tracker.snapshot())

    def _on_change(self, snapshot: TrackerSnapshot) -> None:
        if snapshot.status is WorkStatus.START and not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
            self._task.add_done_callback(self._reap)
        elif snapshot.status is not WorkStatus.START and self.running:
            self._cancel()

    def _cancel(self) -> None:
        task, self._task = self._task, None
        task.cancel()
        if not task.done():
            self._stopping.add(task)

    def _reap(self, task: asyncio.Task) -> None:
        self._stopping.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Live ticker stopped for project=%s user=%s",
                self._tracker.project_id,
                self._tracker.member_id,
                exc_info=task.exception(),
            )

    async def _run(self) -> None:
        while self._tracker.reconcile().status is WorkStatus.START:
            outcome = self._callback(self._tracker.elapsed_seconds())
            if asyncio.iscoroutine(outcome):
                await outcome
            await asyncio.sleep(self._interval)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._task is not None:
            self._cancel()
        if self._stopping:
            await asyncio.gather(*self._stopping, return_exceptions=True)
