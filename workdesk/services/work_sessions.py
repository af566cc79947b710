"""Work-session state machine for one staff member on one project.

The machine is pure: callers hand in the current state and a timestamp and get
a new state back. Persistence lives in :mod:`workdesk.services.work_store` and
the client-side cache in :mod:`workdesk.services.tracker`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime


class WorkStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    START = "start"
    HOLD = "hold"
    END = "end"


class WorkEventType(str, enum.Enum):
    START = "start"
    HOLD = "hold"
    RESUME = "resume"
    END = "end"


class WorkSessionError(Exception):
    code = "work_session_error"


class InvalidTransitionError(WorkSessionError):
    code = "invalid_transition"

    def __init__(self, status: WorkStatus, event_type: WorkEventType):
        self.status = status
        self.event_type = event_type
        super().__init__(f"Cannot {event_type.value} from current status ({status.value})")


class DoneNotesRequiredError(WorkSessionError):
    code = "notes_required"

    def __init__(self):
        super().__init__("Done notes are required to end a work session")


_TRANSITIONS: dict[tuple[WorkStatus, WorkEventType], WorkStatus] = {
    (WorkStatus.NOT_STARTED, WorkEventType.START): WorkStatus.START,
    (WorkStatus.END, WorkEventType.START): WorkStatus.START,
    (WorkStatus.START, WorkEventType.HOLD): WorkStatus.HOLD,
    (WorkStatus.HOLD, WorkEventType.RESUME): WorkStatus.START,
    (WorkStatus.START, WorkEventType.END): WorkStatus.END,
    (WorkStatus.HOLD, WorkEventType.END): WorkStatus.END,
}


@dataclass(frozen=True)
class WorkSessionState:
    status: WorkStatus = WorkStatus.NOT_STARTED
    running_since: datetime | None = None
    accumulated_seconds: float = 0.0
    cycle: int = 0

    @property
    def is_running(self) -> bool:
        return self.status is WorkStatus.START


def normalize_notes(note: str | None) -> str | None:
    if note is None:
        return None
    cleaned = note.strip()
    return cleaned or None


def allowed_events(status: WorkStatus) -> list[WorkEventType]:
    return [event for (source, event) in _TRANSITIONS if source is status]


def can_transition(status: WorkStatus, event_type: WorkEventType) -> bool:
    return (status, event_type) in _TRANSITIONS


def check_transition(
    state: WorkSessionState,
    event_type: WorkEventType,
    note: str | None = None,
    *,
    require_notes: bool = True,
) -> None:
    """Raise when ``event_type`` is not accepted from ``state``; no state change."""
    if not can_transition(state.status, event_type):
        raise InvalidTransitionError(state.status, event_type)
    if require_notes and event_type is WorkEventType.END and normalize_notes(note) is None:
        raise DoneNotesRequiredError()


def _segment_seconds(running_since: datetime | None, now: datetime) -> float:
    if running_since is None:
        return 0.0
    # clock skew between writers must never shrink the total
    return max(0.0, (now - running_since).total_seconds())


def apply_transition(
    state: WorkSessionState,
    event_type: WorkEventType,
    now: datetime,
    note: str | None = None,
    *,
    require_notes: bool = True,
) -> WorkSessionState:
    event_type = WorkEventType(event_type)
    check_transition(state, event_type, note, require_notes=require_notes)

    if event_type is WorkEventType.START:
        # first start or "start again" after end: a fresh cycle
        return WorkSessionState(
            status=WorkStatus.START,
            running_since=now,
            accumulated_seconds=0.0,
            cycle=state.cycle + 1,
        )
    if event_type is WorkEventType.RESUME:
        return replace(state, status=WorkStatus.START, running_since=now)

    closed = state.accumulated_seconds + _segment_seconds(state.running_since, now)
    target = _TRANSITIONS[(state.status, event_type)]
    return replace(state, status=target, running_since=None, accumulated_seconds=closed)


def elapsed_seconds(state: WorkSessionState, now: datetime) -> float:
    """Current-session value shown by the live timer."""
    if state.status is WorkStatus.START:
        return state.accumulated_seconds + _segment_seconds(state.running_since, now)
    if state.status in (WorkStatus.HOLD, WorkStatus.END):
        return state.accumulated_seconds
    if state.status is WorkStatus.NOT_STARTED:
        return 0.0
    raise ValueError(f"Unknown work status: {state.status!r}")


def status_label(status: WorkStatus) -> str:
    if status is WorkStatus.NOT_STARTED:
        return "Not started"
    if status is WorkStatus.START:
        return "In progress"
    if status is WorkStatus.HOLD:
        return "On hold"
    if status is WorkStatus.END:
        return "Ended"
    raise ValueError(f"Unknown work status: {status!r}")


def status_tone(status: WorkStatus) -> str:
    if status is WorkStatus.NOT_STARTED:
        return "neutral"
    if status is WorkStatus.START:
        return "success"
    if status is WorkStatus.HOLD:
        return "warning"
    if status is WorkStatus.END:
        return "info"
    raise ValueError(f"Unknown work status: {status!r}")


def event_label(event_type: WorkEventType, status: WorkStatus) -> str:
    if event_type is WorkEventType.START:
        return "Start again" if status is WorkStatus.END else "Start"
    if event_type is WorkEventType.HOLD:
        return "Hold"
    if event_type is WorkEventType.RESUME:
        return "Resume"
    if event_type is WorkEventType.END:
        return "End session"
    raise ValueError(f"Unknown work event: {event_type!r}")


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
