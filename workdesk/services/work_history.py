"""Rebuild work segments and per-day history from the append-only event log."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Protocol, Sequence
from zoneinfo import ZoneInfo

from .work_sessions import (
    WorkEventType,
    WorkSessionError,
    WorkSessionState,
    apply_transition,
    normalize_notes,
)

logger = logging.getLogger(__name__)

_OPENING = (WorkEventType.START, WorkEventType.RESUME)


class EventLike(Protocol):
    event_type: str
    occurred_at: datetime
    note: str | None


@dataclass(frozen=True)
class WorkEventRecord:
    event_type: WorkEventType
    occurred_at: datetime
    note: str | None = None


@dataclass(frozen=True)
class WorkSegment:
    start_at: datetime
    end_at: datetime | None
    note: str | None = None
    cycle: int = 1
    closed_by: WorkEventType | None = None
    user_id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.end_at is None

    def duration_seconds(self, now: datetime | None = None) -> float:
        finish = self.end_at or now
        if finish is None:
            return 0.0
        return max(0.0, (finish - self.start_at).total_seconds())


@dataclass
class WorkHistoryDay:
    date: date
    total_seconds: float = 0.0
    segments: list[WorkSegment] = field(default_factory=list)


def _event_type(event: EventLike) -> WorkEventType | None:
    try:
        return WorkEventType(event.event_type)
    except ValueError:
        return None


def _ordered(events: Iterable[EventLike], label: str) -> list[EventLike]:
    items = list(events)
    ordered = sorted(items, key=lambda e: e.occurred_at)
    if ordered != items:
        logger.warning("Work events for %s arrived out of order; sorted by occurred_at", label)
    return ordered


def reconstruct_segments(
    events: Iterable[EventLike],
    *,
    user_id: int | None = None,
    label: str = "work log",
) -> list[WorkSegment]:
    """Pair every start/resume with the following hold/end.

    Malformed sequences never raise: a second opening event while a segment is
    running is collapsed into the running one, and a close with nothing open is
    dropped. An end that follows a hold closes nothing, so its note goes to the
    cycle's last segment.
    """
    segments: list[WorkSegment] = []
    open_at: datetime | None = None
    cycle = 0
    previous: WorkEventType | None = None

    for event in _ordered(events, label):
        kind = _event_type(event)
        if kind is None:
            logger.warning("Ignoring unknown work event %r for %s", event.event_type, label)
            continue

        if kind in _OPENING:
            if open_at is not None:
                logger.warning(
                    "Duplicate %s at %s for %s while a segment is running; collapsed",
                    kind.value,
                    event.occurred_at,
                    label,
                )
                continue
            if kind is WorkEventType.START or cycle == 0:
                cycle += 1
            open_at = event.occurred_at
        elif open_at is not None:
            note = normalize_notes(event.note) if kind is WorkEventType.END else None
            segments.append(
                WorkSegment(
                    start_at=open_at,
                    end_at=event.occurred_at,
                    note=note,
                    cycle=cycle,
                    closed_by=kind,
                    user_id=user_id,
                )
            )
            open_at = None
        elif kind is WorkEventType.END and previous is WorkEventType.HOLD and segments:
            last = segments[-1]
            if last.note is None:
                segments[-1] = replace(last, note=normalize_notes(event.note))
        else:
            logger.warning("Dropping %s at %s for %s: no running segment", kind.value, event.occurred_at, label)
            continue
        previous = kind

    if open_at is not None:
        segments.append(WorkSegment(start_at=open_at, end_at=None, cycle=cycle, user_id=user_id))
    return segments


def derive_session_state(events: Iterable[EventLike], *, label: str = "work log") -> WorkSessionState:
    """Replay the log through the state machine; rejected events are skipped."""
    state = WorkSessionState()
    for event in _ordered(events, label):
        kind = _event_type(event)
        if kind is None:
            continue
        try:
            state = apply_transition(state, kind, event.occurred_at, event.note, require_notes=False)
        except WorkSessionError as exc:
            logger.warning("Skipping work event at %s for %s: %s", event.occurred_at, label, exc)
    return state


def _resolve_zone(tz: ZoneInfo | str | None) -> ZoneInfo:
    if isinstance(tz, ZoneInfo):
        return tz
    return ZoneInfo(tz or "UTC")


def _local(value: datetime, tz: ZoneInfo) -> datetime:
    aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return aware.astimezone(tz)


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def split_by_day(segment: WorkSegment, tz: ZoneInfo, now: datetime) -> list[tuple[date, WorkSegment]]:
    """Clip one segment at local midnights.

    The closing note stays with the last piece. An open segment is measured up
    to ``now`` but its last piece keeps ``end_at=None``.
    """
    finish = segment.end_at or now
    if finish <= segment.start_at:
        day = _local(segment.start_at, tz).date()
        return [(day, segment)]

    start_local = _local(segment.start_at, tz)
    finish_local = _local(finish, tz)
    pieces: list[tuple[date, WorkSegment]] = []
    cursor = start_local.date()
    while cursor <= finish_local.date():
        day_start = datetime.combine(cursor, time.min, tz)
        day_end = datetime.combine(cursor + timedelta(days=1), time.min, tz)
        clip_start = max(start_local, day_start)
        clip_end = min(finish_local, day_end)
        if clip_end > clip_start:
            pieces.append(
                (
                    cursor,
                    replace(segment, start_at=_naive_utc(clip_start), end_at=_naive_utc(clip_end), note=None),
                )
            )
        cursor += timedelta(days=1)

    if pieces:
        day, last = pieces[-1]
        closing_end = last.end_at if segment.end_at is not None else None
        pieces[-1] = (day, replace(last, end_at=closing_end, note=segment.note))
    return pieces


def group_segments_by_day(
    segments: Sequence[WorkSegment],
    tz: ZoneInfo | str | None,
    now: datetime,
) -> list[WorkHistoryDay]:
    """Days newest first, segments oldest first within a day."""
    zone = _resolve_zone(tz)
    days: dict[date, WorkHistoryDay] = {}
    for segment in segments:
        for day, piece in split_by_day(segment, zone, now):
            bucket = days.setdefault(day, WorkHistoryDay(date=day))
            bucket.segments.append(piece)
            bucket.total_seconds += piece.duration_seconds(now)

    for bucket in days.values():
        bucket.segments.sort(key=lambda s: s.start_at)
    return [days[key] for key in sorted(days, reverse=True)]


def day_breakdown(
    segments: Sequence[WorkSegment],
    tz: ZoneInfo | str | None,
    now: datetime,
    cycle: int | None = None,
) -> list[tuple[date, float]]:
    """Seconds per local day for one cycle (the latest when ``cycle`` is None)."""
    if not segments:
        return []
    target = cycle if cycle is not None else max(s.cycle for s in segments)
    selected = [s for s in segments if s.cycle == target]
    return sorted((day.date, day.total_seconds) for day in group_segments_by_day(selected, tz, now))
