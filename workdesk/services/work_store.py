"""Database-backed work history store.

``project_team_members`` holds the single confirmed state per (project, member)
and ``project_work_events`` the append-only log. Transitions are validated
against the row read under ``FOR UPDATE`` and written compare-and-swap on
``version``, so concurrent writers for the same pair are serialized. Failures
come back as result values, never as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import get_settings
from ..models import ProjectTeamMember, WorkEvent
from ..timeutils import utcnow
from .work_history import (
    WorkHistoryDay,
    day_breakdown,
    derive_session_state,
    group_segments_by_day,
    reconstruct_segments,
)
from .work_sessions import (
    WorkEventType,
    WorkSessionError,
    WorkSessionState,
    WorkStatus,
    apply_transition,
    elapsed_seconds,
    normalize_notes,
)

logger = logging.getLogger(__name__)

NOT_ASSIGNED = "not_assigned"
INVALID_EVENT = "invalid_event"
CONFLICT = "conflict"
STORE_FAILURE = "store_failure"


@dataclass
class WorkEventResult:
    session_state: WorkSessionState | None = None
    event_id: int | None = None
    occurred_at: datetime | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WorkHistoryResult:
    days: list[WorkHistoryDay] = field(default_factory=list)
    timezone: str = "UTC"
    error: str | None = None


@dataclass
class MemberWorkSummary:
    user_id: int
    full_name: str | None
    email: str | None
    state: WorkSessionState
    elapsed_seconds: float
    started_at: datetime | None = None
    ended_at: datetime | None = None
    done_notes: str | None = None
    day_breakdown: list[tuple[date, float]] = field(default_factory=list)


def resolve_timezone(*candidates: str | None) -> str:
    for candidate in candidates:
        if not candidate:
            continue
        try:
            ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Ignoring unknown timezone %r", candidate)
            continue
        return candidate
    return get_settings().default_timezone


def state_from_member(member: ProjectTeamMember) -> WorkSessionState:
    return WorkSessionState(
        status=WorkStatus(member.work_status or WorkStatus.NOT_STARTED.value),
        running_since=member.work_running_since,
        accumulated_seconds=float(member.work_accumulated_seconds or 0.0),
        cycle=member.work_cycle or 0,
    )


def _member_query(db: Session, project_id: int, member_id: int):
    return db.query(ProjectTeamMember).filter(
        ProjectTeamMember.project_id == project_id,
        ProjectTeamMember.user_id == member_id,
    )


def get_session_state(db: Session, project_id: int, member_id: int) -> WorkSessionState | None:
    member = _member_query(db, project_id, member_id).one_or_none()
    if member is None:
        return None
    db.refresh(member)
    return state_from_member(member)


def record_work_event(
    db: Session,
    project_id: int,
    member_id: int,
    event_type: WorkEventType | str,
    note: str | None = None,
    now: datetime | None = None,
) -> WorkEventResult:
    try:
        kind = WorkEventType(event_type)
    except ValueError:
        return WorkEventResult(error=f"Unknown work event: {event_type}", error_code=INVALID_EVENT)

    now = now or utcnow()
    try:
        member = _member_query(db, project_id, member_id).with_for_update().one_or_none()
        if member is None:
            db.rollback()
            return WorkEventResult(error="You are not assigned to this project", error_code=NOT_ASSIGNED)
        db.refresh(member)

        current = state_from_member(member)
        try:
            new_state = apply_transition(current, kind, now, note)
        except WorkSessionError as exc:
            db.rollback()
            logger.info(
                "Rejected %s for project=%s user=%s: %s", kind.value, project_id, member_id, exc
            )
            return WorkEventResult(session_state=current, error=str(exc), error_code=exc.code)

        clean_note = normalize_notes(note) if kind is WorkEventType.END else None
        event = WorkEvent(
            project_id=project_id,
            user_id=member_id,
            event_type=kind.value,
            occurred_at=now,
            note=clean_note,
            cycle=new_state.cycle,
        )
        db.add(event)

        values = {
            "work_status": new_state.status.value,
            "work_running_since": new_state.running_since,
            "work_accumulated_seconds": new_state.accumulated_seconds,
            "work_cycle": new_state.cycle,
            "version": member.version + 1,
        }
        if kind is WorkEventType.START:
            values["work_started_at"] = now
        if kind is WorkEventType.END:
            values["work_ended_at"] = now
            values["work_done_notes"] = clean_note

        written = db.execute(
            update(ProjectTeamMember)
            .where(
                ProjectTeamMember.project_id == project_id,
                ProjectTeamMember.user_id == member_id,
                ProjectTeamMember.version == member.version,
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if written.rowcount != 1:
            db.rollback()
            logger.warning("Concurrent work update lost for project=%s user=%s", project_id, member_id)
            return WorkEventResult(
                session_state=get_session_state(db, project_id, member_id),
                error="Work status was changed elsewhere; showing the latest state",
                error_code=CONFLICT,
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record %s for project=%s user=%s", kind.value, project_id, member_id)
        return WorkEventResult(error="Failed to record work event", error_code=STORE_FAILURE)

    logger.info(
        "Recorded %s for project=%s user=%s (cycle %s)", kind.value, project_id, member_id, new_state.cycle
    )
    return WorkEventResult(session_state=new_state, event_id=event.id, occurred_at=now)


def _load_events(db: Session, project_id: int, member_id: int | None = None) -> list[WorkEvent]:
    query = db.query(WorkEvent).filter(WorkEvent.project_id == project_id)
    if member_id is not None:
        query = query.filter(WorkEvent.user_id == member_id)
    return query.order_by(WorkEvent.occurred_at.asc(), WorkEvent.id.asc()).all()


def _events_by_user(events: list[WorkEvent]) -> dict[int, list[WorkEvent]]:
    grouped: dict[int, list[WorkEvent]] = {}
    for event in events:
        grouped.setdefault(event.user_id, []).append(event)
    return grouped


def get_work_history(
    db: Session,
    project_id: int,
    member_id: int | None = None,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> WorkHistoryResult:
    now = now or utcnow()
    tz_value = resolve_timezone(tz_name)
    try:
        events = _load_events(db, project_id, member_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to load work history for project=%s user=%s", project_id, member_id)
        return WorkHistoryResult(timezone=tz_value, error="Failed to load work history")

    segments = []
    for user_id, user_events in _events_by_user(events).items():
        segments.extend(
            reconstruct_segments(user_events, user_id=user_id, label=f"project={project_id} user={user_id}")
        )
    return WorkHistoryResult(days=group_segments_by_day(segments, tz_value, now), timezone=tz_value)


def get_team_work_summary(
    db: Session,
    project_id: int,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> list[MemberWorkSummary]:
    now = now or utcnow()
    tz_value = resolve_timezone(tz_name)
    members = (
        db.query(ProjectTeamMember)
        .options(joinedload(ProjectTeamMember.user))
        .filter(ProjectTeamMember.project_id == project_id)
        .order_by(ProjectTeamMember.created_at.asc(), ProjectTeamMember.user_id.asc())
        .all()
    )
    events = _events_by_user(_load_events(db, project_id))

    summaries: list[MemberWorkSummary] = []
    for member in members:
        state = state_from_member(member)
        segments = reconstruct_segments(
            events.get(member.user_id, []),
            user_id=member.user_id,
            label=f"project={project_id} user={member.user_id}",
        )
        summaries.append(
            MemberWorkSummary(
                user_id=member.user_id,
                full_name=member.user.full_name if member.user else None,
                email=member.user.email if member.user else None,
                state=state,
                elapsed_seconds=elapsed_seconds(state, now),
                started_at=member.work_started_at,
                ended_at=member.work_ended_at,
                done_notes=member.work_done_notes,
                day_breakdown=day_breakdown(segments, tz_value, now, cycle=state.cycle or None),
            )
        )
    return summaries


def _write_state(member: ProjectTeamMember, state: WorkSessionState) -> None:
    member.work_status = state.status.value
    member.work_running_since = state.running_since
    member.work_accumulated_seconds = state.accumulated_seconds
    member.work_cycle = state.cycle


def seed_member_from_log(db: Session, member: ProjectTeamMember) -> WorkSessionState:
    """Fill a new assignment row from events the pair logged before it was removed.

    Cycle numbers continue from the log.
    """
    events = _load_events(db, member.project_id, member.user_id)
    label = f"project={member.project_id} user={member.user_id}"
    state = derive_session_state(events, label=label)
    _write_state(member, state)
    if not events:
        return state

    logger.info("Restoring work state for %s from %s logged events", label, len(events))
    starts = [e for e in events if e.event_type == WorkEventType.START.value]
    ends = [e for e in events if e.event_type == WorkEventType.END.value]
    member.work_started_at = starts[-1].occurred_at if starts else None
    if state.status is WorkStatus.END and ends:
        member.work_ended_at = ends[-1].occurred_at
        member.work_done_notes = ends[-1].note
    return state


def resync_session_state(db: Session, project_id: int, member_id: int) -> WorkSessionState | None:
    """Rebuild the confirmed-state row from the event log."""
    member = _member_query(db, project_id, member_id).with_for_update().one_or_none()
    if member is None:
        db.rollback()
        return None
    rebuilt = derive_session_state(
        _load_events(db, project_id, member_id), label=f"project={project_id} user={member_id}"
    )
    if rebuilt != state_from_member(member):
        logger.warning(
            "Confirmed work state drifted for project=%s user=%s; rewriting from events", project_id, member_id
        )
    _write_state(member, rebuilt)
    member.version = (member.version or 0) + 1
    db.commit()
    return rebuilt
