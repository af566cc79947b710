from __future__ import annotations

import csv
import io
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Project, User
from ..schemas.work import (
    WorkEventRequest,
    WorkEventResponse,
    WorkHistoryDayRead,
    WorkHistoryRead,
    WorkSegmentRead,
    WorkSessionRead,
)
from ..services import projects as project_service
from ..services import work_store
from ..services.work_history import WorkHistoryDay
from ..services.work_sessions import (
    DoneNotesRequiredError,
    InvalidTransitionError,
    WorkSessionState,
    allowed_events,
    elapsed_seconds,
    format_duration,
    status_label,
    status_tone,
)
from ..timeutils import iso_utc, utcnow
from .auth import current_user

router = APIRouter(prefix="/api/projects", tags=["work"])

_ERROR_STATUS = {
    work_store.NOT_ASSIGNED: 403,
    work_store.INVALID_EVENT: 400,
    InvalidTransitionError.code: 400,
    DoneNotesRequiredError.code: 400,
    work_store.CONFLICT: 409,
    work_store.STORE_FAILURE: 503,
}


def serialize_session(state: WorkSessionState, now: datetime, is_updating: bool = False) -> WorkSessionRead:
    return WorkSessionRead(
        status=state.status,
        label=status_label(state.status),
        tone=status_tone(state.status),
        running_since=state.running_since,
        accumulated_seconds=round(state.accumulated_seconds, 3),
        elapsed_seconds=round(elapsed_seconds(state, now), 3),
        cycle=state.cycle,
        is_updating=is_updating,
        allowed_events=allowed_events(state.status),
    )


def _serialize_day(day: WorkHistoryDay, now: datetime) -> WorkHistoryDayRead:
    return WorkHistoryDayRead(
        date=day.date,
        total_seconds=round(day.total_seconds, 3),
        segments=[
            WorkSegmentRead(
                user_id=segment.user_id,
                start_at=segment.start_at,
                end_at=segment.end_at,
                duration_seconds=round(segment.duration_seconds(now), 3),
                note=segment.note,
                cycle=segment.cycle,
            )
            for segment in day.segments
        ],
    )


def load_project(db: Session, project_id: int, user: User) -> Project:
    project = project_service.get_project(db, project_id, user.org_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if not user.is_manager and not project_service.is_assigned(db, project_id, user.id):
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def history_timezone(user: User) -> str:
    org_timezone = user.organization.timezone if user.organization else None
    return work_store.resolve_timezone(user.timezone, org_timezone)


def _history_target(user: User, user_id: int | None) -> int | None:
    if user.is_manager:
        return user_id
    if user_id is not None and user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only view your own work history")
    return user.id


@router.get("/{project_id}/work", response_model=WorkSessionRead)
async def my_work_session(project_id: int, user: User = Depends(current_user), db: Session = Depends(get_db)):
    load_project(db, project_id, user)
    state = work_store.get_session_state(db, project_id, user.id)
    if state is None:
        raise HTTPException(status_code=403, detail="You are not assigned to this project")
    return serialize_session(state, utcnow())


@router.post("/{project_id}/work")
async def update_my_work_status(
    project_id: int,
    payload: WorkEventRequest,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    load_project(db, project_id, user)
    result = work_store.record_work_event(db, project_id, user.id, payload.event_type, payload.note)
    now = utcnow()
    if not result.ok:
        body = {"detail": result.error, "code": result.error_code}
        if result.session_state is not None:
            body["session"] = serialize_session(result.session_state, now).model_dump(mode="json")
        return JSONResponse(body, status_code=_ERROR_STATUS.get(result.error_code, 400))

    response = WorkEventResponse(
        status="recorded",
        event_id=result.event_id,
        occurred_at=result.occurred_at,
        session=serialize_session(result.session_state, now),
    )
    return JSONResponse(response.model_dump(mode="json"))


@router.get("/{project_id}/work-history", response_model=WorkHistoryRead)
async def project_work_history(
    project_id: int,
    user_id: int | None = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    load_project(db, project_id, user)
    target = _history_target(user, user_id)
    now = utcnow()
    history = work_store.get_work_history(db, project_id, target, now=now, tz_name=history_timezone(user))
    if history.error:
        raise HTTPException(status_code=503, detail=history.error)
    return WorkHistoryRead(
        project_id=project_id,
        user_id=target,
        timezone=history.timezone,
        days=[_serialize_day(day, now) for day in history.days],
    )


@router.get("/{project_id}/work-history/export")
async def export_work_history(
    project_id: int,
    user_id: int | None = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    project = load_project(db, project_id, user)
    target = _history_target(user, user_id)
    now = utcnow()
    history = work_store.get_work_history(db, project_id, target, now=now, tz_name=history_timezone(user))
    if history.error:
        raise HTTPException(status_code=503, detail=history.error)

    names = dict(db.query(User.id, User.full_name).filter(User.org_id == user.org_id).all())
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Date", "Member", "Cycle", "Start (UTC)", "End (UTC)", "Duration", "Done notes"])
    for day in reversed(history.days):
        for segment in day.segments:
            writer.writerow(
                [
                    day.date.isoformat(),
                    names.get(segment.user_id, segment.user_id),
                    segment.cycle,
                    iso_utc(segment.start_at),
                    iso_utc(segment.end_at) or "running",
                    format_duration(segment.duration_seconds(now)),
                    segment.note or "",
                ]
            )

    buffer.seek(0)
    filename = f"work_history_project_{project.id}.csv"
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
        },
    )
