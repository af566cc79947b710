from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Project, User
from ..schemas.project import ProjectCreate, ProjectDetail, ProjectListItem, ProjectMemberAdd
from ..schemas.work import DaySeconds, TeamMemberWork
from ..services import projects as project_service
from ..services import work_store
from ..timeutils import utcnow
from .auth import current_user
from .work import history_timezone, load_project, serialize_session

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _require_manager(user: User) -> None:
    if not user.is_manager:
        raise HTTPException(status_code=403, detail="Only admins and managers can manage projects")


def _project_detail(db: Session, project: Project, user: User) -> ProjectDetail:
    now = utcnow()
    summaries = work_store.get_team_work_summary(db, project.id, now=now, tz_name=history_timezone(user))
    members = [
        TeamMemberWork(
            user_id=summary.user_id,
            full_name=summary.full_name,
            email=summary.email,
            session=serialize_session(summary.state, now),
            started_at=summary.started_at,
            ended_at=summary.ended_at,
            done_notes=summary.done_notes,
            day_breakdown=[DaySeconds(date=day, seconds=round(seconds, 3)) for day, seconds in summary.day_breakdown],
        )
        for summary in summaries
    ]
    base = ProjectListItem.model_validate(project).model_dump()
    return ProjectDetail(
        **base,
        client_deadline_date=project.client_deadline_date,
        created_by=project.created_by,
        team_members=members,
    )


@router.get("", response_model=list[ProjectListItem])
async def list_projects(user: User = Depends(current_user), db: Session = Depends(get_db)):
    return project_service.list_projects(db, user)


@router.post("", status_code=201)
async def create_project(payload: ProjectCreate, user: User = Depends(current_user), db: Session = Depends(get_db)):
    _require_manager(user)
    try:
        project = project_service.create_project(db, user, payload)
    except project_service.ProjectError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse(_project_detail(db, project, user).model_dump(mode="json"), status_code=201)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(project_id: int, user: User = Depends(current_user), db: Session = Depends(get_db)):
    project = load_project(db, project_id, user)
    return _project_detail(db, project, user)


@router.post("/{project_id}/members", status_code=201)
async def add_member(
    project_id: int,
    payload: ProjectMemberAdd,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    _require_manager(user)
    project = load_project(db, project_id, user)
    try:
        member = project_service.assign_member(db, project, payload.user_id)
    except project_service.ProjectError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    state = work_store.state_from_member(member)
    return JSONResponse(
        {
            "status": "assigned",
            "user_id": member.user_id,
            "session": serialize_session(state, utcnow()).model_dump(mode="json"),
        },
        status_code=201,
    )


@router.delete("/{project_id}/members/{user_id}")
async def remove_member(
    project_id: int,
    user_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    _require_manager(user)
    project = load_project(db, project_id, user)
    if not project_service.remove_member(db, project, user_id):
        raise HTTPException(status_code=404, detail="Member not assigned to this project")
    return JSONResponse({"status": "removed"})
