from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..models import Project, ProjectTeamMember, User
from ..schemas.project import ProjectCreate
from . import work_store

logger = logging.getLogger(__name__)


class ProjectError(Exception):
    pass


def is_assigned(db: Session, project_id: int, user_id: int) -> bool:
    return (
        db.query(ProjectTeamMember.user_id)
        .filter(ProjectTeamMember.project_id == project_id, ProjectTeamMember.user_id == user_id)
        .first()
        is not None
    )


def get_project(db: Session, project_id: int, org_id: int) -> Project | None:
    return db.query(Project).filter(Project.id == project_id, Project.org_id == org_id).one_or_none()


def list_projects(db: Session, user: User) -> list[Project]:
    query = db.query(Project).filter(Project.org_id == user.org_id)
    if not user.is_manager:
        query = query.join(ProjectTeamMember, ProjectTeamMember.project_id == Project.id).filter(
            ProjectTeamMember.user_id == user.id
        )
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def _org_user(db: Session, org_id: int, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id, User.org_id == org_id).one_or_none()
    if user is None or not user.is_active:
        raise ProjectError(f"User {user_id} is not an active member of this organization")
    return user


def create_project(db: Session, creator: User, payload: ProjectCreate) -> Project:
    project = Project(
        org_id=creator.org_id,
        name=payload.name,
        client_name=(payload.client_name or "").strip() or None,
        status=payload.status,
        priority=payload.priority,
        start_date=payload.start_date,
        developer_deadline_date=payload.developer_deadline_date,
        client_deadline_date=payload.client_deadline_date,
        created_by=creator.id,
    )
    db.add(project)
    db.flush()
    for user_id in dict.fromkeys(payload.team_member_ids):
        _org_user(db, creator.org_id, user_id)
        db.add(ProjectTeamMember(project_id=project.id, user_id=user_id))
    db.commit()
    logger.info("Project %s created by user=%s", project.id, creator.id)
    return project


def assign_member(db: Session, project: Project, user_id: int) -> ProjectTeamMember:
    """Open a ``not_started`` session, or restore the one a previous assignment left in the log."""
    _org_user(db, project.org_id, user_id)
    existing = (
        db.query(ProjectTeamMember)
        .filter(ProjectTeamMember.project_id == project.id, ProjectTeamMember.user_id == user_id)
        .one_or_none()
    )
    if existing:
        return existing
    member = ProjectTeamMember(project_id=project.id, user_id=user_id, work_status="not_started")
    state = work_store.seed_member_from_log(db, member)
    db.add(member)
    db.commit()
    logger.info("User %s assigned to project %s (work status %s)", user_id, project.id, state.status.value)
    return member


def remove_member(db: Session, project: Project, user_id: int) -> bool:
    member = (
        db.query(ProjectTeamMember)
        .filter(ProjectTeamMember.project_id == project.id, ProjectTeamMember.user_id == user_id)
        .one_or_none()
    )
    if member is None:
        return False
    db.delete(member)
    db.commit()
    logger.info("User %s removed from project %s; work events kept", user_id, project.id)
    return True
