from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from . import Base

project_status_enum = Enum("PENDING", "IN_PROGRESS", "HOLD", "COMPLETED", name="project_status")
project_priority_enum = Enum("URGENT", "HIGH", "MEDIUM", "LOW", name="project_priority")
work_status_enum = Enum("not_started", "start", "hold", "end", name="work_status")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    name = Column(String(200), nullable=False)
    client_name = Column(String(200), nullable=True)
    status = Column(project_status_enum, nullable=False, default="PENDING")
    priority = Column(project_priority_enum, nullable=False, default="MEDIUM")
    start_date = Column(Date, nullable=False)
    developer_deadline_date = Column(Date, nullable=True)
    client_deadline_date = Column(Date, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    organization = relationship("Organization", back_populates="projects")
    team_members = relationship(
        "ProjectTeamMember",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectTeamMember.created_at",
    )


class ProjectTeamMember(Base):
    """Assignment row; also the confirmed work-session state for (project, user)."""

    __tablename__ = "project_team_members"

    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    work_status = Column(work_status_enum, nullable=False, default="not_started", server_default="not_started")
    work_running_since = Column(DateTime, nullable=True)
    work_accumulated_seconds = Column(Float, nullable=False, default=0.0, server_default="0")
    work_cycle = Column(Integer, nullable=False, default=0, server_default="0")
    work_started_at = Column(DateTime, nullable=True)
    work_ended_at = Column(DateTime, nullable=True)
    work_done_notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="team_members")
    user = relationship("User", back_populates="assignments")
