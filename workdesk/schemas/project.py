from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .work import TeamMemberWork

ProjectStatus = Literal["PENDING", "IN_PROGRESS", "HOLD", "COMPLETED"]
ProjectPriority = Literal["URGENT", "HIGH", "MEDIUM", "LOW"]


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    client_name: Optional[str] = Field(None, max_length=200)
    status: ProjectStatus = "PENDING"
    priority: ProjectPriority = "MEDIUM"
    start_date: date
    developer_deadline_date: Optional[date] = None
    client_deadline_date: Optional[date] = None
    team_member_ids: List[int] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Project name is required")
        return cleaned

    @model_validator(mode="after")
    def deadlines_after_start(self) -> "ProjectCreate":
        for label, value in (
            ("Project deadline date", self.developer_deadline_date),
            ("Client deadline date", self.client_deadline_date),
        ):
            if value and value < self.start_date:
                raise ValueError(f"{label} cannot be before the start date")
        return self


class ProjectMemberAdd(BaseModel):
    user_id: int = Field(..., ge=1)


class ProjectListItem(BaseModel):
    id: int
    name: str
    client_name: Optional[str] = None
    status: str
    priority: str
    start_date: date
    developer_deadline_date: Optional[date] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProjectDetail(ProjectListItem):
    client_deadline_date: Optional[date] = None
    created_by: int
    team_members: List[TeamMemberWork] = Field(default_factory=list)
