from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.work_sessions import WorkEventType, WorkStatus


class WorkEventRequest(BaseModel):
    event_type: WorkEventType
    note: Optional[str] = Field(None, max_length=5000)


class WorkSessionRead(BaseModel):
    status: WorkStatus
    label: str
    tone: str
    running_since: Optional[datetime] = None
    accumulated_seconds: float = 0.0
    elapsed_seconds: float = 0.0
    cycle: int = 0
    is_updating: bool = False
    allowed_events: List[WorkEventType] = Field(default_factory=list)


class WorkEventResponse(BaseModel):
    status: str
    event_id: Optional[int] = None
    occurred_at: Optional[datetime] = None
    session: WorkSessionRead


class WorkSegmentRead(BaseModel):
    user_id: Optional[int] = None
    start_at: datetime
    end_at: Optional[datetime] = None
    duration_seconds: float
    note: Optional[str] = None
    cycle: int


class WorkHistoryDayRead(BaseModel):
    date: date
    total_seconds: float
    segments: List[WorkSegmentRead] = Field(default_factory=list)


class WorkHistoryRead(BaseModel):
    project_id: int
    user_id: Optional[int] = None
    timezone: str
    days: List[WorkHistoryDayRead] = Field(default_factory=list)


class DaySeconds(BaseModel):
    date: date
    seconds: float


class TeamMemberWork(BaseModel):
    user_id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    session: WorkSessionRead
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    done_notes: Optional[str] = None
    day_breakdown: List[DaySeconds] = Field(default_factory=list)
