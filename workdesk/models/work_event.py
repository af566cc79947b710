from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, Text

from . import Base

work_event_type_enum = Enum("start", "hold", "resume", "end", name="work_event_type")


class WorkEvent(Base):
    __tablename__ = "project_work_events"
    __table_args__ = (
        Index("ix_project_work_events_pair", "project_id", "user_id", "occurred_at"),
    )

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type = Column(work_event_type_enum, nullable=False)
    occurred_at = Column(DateTime, nullable=False)
    note = Column(Text, nullable=True)
    cycle = Column(Integer, nullable=False, default=1)
