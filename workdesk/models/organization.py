from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from . import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    # IANA name; history days are bucketed in this zone unless the user has one
    timezone = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    users = relationship("User", back_populates="organization")
    projects = relationship("Project", back_populates="organization", order_by="Project.created_at")
