from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from . import Base

user_role_enum = Enum("ADMIN", "MANAGER", "STAFF", name="user_role")
MANAGER_ROLES = frozenset({"ADMIN", "MANAGER"})


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(user_role_enum, nullable=False, default="STAFF")
    is_active = Column(Boolean, default=True)
    timezone = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    organization = relationship("Organization", back_populates="users")
    assignments = relationship("ProjectTeamMember", back_populates="user")

    @property
    def is_manager(self) -> bool:
        """Admins and managers see every project and every member's history."""
        return self.role in MANAGER_ROLES
