from sqlalchemy.orm import declarative_base

Base = declarative_base()

from .organization import Organization  # noqa: E402,F401
from .project import Project, ProjectTeamMember  # noqa: E402,F401
from .user import User  # noqa: E402,F401
from .work_event import WorkEvent  # noqa: E402,F401
