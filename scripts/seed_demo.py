"""Seed a demo org with an admin, a staff member and one assigned project."""

from datetime import date

from workdesk.db import SessionLocal
from workdesk.models import Organization, Project, User
from workdesk.routers.auth import get_password_hash
from workdesk.services.projects import assign_member

ADMIN_EMAIL = "admin@example.com"
STAFF_EMAIL = "staff@example.com"
DEFAULT_PASSWORD = "demo1234"


def ensure_org(session) -> Organization:
    org = session.query(Organization).filter(Organization.name == "Demo Studio").one_or_none()
    if org is None:
        org = Organization(name="Demo Studio", timezone="UTC")
        session.add(org)
        session.flush()
    return org


def ensure_user(session, org: Organization, email: str, full_name: str, role: str) -> User:
    user = session.query(User).filter(User.email == email).one_or_none()
    if user:
        return user

    user = User(
        org_id=org.id,
        email=email,
        full_name=full_name,
        password_hash=get_password_hash(DEFAULT_PASSWORD),
        role=role,
        is_active=True,
    )
    session.add(user)
    session.flush()
    return user


def ensure_project(session, org: Organization, owner: User) -> Project:
    project = (
        session.query(Project)
        .filter(Project.org_id == org.id, Project.name == "Website redesign")
        .one_or_none()
    )
    if project is None:
        project = Project(
            org_id=org.id,
            name="Website redesign",
            client_name="Acme Corp",
            status="IN_PROGRESS",
            start_date=date.today(),
            created_by=owner.id,
        )
        session.add(project)
        session.flush()
    return project


def main() -> None:
    session = SessionLocal()
    try:
        org = ensure_org(session)
        admin = ensure_user(session, org, ADMIN_EMAIL, "Demo Admin", "ADMIN")
        staff = ensure_user(session, org, STAFF_EMAIL, "Demo Staff", "STAFF")
        project = ensure_project(session, org, admin)
        session.commit()
        assign_member(session, project, staff.id)
        print("Demo data ready:")
        print(f"  Admin login: {ADMIN_EMAIL} / {DEFAULT_PASSWORD}")
        print(f"  Staff login: {STAFF_EMAIL} / {DEFAULT_PASSWORD}")
        print(f"  Project #{project.id}: {project.name}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
