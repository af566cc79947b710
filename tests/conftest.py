from __future__ import annotations

import os
from datetime import date, datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from workdesk.db import SessionLocal, engine  # noqa: E402
from workdesk.main import app  # noqa: E402
from workdesk.models import Base, Organization, Project, ProjectTeamMember, User  # noqa: E402
from workdesk.routers.auth import get_password_hash  # noqa: E402

PASSWORD = "secret123"
T0 = datetime(2025, 3, 3, 9, 0, 0)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def org(db):
    organization = Organization(name="Test Studio", timezone="UTC")
    db.add(organization)
    db.commit()
    return organization


def _make_user(db, org, email: str, full_name: str, role: str) -> User:
    user = User(
        org_id=org.id,
        email=email,
        full_name=full_name,
        password_hash=get_password_hash(PASSWORD),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db, org):
    return _make_user(db, org, "admin@example.com", "Ada Admin", "ADMIN")


@pytest.fixture
def staff(db, org):
    return _make_user(db, org, "staff@example.com", "Sam Staff", "STAFF")


@pytest.fixture
def other_staff(db, org):
    return _make_user(db, org, "other@example.com", "Olu Other", "STAFF")


@pytest.fixture
def project(db, org, admin, staff):
    item = Project(
        org_id=org.id,
        name="Website redesign",
        client_name="Acme",
        status="IN_PROGRESS",
        start_date=date(2025, 3, 1),
        created_by=admin.id,
    )
    db.add(item)
    db.flush()
    db.add(ProjectTeamMember(project_id=item.id, user_id=staff.id))
    db.commit()
    return item


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def login(client: TestClient, email: str, password: str = PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response
