from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from timebill.db.base import Base
from timebill.db.dependencies import get_db_session
import timebill.models.entities  # noqa: F401
from timebill.main import create_app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(
    *,
    subject: str = "subject-owner",
    email: str = "owner@test.local",
    display_name: str = "Owner",
) -> dict[str, str]:
    return {
        "X-AUTH-SUBJECT": subject,
        "X-AUTH-EMAIL": email,
        "X-AUTH-NAME": display_name,
    }


OWNER = auth_headers()
MANAGER = auth_headers(subject="subject-manager", email="manager@test.local", display_name="Manager")
MEMBER = auth_headers(subject="subject-member", email="member@test.local", display_name="Member")
TEAMMATE = auth_headers(subject="subject-teammate", email="teammate@test.local", display_name="Teammate")
VIEWER = auth_headers(subject="subject-viewer", email="viewer@test.local", display_name="Viewer")
OUTSIDER = auth_headers(subject="subject-outsider", email="outsider@test.local", display_name="Outsider")


def register(client: TestClient, headers: dict[str, str]) -> str:
    response = client.get("/api/v1/me", headers=headers)
    assert response.status_code == 200
    return response.json()["id"]


def seed_project(
    client: TestClient,
    *,
    members: tuple[tuple[dict[str, str], str], ...] = (),
    billable_default: bool = True,
) -> dict[str, str]:
    """Owner creates a client, a project and an activity type, then adds members."""

    register(client, OWNER)
    client_response = client.post("/api/v1/clients", json={"name": "Acme"}, headers=OWNER)
    assert client_response.status_code == 201
    client_id = client_response.json()["id"]

    project_response = client.post(
        "/api/v1/projects",
        json={"client_id": client_id, "name": "Website", "code": "WEB"},
        headers=OWNER,
    )
    assert project_response.status_code == 201
    project_id = project_response.json()["id"]

    activity_response = client.post(
        "/api/v1/activity-types",
        json={"name": "Development", "is_billable_default": billable_default},
        headers=OWNER,
    )
    assert activity_response.status_code == 201

    for headers, role in members:
        register(client, headers)
        member_response = client.post(
            f"/api/v1/projects/{project_id}/members",
            json={"email": headers["X-AUTH-EMAIL"], "role": role},
            headers=OWNER,
        )
        assert member_response.status_code == 201

    return {
        "client_id": client_id,
        "project_id": project_id,
        "activity_type_id": activity_response.json()["id"],
    }


def manual_entry(
    client: TestClient,
    seeded: dict[str, str],
    headers: dict[str, str],
    *,
    start_at: str,
    end_at: str,
    description: str = "Implementation work",
    **extra: object,
):
    return client.post(
        "/api/v1/time-entries/manual",
        json={
            "project_id": seeded["project_id"],
            "activity_type_id": seeded["activity_type_id"],
            "start_at": start_at,
            "end_at": end_at,
            "description": description,
            **extra,
        },
        headers=headers,
    )
