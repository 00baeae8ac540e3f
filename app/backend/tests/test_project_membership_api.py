from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import MANAGER, MEMBER, OWNER, register, seed_project


def test_creator_owns_client_and_project(client: TestClient) -> None:
    seeded = seed_project(client)

    clients = client.get("/api/v1/clients", headers=OWNER).json()["items"]
    projects = client.get("/api/v1/projects", headers=OWNER).json()["items"]

    assert [(row["id"], row["role"]) for row in clients] == [(seeded["client_id"], "owner")]
    assert projects[0]["role"] == "owner"
    assert projects[0]["code"] == "WEB"


def test_only_client_owner_creates_projects(client: TestClient) -> None:
    seeded = seed_project(client, members=((MEMBER, "member"),))

    response = client.post(
        "/api/v1/projects",
        json={"client_id": seeded["client_id"], "name": "Side project"},
        headers=MEMBER,
    )

    assert response.status_code == 403


def test_manager_cannot_manage_membership(client: TestClient) -> None:
    seeded = seed_project(client, members=((MANAGER, "manager"),))
    register(client, MEMBER)

    response = client.post(
        f"/api/v1/projects/{seeded['project_id']}/members",
        json={"email": "member@test.local", "role": "member"},
        headers=MANAGER,
    )

    assert response.status_code == 403


def test_duplicate_membership_conflicts(client: TestClient) -> None:
    seeded = seed_project(client, members=((MEMBER, "member"),))

    response = client.post(
        f"/api/v1/projects/{seeded['project_id']}/members",
        json={"email": "member@test.local", "role": "viewer"},
        headers=OWNER,
    )

    assert response.status_code == 409


def test_role_change_and_last_owner_protection(client: TestClient) -> None:
    seeded = seed_project(client, members=((MEMBER, "member"),))
    owner_id = register(client, OWNER)
    member_id = register(client, MEMBER)
    base = f"/api/v1/projects/{seeded['project_id']}/members"

    demote_last_owner = client.patch(f"{base}/{owner_id}", json={"role": "manager"}, headers=OWNER)
    assert demote_last_owner.status_code == 422
    assert client.delete(f"{base}/{owner_id}", headers=OWNER).status_code == 422

    changed = client.patch(f"{base}/{member_id}", json={"role": "viewer"}, headers=OWNER)
    assert changed.json()["role"] == "viewer"

    assert client.delete(f"{base}/{member_id}", headers=OWNER).status_code == 204
    members = client.get(base, headers=OWNER).json()["items"]
    assert [row["user_id"] for row in members] == [owner_id]


def test_duplicate_activity_type_conflicts(client: TestClient) -> None:
    seed_project(client)

    response = client.post("/api/v1/activity-types", json={"name": "Development"}, headers=OWNER)

    assert response.status_code == 409
    assert [row["name"] for row in client.get("/api/v1/activity-types", headers=OWNER).json()["items"]] == [
        "Development"
    ]
