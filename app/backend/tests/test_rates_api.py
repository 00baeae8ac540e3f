from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import MANAGER, MEMBER, OUTSIDER, OWNER, register, seed_project


def test_default_rate_upsert(client: TestClient) -> None:
    register(client, MEMBER)

    assert client.get("/api/v1/rates/me/default", headers=MEMBER).json() == {"rate_card": None}

    first = client.put("/api/v1/rates/me/default", json={"hourly_rate_cents": 8000}, headers=MEMBER)
    second = client.put("/api/v1/rates/me/default", json={"hourly_rate_cents": 9500}, headers=MEMBER)

    assert first.status_code == 200
    assert second.json()["rate_card"]["hourly_rate_cents"] == 9500
    assert second.json()["rate_card"]["currency"] == "USD"
    assert client.get("/api/v1/rates/me/default", headers=MEMBER).json()["rate_card"]["hourly_rate_cents"] == 9500


def test_negative_rate_is_rejected(client: TestClient) -> None:
    response = client.put("/api/v1/rates/me/default", json={"hourly_rate_cents": -1}, headers=MEMBER)

    assert response.status_code == 422


def test_project_overrides_require_manage_rights(client: TestClient) -> None:
    seeded = seed_project(client, members=((MEMBER, "member"), (MANAGER, "manager")))
    member_id = register(client, MEMBER)
    url = f"/api/v1/rates/projects/{seeded['project_id']}/overrides/{member_id}"

    denied = client.put(url, json={"hourly_rate_cents": 12000}, headers=MEMBER)
    assert denied.status_code == 403

    created = client.put(url, json={"hourly_rate_cents": 12000}, headers=MANAGER)
    updated = client.put(url, json={"hourly_rate_cents": 12500}, headers=OWNER)
    assert created.status_code == 200
    assert updated.json()["hourly_rate_cents"] == 12500

    listed = client.get(f"/api/v1/rates/projects/{seeded['project_id']}/overrides", headers=OWNER)
    assert [row["user_id"] for row in listed.json()["items"]] == [member_id]

    assert client.delete(url, headers=OWNER).status_code == 204
    assert client.delete(url, headers=OWNER).status_code == 404


def test_project_override_target_must_be_member(client: TestClient) -> None:
    seeded = seed_project(client)
    outsider_id = register(client, OUTSIDER)

    response = client.put(
        f"/api/v1/rates/projects/{seeded['project_id']}/overrides/{outsider_id}",
        json={"hourly_rate_cents": 5000},
        headers=OWNER,
    )

    assert response.status_code == 422


def test_client_member_rate_is_owner_only(client: TestClient) -> None:
    seeded = seed_project(client)
    member_id = register(client, MEMBER)
    added = client.post(
        f"/api/v1/clients/{seeded['client_id']}/members",
        json={"email": "member@test.local", "role": "member"},
        headers=OWNER,
    )
    assert added.status_code == 201

    url = f"/api/v1/clients/{seeded['client_id']}/members/{member_id}/rate"
    assert client.put(url, json={"hourly_rate_cents": 9000}, headers=MEMBER).status_code == 403

    response = client.put(url, json={"hourly_rate_cents": 9000}, headers=OWNER)
    assert response.status_code == 200
    assert response.json()["hourly_rate_cents"] == 9000


def test_client_member_joins_existing_projects(client: TestClient) -> None:
    seeded = seed_project(client)
    register(client, MEMBER)

    client.post(
        f"/api/v1/clients/{seeded['client_id']}/members",
        json={"email": "member@test.local", "role": "member"},
        headers=OWNER,
    )

    projects = client.get("/api/v1/projects", headers=MEMBER).json()["items"]
    assert [(row["id"], row["role"]) for row in projects] == [(seeded["project_id"], "member")]
