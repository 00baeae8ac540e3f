from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import MANAGER, MEMBER, OUTSIDER, OWNER, TEAMMATE, manual_entry, register, seed_project


def _add_client_member(client: TestClient, client_id: str, headers: dict[str, str], role: str = "member") -> str:
    user_id = register(client, headers)
    response = client.post(
        f"/api/v1/clients/{client_id}/members",
        json={"email": headers["X-AUTH-EMAIL"], "role": role},
        headers=OWNER,
    )
    assert response.status_code == 201
    return user_id


def test_owner_updates_client_details(client: TestClient) -> None:
    seeded = seed_project(client)
    _add_client_member(client, seeded["client_id"], MEMBER)

    updated = client.patch(
        f"/api/v1/clients/{seeded['client_id']}",
        json={"name": "  Acme Corp ", "description": "Key account", "is_active": False},
        headers=OWNER,
    )
    denied = client.patch(f"/api/v1/clients/{seeded['client_id']}", json={"name": "Mine"}, headers=MEMBER)

    assert updated.status_code == 200
    assert updated.json()["name"] == "Acme Corp"
    assert updated.json()["description"] == "Key account"
    assert updated.json()["is_active"] is False
    assert denied.status_code == 403
    assert denied.json()["detail"]["code"] == "permission_denied"


def test_client_member_list_carries_user_details(client: TestClient) -> None:
    seeded = seed_project(client)
    member_id = _add_client_member(client, seeded["client_id"], MEMBER)

    response = client.get(f"/api/v1/clients/{seeded['client_id']}/members", headers=OWNER)

    assert response.status_code == 200
    rows = [(row["user_name"], row["user_email"], row["role"]) for row in response.json()["items"]]
    assert rows == [("Owner", "owner@test.local", "owner"), ("Member", "member@test.local", "member")]
    assert response.json()["items"][1]["user_id"] == member_id
    assert client.get(f"/api/v1/clients/{seeded['client_id']}/members", headers=MEMBER).status_code == 403


def test_removing_client_member_revokes_project_access(client: TestClient) -> None:
    seeded = seed_project(client)
    member_id = _add_client_member(client, seeded["client_id"], MEMBER)
    assert [row["id"] for row in client.get("/api/v1/projects", headers=MEMBER).json()["items"]] == [
        seeded["project_id"]
    ]

    response = client.delete(f"/api/v1/clients/{seeded['client_id']}/members/{member_id}", headers=OWNER)

    assert response.status_code == 204
    assert client.get("/api/v1/projects", headers=MEMBER).json()["items"] == []
    remaining = client.get(f"/api/v1/clients/{seeded['client_id']}/members", headers=OWNER).json()["items"]
    assert [row["user_email"] for row in remaining] == ["owner@test.local"]


def test_client_owner_cannot_remove_self_or_unknown_member(client: TestClient) -> None:
    seeded = seed_project(client)
    owner_id = register(client, OWNER)
    outsider_id = register(client, OUTSIDER)
    base = f"/api/v1/clients/{seeded['client_id']}/members"

    assert client.delete(f"{base}/{owner_id}", headers=OWNER).status_code == 422
    assert client.delete(f"{base}/{outsider_id}", headers=OWNER).status_code == 404


def test_client_member_removal_keeps_a_project_owner(client: TestClient) -> None:
    seeded = seed_project(client)
    owner_id = register(client, OWNER)
    teammate_id = _add_client_member(client, seeded["client_id"], TEAMMATE, role="owner")
    demoted = client.patch(
        f"/api/v1/projects/{seeded['project_id']}/members/{owner_id}",
        json={"role": "manager"},
        headers=OWNER,
    )
    assert demoted.status_code == 200

    response = client.delete(f"/api/v1/clients/{seeded['client_id']}/members/{teammate_id}", headers=OWNER)

    assert response.status_code == 422
    members = client.get(f"/api/v1/clients/{seeded['client_id']}/members", headers=OWNER).json()["items"]
    assert len(members) == 2
    project_members = client.get(f"/api/v1/projects/{seeded['project_id']}/members", headers=OWNER).json()["items"]
    assert {(row["user_id"], row["role"]) for row in project_members} == {
        (owner_id, "manager"),
        (teammate_id, "owner"),
    }


def test_user_directory_is_limited_to_client_owners(client: TestClient) -> None:
    seed_project(client, members=((MEMBER, "member"),))
    register(client, OUTSIDER)

    listed = client.get("/api/v1/clients/users", headers=OWNER)
    denied = client.get("/api/v1/clients/users", headers=MEMBER)

    assert listed.status_code == 200
    assert [row["display_name"] for row in listed.json()["items"]] == ["Member", "Outsider", "Owner"]
    assert denied.status_code == 403
    assert denied.json()["detail"]["code"] == "permission_denied"


def test_project_settings_follow_manage_settings_capability(client: TestClient) -> None:
    seeded = seed_project(client, members=((MANAGER, "manager"), (MEMBER, "member")))

    updated = client.patch(
        f"/api/v1/projects/{seeded['project_id']}",
        json={"name": "Website v2", "code": "  ", "description": "Relaunch", "is_active": False},
        headers=MANAGER,
    )
    denied = client.patch(f"/api/v1/projects/{seeded['project_id']}", json={"name": "Ours"}, headers=MEMBER)

    assert updated.status_code == 200
    payload = updated.json()
    assert (payload["name"], payload["code"], payload["description"]) == ("Website v2", None, "Relaunch")
    assert payload["is_active"] is False
    assert payload["role"] == "manager"
    assert denied.status_code == 403
    assert denied.json()["detail"]["code"] == "permission_denied"


def test_activity_type_rename_rejects_duplicates(client: TestClient) -> None:
    seeded = seed_project(client)
    assert client.post("/api/v1/activity-types", json={"name": "Design"}, headers=OWNER).status_code == 201
    base = f"/api/v1/activity-types/{seeded['activity_type_id']}"

    renamed = client.patch(base, json={"name": " Engineering ", "is_billable_default": False}, headers=OWNER)
    duplicate = client.patch(base, json={"name": "Design"}, headers=OWNER)

    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Engineering"
    assert renamed.json()["is_billable_default"] is False
    assert duplicate.status_code == 409
    names = [row["name"] for row in client.get("/api/v1/activity-types", headers=OWNER).json()["items"]]
    assert names == ["Design", "Engineering"]


def test_activity_type_delete_refuses_while_entries_use_it(client: TestClient) -> None:
    seeded = seed_project(client)
    entry_id = manual_entry(
        client, seeded, OWNER, start_at="2026-03-02T10:00:00Z", end_at="2026-03-02T11:00:00Z"
    ).json()["id"]
    base = f"/api/v1/activity-types/{seeded['activity_type_id']}"

    blocked = client.delete(base, headers=OWNER)
    assert blocked.status_code == 422
    assert blocked.json()["detail"] == "Cannot delete: 1 time entry uses this activity type."

    assert client.delete(f"/api/v1/time-entries/{entry_id}", headers=OWNER).status_code == 204
    assert client.delete(base, headers=OWNER).status_code == 204
    assert client.get("/api/v1/activity-types", headers=OWNER).json()["items"] == []
    assert client.delete(base, headers=OWNER).status_code == 404
