from __future__ import annotations

import csv
import io

from fastapi.testclient import TestClient
from openpyxl import load_workbook

from conftest import MEMBER, OWNER, manual_entry, register, seed_project

WINDOW = {"start_date": "2026-03-02T00:00:00Z", "end_date": "2026-03-03T00:00:00Z"}


def _seed_billing(client: TestClient) -> dict[str, str]:
    """Owner at the 100/h default, member at a 120/h project override over a 90/h client rate."""

    seeded = seed_project(client)
    member_id = register(client, MEMBER)
    client.post(
        f"/api/v1/clients/{seeded['client_id']}/members",
        json={"email": "member@test.local", "role": "member", "hourly_rate_cents": 9000},
        headers=OWNER,
    )
    client.put("/api/v1/rates/me/default", json={"hourly_rate_cents": 10000}, headers=OWNER)
    client.put(
        f"/api/v1/rates/projects/{seeded['project_id']}/overrides/{member_id}",
        json={"hourly_rate_cents": 12000},
        headers=OWNER,
    )

    assert manual_entry(client, seeded, OWNER, start_at="2026-03-02T10:00:00Z", end_at="2026-03-02T12:00:00Z").status_code == 201
    assert manual_entry(client, seeded, MEMBER, start_at="2026-03-02T13:00:00Z", end_at="2026-03-02T13:30:00Z").status_code == 201
    return seeded


def test_owner_summary_resolves_rates_per_entry(client: TestClient) -> None:
    _seed_billing(client)

    response = client.get("/api/v1/reports/summary", params=WINDOW, headers=OWNER)

    assert response.status_code == 200
    payload = response.json()
    assert payload["has_full_access"] is True
    assert payload["entry_count"] == 2
    summary = payload["summary"]
    assert summary["total_minutes"] == 150
    assert summary["total_billable_amount_cents"] == 26000
    assert [(row["label"], row["total_minutes"], row["billable_amount_cents"]) for row in summary["by_member"]] == [
        ("Owner", 120, 20000),
        ("Member", 30, 6000),
    ]
    assert summary["by_project"][0]["label"] == "Website"
    assert summary["by_activity"][0]["label"] == "Development"


def test_member_summary_is_restricted_to_own_hours(client: TestClient) -> None:
    _seed_billing(client)

    payload = client.get("/api/v1/reports/summary", params=WINDOW, headers=MEMBER).json()

    assert payload["has_full_access"] is False
    assert payload["entry_count"] == 1
    assert payload["summary"]["total_minutes"] == 30
    assert payload["summary"]["total_billable_amount_cents"] == 0
    assert [row["label"] for row in payload["summary"]["by_member"]] == ["Member"]


def test_member_filter_narrows_full_access_summary(client: TestClient) -> None:
    _seed_billing(client)
    member_id = register(client, MEMBER)

    payload = client.get(
        "/api/v1/reports/summary", params={**WINDOW, "member_id": member_id}, headers=OWNER
    ).json()

    assert payload["summary"]["total_minutes"] == 30
    assert payload["summary"]["total_billable_amount_cents"] == 6000


def test_foreign_client_filter_is_denied(client: TestClient) -> None:
    _seed_billing(client)
    other_client = client.post("/api/v1/clients", json={"name": "Globex"}, headers=MEMBER).json()["id"]

    response = client.get("/api/v1/reports/summary", params={**WINDOW, "client_id": other_client}, headers=OWNER)

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "permission_denied"


def test_inverted_window_is_rejected(client: TestClient) -> None:
    _seed_billing(client)

    response = client.get(
        "/api/v1/reports/summary",
        params={"start_date": "2026-03-03T00:00:00Z", "end_date": "2026-03-02T00:00:00Z"},
        headers=OWNER,
    )

    assert response.status_code == 422


def test_malformed_report_window_reports_invalid_timestamp(client: TestClient) -> None:
    _seed_billing(client)

    summary = client.get(
        "/api/v1/reports/summary",
        params={"start_date": "last monday", "end_date": "2026-03-03T00:00:00Z"},
        headers=OWNER,
    )
    generated = client.post(
        "/api/v1/reports", json={"start_date": "2026-03-02T00:00:00Z", "end_date": ""}, headers=OWNER
    )

    assert summary.status_code == 422
    assert summary.json()["detail"]["code"] == "invalid_timestamp"
    assert generated.status_code == 422
    assert generated.json()["detail"]["code"] == "invalid_timestamp"
    assert client.get("/api/v1/reports", headers=OWNER).json()["items"] == []


def test_generate_persists_snapshot(client: TestClient) -> None:
    seeded = _seed_billing(client)

    generated = client.post("/api/v1/reports", json={**WINDOW, "project_id": seeded["project_id"]}, headers=OWNER)
    assert generated.status_code == 201
    assert generated.json()["summary"]["total_billable_amount_cents"] == 26000

    reports = client.get("/api/v1/reports", headers=OWNER).json()["items"]
    assert len(reports) == 1
    assert reports[0]["id"] == generated.json()["report_id"]
    assert reports[0]["project_id"] == seeded["project_id"]
    assert reports[0]["summary"]["total_minutes"] == 150
    assert client.get("/api/v1/reports", headers=MEMBER).json()["items"] == []


def test_csv_export_flattens_sections(client: TestClient) -> None:
    _seed_billing(client)

    response = client.get("/api/v1/reports/export", params={**WINDOW, "format": "csv"}, headers=OWNER)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="time-report-' in response.headers["content-disposition"]
    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert rows[0] == {"section": "total", "label": "All entries", "total_minutes": "150", "billable_amount_cents": "26000"}
    assert [row["section"] for row in rows[1:]] == ["project", "member", "member", "activity"]


def test_xlsx_export_is_readable(client: TestClient) -> None:
    _seed_billing(client)

    response = client.get("/api/v1/reports/export", params=WINDOW, headers=OWNER)

    assert response.status_code == 200
    sheet = load_workbook(io.BytesIO(response.content)).active
    assert [cell.value for cell in sheet[1]] == ["section", "label", "total_minutes", "billable_amount_cents"]
    assert sheet.max_row == 6


def test_unknown_export_format_is_rejected(client: TestClient) -> None:
    _seed_billing(client)

    response = client.get("/api/v1/reports/export", params={**WINDOW, "format": "pdf"}, headers=OWNER)

    assert response.status_code == 422
