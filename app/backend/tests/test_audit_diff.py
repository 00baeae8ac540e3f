from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from timebill.domain.audit import EntrySnapshot, diff_entry, serialize_audit_value


def _snapshot(**overrides: object) -> EntrySnapshot:
    values = {
        "start_at": datetime(2026, 3, 2, 9, tzinfo=timezone.utc),
        "end_at": datetime(2026, 3, 2, 10, tzinfo=timezone.utc),
        "duration_minutes": 60,
        "activity_type_id": uuid.UUID("00000000-0000-0000-0000-000000000001"),
        "description": "Sprint planning",
        "is_billable": True,
    }
    values.update(overrides)
    return EntrySnapshot(**values)


def test_description_change_yields_single_record() -> None:
    entry_id, actor_id = uuid.uuid4(), uuid.uuid4()

    records = diff_entry(
        _snapshot(),
        _snapshot(description="Sprint review"),
        entry_id=entry_id,
        changed_by_id=actor_id,
    )

    assert len(records) == 1
    assert records[0].field == "description"
    assert records[0].previous_value == "Sprint planning"
    assert records[0].new_value == "Sprint review"
    assert records[0].changed_by_id == actor_id


def test_unchanged_entry_yields_no_records() -> None:
    assert diff_entry(_snapshot(), _snapshot(), entry_id="e1", changed_by_id="u1") == []


def test_naive_and_aware_equal_instants_are_not_a_change() -> None:
    naive = _snapshot(start_at=datetime(2026, 3, 2, 9))

    assert diff_entry(naive, _snapshot(), entry_id="e1", changed_by_id="u1") == []


def test_interval_change_records_bounds_and_duration() -> None:
    after = _snapshot(
        end_at=datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc),
        duration_minutes=90,
    )

    records = diff_entry(_snapshot(), after, entry_id="e1", changed_by_id="u1")

    assert [record.field for record in records] == ["end_at", "duration_minutes"]
    assert records[0].new_value == "2026-03-02T10:30:00.000Z"
    assert records[1].previous_value == "60"


def test_value_serialization() -> None:
    assert serialize_audit_value(None) is None
    assert serialize_audit_value(True) == "true"
    assert serialize_audit_value(False) == "false"
    assert serialize_audit_value(42) == "42"
    assert (
        serialize_audit_value(datetime(2026, 3, 2, 11, 0, 0, 250000, tzinfo=timezone(timedelta(hours=1))))
        == "2026-03-02T10:00:00.250Z"
    )
