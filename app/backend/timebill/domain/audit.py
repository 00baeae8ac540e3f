"""Field-level audit diffs for time entry updates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from timebill.domain.intervals import as_utc

AUDITED_FIELDS: tuple[str, ...] = (
    "start_at",
    "end_at",
    "duration_minutes",
    "activity_type_id",
    "description",
    "is_billable",
)


@dataclass(frozen=True, slots=True)
class EntrySnapshot:
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    activity_type_id: UUID | str
    description: str
    is_billable: bool

    @classmethod
    def of(cls, entry: object) -> EntrySnapshot:
        """Capture the audited fields of an entry-like object."""

        return cls(**{name: getattr(entry, name) for name in AUDITED_FIELDS})


@dataclass(frozen=True, slots=True)
class AuditRecord:
    entry_id: UUID | str
    changed_by_id: UUID | str
    field: str
    previous_value: str | None
    new_value: str | None


def serialize_audit_value(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def diff_entry(
    before: object,
    after: object,
    *,
    entry_id: UUID | str,
    changed_by_id: UUID | str,
    fields: tuple[str, ...] = AUDITED_FIELDS,
) -> list[AuditRecord]:
    records: list[AuditRecord] = []
    for name in fields:
        previous = serialize_audit_value(getattr(before, name))
        current = serialize_audit_value(getattr(after, name))
        if previous != current:
            records.append(
                AuditRecord(
                    entry_id=entry_id,
                    changed_by_id=changed_by_id,
                    field=name,
                    previous_value=previous,
                    new_value=current,
                )
            )
    return records
