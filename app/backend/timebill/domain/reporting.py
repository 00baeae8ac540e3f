"""Aggregation of enriched time entries into billing report summaries.

The aggregator is pure: callers restrict entries to what the requester may
see and attach resolved hourly rates before calling
:func:`build_report_summary`. Restricted viewers get their entries passed
through :func:`restrict_entries` first so hour totals stay visible while
billing figures collapse to zero.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from uuid import UUID

from timebill.domain.rates import calculate_amount_cents

UNKNOWN_LABEL = "Unknown"


@dataclass(frozen=True, slots=True)
class ReportableEntry:
    entry_id: UUID | str
    project_id: UUID | str
    project_name: str
    user_id: UUID | str
    user_name: str
    activity_type_id: UUID | str
    activity_type_name: str
    duration_minutes: int
    is_billable: bool
    hourly_rate_cents: int | None


@dataclass(frozen=True, slots=True)
class TotalsItem:
    key: str
    label: str
    total_minutes: int
    billable_amount_cents: int

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "label": self.label,
            "total_minutes": self.total_minutes,
            "billable_amount_cents": self.billable_amount_cents,
        }


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total_minutes: int
    total_billable_amount_cents: int
    by_project: tuple[TotalsItem, ...]
    by_member: tuple[TotalsItem, ...]
    by_activity: tuple[TotalsItem, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "total_minutes": self.total_minutes,
            "total_billable_amount_cents": self.total_billable_amount_cents,
            "by_project": [item.to_dict() for item in self.by_project],
            "by_member": [item.to_dict() for item in self.by_member],
            "by_activity": [item.to_dict() for item in self.by_activity],
        }


class _Bucket:
    """Grouping accumulator: keys map to slots in parallel total arrays."""

    def __init__(self) -> None:
        self._slots: dict[str, int] = {}
        self._keys: list[str] = []
        self._labels: list[str] = []
        self._minutes: list[int] = []
        self._amounts: list[int] = []

    def add(self, key: UUID | str, label: str | None, minutes: int, amount_cents: int) -> None:
        normalized = str(key)
        slot = self._slots.get(normalized)
        if slot is None:
            slot = len(self._keys)
            self._slots[normalized] = slot
            self._keys.append(normalized)
            self._labels.append(UNKNOWN_LABEL)
            self._minutes.append(0)
            self._amounts.append(0)
        if label is not None:
            self._labels[slot] = label
        self._minutes[slot] += minutes
        self._amounts[slot] += amount_cents

    def items(self) -> tuple[TotalsItem, ...]:
        rows = [
            TotalsItem(
                key=self._keys[slot],
                label=self._labels[slot],
                total_minutes=self._minutes[slot],
                billable_amount_cents=self._amounts[slot],
            )
            for slot in range(len(self._keys))
        ]
        # Descending minutes, then ordinal label.
        rows.sort(key=lambda item: (-item.total_minutes, item.label))
        return tuple(rows)


def entry_amount_cents(entry: ReportableEntry) -> int:
    return calculate_amount_cents(
        entry.duration_minutes,
        entry.hourly_rate_cents or 0,
        entry.is_billable and entry.hourly_rate_cents is not None,
    )


def build_report_summary(entries: Iterable[ReportableEntry]) -> ReportSummary:
    by_project = _Bucket()
    by_member = _Bucket()
    by_activity = _Bucket()
    total_minutes = 0
    total_amount_cents = 0

    for entry in entries:
        amount = entry_amount_cents(entry)
        total_minutes += entry.duration_minutes
        total_amount_cents += amount
        by_project.add(entry.project_id, entry.project_name, entry.duration_minutes, amount)
        by_member.add(entry.user_id, entry.user_name, entry.duration_minutes, amount)
        by_activity.add(entry.activity_type_id, entry.activity_type_name, entry.duration_minutes, amount)

    return ReportSummary(
        total_minutes=total_minutes,
        total_billable_amount_cents=total_amount_cents,
        by_project=by_project.items(),
        by_member=by_member.items(),
        by_activity=by_activity.items(),
    )


def restrict_entries(entries: Iterable[ReportableEntry]) -> list[ReportableEntry]:
    return [replace(entry, is_billable=False, hourly_rate_cents=None) for entry in entries]


def summary_section_rows(items: Iterable[TotalsItem]) -> list[dict[str, object]]:
    return [
        {
            "label": item.label,
            "total_minutes": item.total_minutes,
            "billable_amount_cents": item.billable_amount_cents,
        }
        for item in items
    ]


def empty_summary() -> ReportSummary:
    return build_report_summary(())
