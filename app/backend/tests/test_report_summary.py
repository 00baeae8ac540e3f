from __future__ import annotations

from timebill.domain.reporting import (
    ReportableEntry,
    build_report_summary,
    empty_summary,
    restrict_entries,
    summary_section_rows,
)


def _entry(
    entry_id: str,
    *,
    project: str,
    user: str,
    activity: str,
    minutes: int,
    billable: bool,
    rate: int | None,
) -> ReportableEntry:
    return ReportableEntry(
        entry_id=entry_id,
        project_id=project,
        project_name=project.upper(),
        user_id=user,
        user_name=user.upper(),
        activity_type_id=activity,
        activity_type_name=activity.upper(),
        duration_minutes=minutes,
        is_billable=billable,
        hourly_rate_cents=rate,
    )


SAMPLE = [
    _entry("e1", project="p1", user="u1", activity="a1", minutes=120, billable=True, rate=10000),
    _entry("e2", project="p1", user="u1", activity="a2", minutes=60, billable=True, rate=10000),
    _entry("e3", project="p2", user="u2", activity="a1", minutes=30, billable=False, rate=9000),
]


def _pairs(items: tuple) -> list[tuple[str, int, int]]:
    return [(item.key, item.total_minutes, item.billable_amount_cents) for item in items]


def test_summary_totals_and_bucket_order() -> None:
    summary = build_report_summary(SAMPLE)

    assert summary.total_minutes == 210
    assert summary.total_billable_amount_cents == 30000
    assert _pairs(summary.by_project) == [("p1", 180, 30000), ("p2", 30, 0)]
    assert _pairs(summary.by_member) == [("u1", 180, 30000), ("u2", 30, 0)]
    assert _pairs(summary.by_activity) == [("a1", 150, 20000), ("a2", 60, 10000)]


def test_summary_is_idempotent() -> None:
    assert build_report_summary(SAMPLE).to_dict() == build_report_summary(SAMPLE).to_dict()


def test_ties_are_broken_by_label() -> None:
    entries = [
        _entry("e1", project="zeta", user="u1", activity="a1", minutes=30, billable=False, rate=None),
        _entry("e2", project="alpha", user="u1", activity="a1", minutes=30, billable=False, rate=None),
    ]

    summary = build_report_summary(entries)

    assert [item.label for item in summary.by_project] == ["ALPHA", "ZETA"]


def test_missing_rate_contributes_minutes_but_no_amount() -> None:
    summary = build_report_summary(
        [_entry("e1", project="p1", user="u1", activity="a1", minutes=45, billable=True, rate=None)]
    )

    assert summary.total_minutes == 45
    assert summary.total_billable_amount_cents == 0


def test_missing_label_falls_back_to_unknown() -> None:
    entry = ReportableEntry(
        entry_id="e1",
        project_id="p1",
        project_name=None,
        user_id="u1",
        user_name="U1",
        activity_type_id="a1",
        activity_type_name="A1",
        duration_minutes=15,
        is_billable=False,
        hourly_rate_cents=None,
    )

    assert build_report_summary([entry]).by_project[0].label == "Unknown"


def test_restricted_entries_keep_minutes_and_drop_billing() -> None:
    summary = build_report_summary(restrict_entries(SAMPLE))

    assert summary.total_minutes == 210
    assert summary.total_billable_amount_cents == 0
    assert all(item.billable_amount_cents == 0 for item in summary.by_member)


def test_empty_summary_shape() -> None:
    assert empty_summary().to_dict() == {
        "total_minutes": 0,
        "total_billable_amount_cents": 0,
        "by_project": [],
        "by_member": [],
        "by_activity": [],
    }


def test_section_rows_flatten_items() -> None:
    rows = summary_section_rows(build_report_summary(SAMPLE).by_activity)

    assert rows[0] == {"label": "A1", "total_minutes": 150, "billable_amount_cents": 20000}
