from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from timebill.core.errors import ErrorKind, NonPositiveDuration
from timebill.domain.intervals import (
    TimeRange,
    check_no_overlap,
    duration_minutes_between,
    parse_instant,
    validate_interval,
)


def _at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, second, tzinfo=timezone.utc)


def test_validate_interval_computes_rounded_minutes() -> None:
    result = validate_interval(_at(9), _at(10, 30))

    assert result.ok is True
    assert result.unwrap().duration_minutes == 90


def test_duration_rounds_half_away_from_zero() -> None:
    assert duration_minutes_between(_at(9), _at(9, 0, 30)) == 1
    assert duration_minutes_between(_at(9), _at(9, 0, 29)) == 0
    assert duration_minutes_between(_at(9), _at(9, 1, 30)) == 2


def test_validate_interval_rejects_equal_and_reversed_bounds() -> None:
    equal = validate_interval(_at(9), _at(9))
    reversed_ = validate_interval(_at(10), _at(9))

    assert equal.kind is ErrorKind.NON_POSITIVE_DURATION
    assert reversed_.kind is ErrorKind.NON_POSITIVE_DURATION
    with pytest.raises(NonPositiveDuration):
        reversed_.unwrap()


def test_validate_interval_rejects_unparseable_instants() -> None:
    result = validate_interval("not-a-date", _at(9))

    assert result.ok is False
    assert result.kind is ErrorKind.INVALID_TIMESTAMP


def test_parse_instant_accepts_zulu_suffix() -> None:
    parsed = parse_instant("2026-03-02T10:00:00Z", "start_at")

    assert parsed.unwrap() == _at(10)


def test_parse_instant_converts_offsets_to_utc() -> None:
    parsed = parse_instant(datetime(2026, 3, 2, 12, tzinfo=timezone(timedelta(hours=2))), "start_at")

    assert parsed.unwrap() == _at(10)


def test_overlap_is_detected_for_intersecting_ranges() -> None:
    existing = [TimeRange(start_at=_at(10), end_at=_at(11), entry_id=uuid.uuid4())]

    result = check_no_overlap(TimeRange(start_at=_at(10, 30), end_at=_at(11, 30)), existing)

    assert result.kind is ErrorKind.OVERLAP_DETECTED


def test_touching_ranges_do_not_overlap() -> None:
    existing = [TimeRange(start_at=_at(10), end_at=_at(11), entry_id=uuid.uuid4())]

    assert check_no_overlap(TimeRange(start_at=_at(11), end_at=_at(12)), existing).ok is True
    assert check_no_overlap(TimeRange(start_at=_at(9), end_at=_at(10)), existing).ok is True


def test_excluded_entry_is_ignored() -> None:
    entry_id = uuid.uuid4()
    existing = [TimeRange(start_at=_at(10), end_at=_at(11), entry_id=entry_id)]

    result = check_no_overlap(TimeRange(start_at=_at(10, 15), end_at=_at(11, 15)), existing, exclude_id=str(entry_id))

    assert result.ok is True
