"""Time interval validation, duration computation and overlap detection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from timebill.core.errors import InvalidTimestamp, NonPositiveDuration, OverlapDetected, Result

MICROSECONDS_PER_MINUTE = Decimal(60_000_000)


@dataclass(frozen=True, slots=True)
class TimeRange:
    """Closed description of a recorded interval, optionally tied to an entry."""

    start_at: datetime
    end_at: datetime
    entry_id: UUID | str | None = None

    def overlaps(self, other: TimeRange) -> bool:
        # Touching endpoints do not overlap.
        return as_utc(self.start_at) < as_utc(other.end_at) and as_utc(self.end_at) > as_utc(other.start_at)


@dataclass(frozen=True, slots=True)
class IntervalCheck:
    start_at: datetime
    end_at: datetime
    duration_minutes: int


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: object, field_name: str) -> Result[datetime]:
    """Coerce a datetime or ISO-8601 string into an aware UTC instant."""

    if isinstance(value, datetime):
        return Result.success(as_utc(value))
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = f"{raw[:-1]}+00:00"
        try:
            return Result.success(as_utc(datetime.fromisoformat(raw)))
        except ValueError:
            pass
    return Result.failure(InvalidTimestamp(f"{field_name} must be a valid date"))


def _microseconds(delta: timedelta) -> int:
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def duration_minutes_between(start_at: datetime, end_at: datetime) -> int:
    """Whole minutes between two instants, rounding half away from zero."""

    minutes = Decimal(_microseconds(as_utc(end_at) - as_utc(start_at))) / MICROSECONDS_PER_MINUTE
    return int(minutes.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_interval(start_at: object, end_at: object) -> Result[IntervalCheck]:
    """Validate a candidate interval and compute its duration in minutes."""

    start = parse_instant(start_at, "start_at")
    if not start.ok:
        return Result.failure(start.error)
    end = parse_instant(end_at, "end_at")
    if not end.ok:
        return Result.failure(end.error)

    start_value = start.unwrap()
    end_value = end.unwrap()
    if end_value <= start_value:
        return Result.failure(NonPositiveDuration("end_at must be after start_at"))

    return Result.success(
        IntervalCheck(
            start_at=start_value,
            end_at=end_value,
            duration_minutes=duration_minutes_between(start_value, end_value),
        )
    )


def check_no_overlap(
    candidate: TimeRange,
    existing_ranges: Iterable[TimeRange],
    exclude_id: UUID | str | None = None,
) -> Result[None]:
    """Fail when the candidate overlaps any of one owner's existing ranges.

    ``exclude_id`` removes the entry being updated from the comparison set.
    """

    for existing in existing_ranges:
        if exclude_id is not None and existing.entry_id is not None and str(existing.entry_id) == str(exclude_id):
            continue
        if candidate.overlaps(existing):
            return Result.failure(OverlapDetected("Time entry overlaps with an existing entry"))
    return Result.success(None)
