"""Hourly rate precedence and billable amount arithmetic."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

MINUTES_PER_HOUR = Decimal(60)


class RateSource(str, Enum):
    PROJECT_OVERRIDE = "project_override"
    CLIENT_MEMBER = "client_member"
    DEFAULT = "default"


# Most specific first.
RATE_PRECEDENCE: tuple[RateSource, ...] = (
    RateSource.PROJECT_OVERRIDE,
    RateSource.CLIENT_MEMBER,
    RateSource.DEFAULT,
)


@dataclass(frozen=True, slots=True)
class RateCandidate:
    source: RateSource
    hourly_rate_cents: int | None


def resolve_hourly_rate_cents(candidates: Iterable[RateCandidate]) -> int | None:
    """Return the first explicit rate in specificity order.

    Zero is an explicit rate; only ``None`` falls through to the next level.
    """

    for candidate in candidates:
        if candidate.hourly_rate_cents is not None:
            return candidate.hourly_rate_cents
    return None


def rate_candidates(
    *,
    default: int | None = None,
    client_member: int | None = None,
    project_override: int | None = None,
) -> list[RateCandidate]:
    values = {
        RateSource.PROJECT_OVERRIDE: project_override,
        RateSource.CLIENT_MEMBER: client_member,
        RateSource.DEFAULT: default,
    }
    return [RateCandidate(source=source, hourly_rate_cents=values[source]) for source in RATE_PRECEDENCE]


def resolve_from_levels(
    *,
    default: int | None = None,
    client_member: int | None = None,
    project_override: int | None = None,
) -> int | None:
    """Resolve a rate from the three known levels.

    Deployments without client-scoped rates simply omit ``client_member``.
    """

    return resolve_hourly_rate_cents(
        rate_candidates(default=default, client_member=client_member, project_override=project_override)
    )


def calculate_amount_cents(duration_minutes: int, hourly_rate_cents: int, is_billable: bool) -> int:
    """Billable amount in integer cents, rounded half away from zero."""

    if not is_billable:
        return 0
    amount = Decimal(duration_minutes) * Decimal(hourly_rate_cents) / MINUTES_PER_HOUR
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))
