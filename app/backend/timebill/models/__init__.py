"""ORM model package."""

from timebill.models.entities import (
    ActivityType,
    Client,
    ClientMember,
    EntrySource,
    Project,
    ProjectMember,
    ProjectRateOverride,
    RateCard,
    Report,
    ReportSnapshot,
    TimeEntry,
    TimeEntryAudit,
    User,
)

__all__ = [
    "ActivityType",
    "Client",
    "ClientMember",
    "EntrySource",
    "Project",
    "ProjectMember",
    "ProjectRateOverride",
    "RateCard",
    "Report",
    "ReportSnapshot",
    "TimeEntry",
    "TimeEntryAudit",
    "User",
]
