"""Time entry lifecycle: creation, guarded updates with audit trail, deletion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_policy, get_project_membership_or_raise
from timebill.core.config import get_settings
from timebill.core.errors import DomainError, PermissionDenied
from timebill.domain.audit import EntrySnapshot, diff_entry
from timebill.domain.intervals import (
    IntervalCheck,
    TimeRange,
    as_utc,
    check_no_overlap,
    parse_instant,
    validate_interval,
)
from timebill.models.entities import ActivityType, EntrySource, TimeEntry, TimeEntryAudit, utcnow
from timebill.repositories.time_tracking_repository import TimeTrackingRepository

logger = logging.getLogger(__name__)


def _optional_instant(value: datetime | str | None, field_name: str) -> datetime | None:
    if value is None:
        return None
    return parse_instant(value, field_name).unwrap()


@dataclass(slots=True)
class EntryCreateData:
    project_id: UUID
    activity_type_id: UUID
    start_at: datetime | str
    end_at: datetime | str
    description: str
    is_billable: bool | None = None


@dataclass(slots=True)
class EntryUpdateData:
    start_at: datetime | str | None = None
    end_at: datetime | str | None = None
    activity_type_id: UUID | None = None
    description: str | None = None
    is_billable: bool | None = None

    def is_empty(self) -> bool:
        return (
            self.start_at is None
            and self.end_at is None
            and self.activity_type_id is None
            and self.description is None
            and self.is_billable is None
        )


@dataclass(slots=True)
class EntryListFilters:
    start_date: datetime | str | None = None
    end_date: datetime | str | None = None
    project_id: UUID | None = None
    member_id: UUID | None = None
    activity_type_id: UUID | None = None
    client_id: UUID | None = None


class TimeEntryService:
    """Service guarding time entry integrity per owner."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.policy = get_policy()
        self.settings = get_settings()

    # ---------- Serialization ----------
    @staticmethod
    def serialize_entry(entry: TimeEntry) -> dict[str, object]:
        return {
            "id": str(entry.id),
            "user_id": str(entry.user_id),
            "client_id": str(entry.client_id),
            "project_id": str(entry.project_id),
            "activity_type_id": str(entry.activity_type_id),
            "source": entry.source.value,
            "start_at": as_utc(entry.start_at).isoformat(),
            "end_at": as_utc(entry.end_at).isoformat(),
            "duration_minutes": entry.duration_minutes,
            "description": entry.description,
            "is_billable": entry.is_billable,
        }

    @staticmethod
    def serialize_audit(audit: TimeEntryAudit) -> dict[str, object]:
        return {
            "id": str(audit.id),
            "time_entry_id": str(audit.time_entry_id),
            "changed_by_id": str(audit.changed_by_id),
            "field": audit.field,
            "previous_value": audit.previous_value,
            "new_value": audit.new_value,
            "changed_at": as_utc(audit.changed_at).isoformat(),
        }

    # ---------- Guards ----------
    def _get_entry_or_404(self, entry_id: UUID) -> TimeEntry:
        entry = self.repo.get_entry(entry_id)
        if entry is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found.")
        return entry

    def _get_activity_type_or_404(self, activity_type_id: UUID) -> ActivityType:
        activity_type = self.repo.get_activity_type(activity_type_id)
        if activity_type is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity type not found.")
        return activity_type

    def _ensure_no_overlap(self, *, user_id: UUID, interval: IntervalCheck, exclude_entry_id: UUID | None) -> None:
        existing = self.repo.list_overlapping_entries(
            user_id=user_id,
            start_at=interval.start_at,
            end_at=interval.end_at,
            exclude_entry_id=exclude_entry_id,
        )
        check_no_overlap(
            TimeRange(start_at=interval.start_at, end_at=interval.end_at),
            [TimeRange(start_at=row.start_at, end_at=row.end_at, entry_id=row.id) for row in existing],
            exclude_id=exclude_entry_id,
        ).unwrap()

    def _commit_or_rollback(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Time entry {action} violated database constraints.",
            ) from exc

    # ---------- Queries ----------
    def list_entries(self, *, context: RequestUserContext, filters: EntryListFilters) -> list[TimeEntry]:
        memberships = self.repo.list_project_memberships_for_user(context.user_id)
        full_ids = {m.project_id for m in memberships if self.policy.can_view_all_entries(m.role)}
        own_ids = {m.project_id for m in memberships if self.policy.can_view_entries(m.role)} - full_ids

        if filters.project_id is not None:
            full_ids &= {filters.project_id}
            own_ids &= {filters.project_id}

        query = dict(
            start_from=_optional_instant(filters.start_date, "start_date"),
            end_until=_optional_instant(filters.end_date, "end_date"),
            activity_type_id=filters.activity_type_id,
            client_id=filters.client_id,
            limit=self.settings.entry_list_limit,
        )
        rows = list(self.repo.list_entries_filtered(project_ids=full_ids, user_id=filters.member_id, **query))
        if filters.member_id is None or filters.member_id == context.user_id:
            rows += self.repo.list_entries_filtered(project_ids=own_ids, user_id=context.user_id, **query)

        rows.sort(key=lambda row: (as_utc(row.start_at), as_utc(row.created_at)), reverse=True)
        return rows[: self.settings.entry_list_limit]

    def list_audits(self, *, context: RequestUserContext, entry_id: UUID) -> list[TimeEntryAudit]:
        entry = self._get_entry_or_404(entry_id)
        get_project_membership_or_raise(self.db, context, entry.project_id)
        return self.repo.list_audits(entry.id)

    def totals_by_project(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        start_date: datetime | str,
        end_date: datetime | str,
    ) -> list[dict[str, object]]:
        start_from = parse_instant(start_date, "start_date").unwrap()
        end_until = parse_instant(end_date, "end_date").unwrap()
        membership = get_project_membership_or_raise(self.db, context, project_id)
        user_filter = None if self.policy.can_view_all_entries(membership.role) else context.user_id
        entries = self.repo.list_entries_filtered(
            project_ids=[project_id],
            start_from=start_from,
            end_until=end_until,
            user_id=user_filter,
        )

        minutes_by_user: dict[UUID, int] = {}
        for entry in entries:
            minutes_by_user[entry.user_id] = minutes_by_user.get(entry.user_id, 0) + entry.duration_minutes

        names = {user.id: user.display_name for user in self.repo.list_users(minutes_by_user)}
        totals = [
            {"user_id": str(user_id), "user_name": names.get(user_id, ""), "total_minutes": minutes}
            for user_id, minutes in minutes_by_user.items()
        ]
        totals.sort(key=lambda row: (-row["total_minutes"], row["user_name"]))
        return totals

    # ---------- Mutations ----------
    def create_entry(
        self,
        *,
        context: RequestUserContext,
        data: EntryCreateData,
        source: EntrySource,
    ) -> TimeEntry:
        membership = get_project_membership_or_raise(self.db, context, data.project_id)
        if not self.policy.can_create_entry(membership.role):
            raise PermissionDenied("Your project role cannot create time entries.")

        interval = validate_interval(data.start_at, data.end_at).unwrap()
        activity_type = self._get_activity_type_or_404(data.activity_type_id)

        try:
            with self.db.begin_nested():
                self.repo.lock_user(context.user_id)
                self._ensure_no_overlap(user_id=context.user_id, interval=interval, exclude_entry_id=None)
                entry = self.repo.add_entry(
                    TimeEntry(
                        user_id=context.user_id,
                        client_id=membership.project.client_id,
                        project_id=membership.project.id,
                        activity_type_id=activity_type.id,
                        source=source,
                        start_at=interval.start_at,
                        end_at=interval.end_at,
                        duration_minutes=interval.duration_minutes,
                        description=data.description.strip(),
                        is_billable=(
                            data.is_billable if data.is_billable is not None else activity_type.is_billable_default
                        ),
                    )
                )
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        self._commit_or_rollback("creation")
        self.db.refresh(entry)
        logger.info(
            "Created %s entry %s for user %s (%d min)",
            source.value,
            entry.id,
            entry.user_id,
            entry.duration_minutes,
        )
        return entry

    def create_manual(self, *, context: RequestUserContext, data: EntryCreateData) -> TimeEntry:
        return self.create_entry(context=context, data=data, source=EntrySource.MANUAL)

    def create_from_stopwatch(self, *, context: RequestUserContext, data: EntryCreateData) -> TimeEntry:
        return self.create_entry(context=context, data=data, source=EntrySource.STOPWATCH)

    def update_entry(self, *, context: RequestUserContext, entry_id: UUID, data: EntryUpdateData) -> TimeEntry:
        if data.is_empty():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="At least one field must be updated.",
            )

        entry = self._get_entry_or_404(entry_id)
        membership = get_project_membership_or_raise(self.db, context, entry.project_id)
        if not self.policy.can_edit_entry(membership.role, context.user_id, entry.user_id):
            raise PermissionDenied("You cannot edit this entry.")

        if data.activity_type_id is not None:
            self._get_activity_type_or_404(data.activity_type_id)

        try:
            with self.db.begin_nested():
                self.repo.lock_user(entry.user_id)
                # Another writer may have committed while we waited on the lock.
                self.db.refresh(entry)
                interval = validate_interval(
                    data.start_at if data.start_at is not None else entry.start_at,
                    data.end_at if data.end_at is not None else entry.end_at,
                ).unwrap()

                before = EntrySnapshot.of(entry)
                after = EntrySnapshot(
                    start_at=interval.start_at,
                    end_at=interval.end_at,
                    duration_minutes=interval.duration_minutes,
                    activity_type_id=(
                        data.activity_type_id if data.activity_type_id is not None else entry.activity_type_id
                    ),
                    description=data.description.strip() if data.description is not None else entry.description,
                    is_billable=data.is_billable if data.is_billable is not None else entry.is_billable,
                )
                audits = diff_entry(before, after, entry_id=entry.id, changed_by_id=context.user_id)

                self._ensure_no_overlap(user_id=entry.user_id, interval=interval, exclude_entry_id=entry.id)
                entry.start_at = after.start_at
                entry.end_at = after.end_at
                entry.duration_minutes = after.duration_minutes
                entry.activity_type_id = after.activity_type_id
                entry.description = after.description
                entry.is_billable = after.is_billable
                entry.updated_at = utcnow()
                if audits:
                    self.repo.add_audits(
                        [
                            TimeEntryAudit(
                                time_entry_id=record.entry_id,
                                changed_by_id=record.changed_by_id,
                                field=record.field,
                                previous_value=record.previous_value,
                                new_value=record.new_value,
                            )
                            for record in audits
                        ]
                    )
                else:
                    self.db.flush()
        except (DomainError, HTTPException):
            self.db.rollback()
            raise
        self._commit_or_rollback("update")
        self.db.refresh(entry)
        logger.info("Updated entry %s by %s (%d audit records)", entry.id, context.user_id, len(audits))
        return entry

    def delete_entry(self, *, context: RequestUserContext, entry_id: UUID) -> None:
        entry = self._get_entry_or_404(entry_id)
        membership = get_project_membership_or_raise(self.db, context, entry.project_id)
        if not self.policy.can_edit_entry(membership.role, context.user_id, entry.user_id):
            raise PermissionDenied("You cannot delete this entry.")

        self.repo.delete_entry(entry)
        self._commit_or_rollback("deletion")
        logger.info("Deleted entry %s by %s", entry_id, context.user_id)
