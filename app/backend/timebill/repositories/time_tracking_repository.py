"""Repository helpers for time entries, memberships, rates and reports."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from timebill.models.entities import (
    ActivityType,
    Client,
    ClientMember,
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


class TimeTrackingRepository:
    """Persistence operations used by entry, rate, project and report services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Users ----------
    def get_user_by_email(self, email: str) -> User | None:
        return self.db.scalar(select(User).where(User.email == email.strip().lower()))

    def lock_user(self, user_id: UUID) -> None:
        """Serialise writers for one owner until the transaction ends."""

        self.db.execute(select(User.id).where(User.id == user_id).with_for_update())

    def list_users(self, user_ids: Iterable[UUID]) -> list[User]:
        ids = set(user_ids)
        if not ids:
            return []
        return self.db.scalars(select(User).where(User.id.in_(ids))).all()

    def list_all_users(self) -> list[User]:
        return self.db.scalars(select(User).order_by(User.display_name.asc(), User.email.asc())).all()

    # ---------- Clients ----------
    def get_client(self, client_id: UUID) -> Client | None:
        return self.db.scalar(select(Client).where(Client.id == client_id))

    def add_client(self, client: Client) -> Client:
        self.db.add(client)
        self.db.flush()
        return client

    def get_client_member(self, client_id: UUID, user_id: UUID) -> ClientMember | None:
        return self.db.scalar(
            select(ClientMember).where(and_(ClientMember.client_id == client_id, ClientMember.user_id == user_id))
        )

    def list_client_members(self, client_id: UUID) -> list[ClientMember]:
        return self.db.scalars(
            select(ClientMember).where(ClientMember.client_id == client_id).order_by(ClientMember.created_at.asc())
        ).all()

    def list_client_memberships_for_user(self, user_id: UUID) -> list[ClientMember]:
        return self.db.scalars(select(ClientMember).where(ClientMember.user_id == user_id)).all()

    def add_client_member(self, member: ClientMember) -> ClientMember:
        self.db.add(member)
        self.db.flush()
        return member

    def delete_client_member(self, member: ClientMember) -> None:
        self.db.delete(member)
        self.db.flush()

    # ---------- Projects ----------
    def add_project(self, project: Project) -> Project:
        self.db.add(project)
        self.db.flush()
        return project

    def list_projects_for_client(self, client_id: UUID) -> list[Project]:
        return self.db.scalars(
            select(Project).where(Project.client_id == client_id).order_by(Project.name.asc())
        ).all()

    def list_projects(self, project_ids: Iterable[UUID]) -> list[Project]:
        ids = set(project_ids)
        if not ids:
            return []
        return self.db.scalars(select(Project).where(Project.id.in_(ids)).order_by(Project.name.asc())).all()

    def list_project_memberships_for_user(self, user_id: UUID) -> list[ProjectMember]:
        return self.db.scalars(select(ProjectMember).where(ProjectMember.user_id == user_id)).all()

    def list_project_members(self, project_id: UUID) -> list[ProjectMember]:
        return self.db.scalars(
            select(ProjectMember)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.created_at.asc())
        ).all()

    def get_project_member(self, project_id: UUID, user_id: UUID) -> ProjectMember | None:
        return self.db.scalar(
            select(ProjectMember).where(
                and_(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
            )
        )

    def add_project_member(self, member: ProjectMember) -> ProjectMember:
        self.db.add(member)
        self.db.flush()
        return member

    def delete_project_member(self, member: ProjectMember) -> None:
        self.db.delete(member)
        self.db.flush()

    # ---------- Activity types ----------
    def get_activity_type(self, activity_type_id: UUID) -> ActivityType | None:
        return self.db.scalar(select(ActivityType).where(ActivityType.id == activity_type_id))

    def list_activity_types(self) -> list[ActivityType]:
        return self.db.scalars(select(ActivityType).order_by(ActivityType.name.asc())).all()

    def add_activity_type(self, activity_type: ActivityType) -> ActivityType:
        self.db.add(activity_type)
        self.db.flush()
        return activity_type

    def delete_activity_type(self, activity_type: ActivityType) -> None:
        self.db.delete(activity_type)
        self.db.flush()

    def count_entries_for_activity_type(self, activity_type_id: UUID) -> int:
        return self.db.scalar(
            select(func.count()).select_from(TimeEntry).where(TimeEntry.activity_type_id == activity_type_id)
        )

    # ---------- Time entries ----------
    def get_entry(self, entry_id: UUID) -> TimeEntry | None:
        return self.db.scalar(select(TimeEntry).where(TimeEntry.id == entry_id))

    def add_entry(self, entry: TimeEntry) -> TimeEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def delete_entry(self, entry: TimeEntry) -> None:
        self.db.delete(entry)
        self.db.flush()

    def list_overlapping_entries(
        self,
        *,
        user_id: UUID,
        start_at: datetime,
        end_at: datetime,
        exclude_entry_id: UUID | None = None,
    ) -> list[TimeEntry]:
        """Entries of one owner that intersect the given window."""

        conditions = [
            TimeEntry.user_id == user_id,
            TimeEntry.start_at < end_at,
            TimeEntry.end_at > start_at,
        ]
        if exclude_entry_id is not None:
            conditions.append(TimeEntry.id != exclude_entry_id)
        return self.db.scalars(select(TimeEntry).where(and_(*conditions))).all()

    def list_entries_filtered(
        self,
        *,
        project_ids: Iterable[UUID],
        start_from: datetime | None = None,
        end_until: datetime | None = None,
        user_id: UUID | None = None,
        activity_type_id: UUID | None = None,
        client_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[TimeEntry]:
        ids = set(project_ids)
        if not ids:
            return []

        conditions = [TimeEntry.project_id.in_(ids)]
        if start_from is not None:
            conditions.append(TimeEntry.start_at >= start_from)
        if end_until is not None:
            conditions.append(TimeEntry.end_at <= end_until)
        if user_id is not None:
            conditions.append(TimeEntry.user_id == user_id)
        if activity_type_id is not None:
            conditions.append(TimeEntry.activity_type_id == activity_type_id)
        if client_id is not None:
            conditions.append(TimeEntry.client_id == client_id)

        stmt = (
            select(TimeEntry)
            .where(and_(*conditions))
            .order_by(TimeEntry.start_at.desc(), TimeEntry.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.db.scalars(stmt).all()

    # ---------- Audits ----------
    def add_audits(self, audits: list[TimeEntryAudit]) -> None:
        self.db.add_all(audits)
        self.db.flush()

    def list_audits(self, entry_id: UUID) -> list[TimeEntryAudit]:
        return self.db.scalars(
            select(TimeEntryAudit)
            .where(TimeEntryAudit.time_entry_id == entry_id)
            .order_by(TimeEntryAudit.changed_at.desc())
        ).all()

    # ---------- Rates ----------
    def get_rate_card(self, user_id: UUID) -> RateCard | None:
        return self.db.scalar(select(RateCard).where(RateCard.user_id == user_id))

    def add_rate_card(self, rate_card: RateCard) -> RateCard:
        self.db.add(rate_card)
        self.db.flush()
        return rate_card

    def list_rate_cards(self, user_ids: Iterable[UUID]) -> list[RateCard]:
        ids = set(user_ids)
        if not ids:
            return []
        return self.db.scalars(select(RateCard).where(RateCard.user_id.in_(ids))).all()

    def get_project_override(self, project_id: UUID, user_id: UUID) -> ProjectRateOverride | None:
        return self.db.scalar(
            select(ProjectRateOverride).where(
                and_(ProjectRateOverride.project_id == project_id, ProjectRateOverride.user_id == user_id)
            )
        )

    def list_project_overrides(self, project_id: UUID) -> list[ProjectRateOverride]:
        return self.db.scalars(
            select(ProjectRateOverride)
            .where(ProjectRateOverride.project_id == project_id)
            .order_by(ProjectRateOverride.created_at.desc())
        ).all()

    def list_overrides_for(self, user_ids: Iterable[UUID], project_ids: Iterable[UUID]) -> list[ProjectRateOverride]:
        users = set(user_ids)
        projects = set(project_ids)
        if not users or not projects:
            return []
        return self.db.scalars(
            select(ProjectRateOverride).where(
                and_(ProjectRateOverride.user_id.in_(users), ProjectRateOverride.project_id.in_(projects))
            )
        ).all()

    def add_project_override(self, override: ProjectRateOverride) -> ProjectRateOverride:
        self.db.add(override)
        self.db.flush()
        return override

    def delete_project_override(self, override: ProjectRateOverride) -> None:
        self.db.delete(override)
        self.db.flush()

    def list_client_member_rates(self, user_ids: Iterable[UUID], client_ids: Iterable[UUID]) -> list[ClientMember]:
        users = set(user_ids)
        clients = set(client_ids)
        if not users or not clients:
            return []
        return self.db.scalars(
            select(ClientMember).where(
                and_(
                    ClientMember.user_id.in_(users),
                    ClientMember.client_id.in_(clients),
                    ClientMember.hourly_rate_cents.is_not(None),
                )
            )
        ).all()

    def list_activity_types_by_ids(self, activity_type_ids: Iterable[UUID]) -> list[ActivityType]:
        ids = set(activity_type_ids)
        if not ids:
            return []
        return self.db.scalars(select(ActivityType).where(ActivityType.id.in_(ids))).all()

    # ---------- Reports ----------
    def add_report(self, report: Report, snapshot: ReportSnapshot) -> Report:
        self.db.add(report)
        self.db.flush()
        snapshot.report_id = report.id
        self.db.add(snapshot)
        self.db.flush()
        return report

    def list_reports(self, generated_by_id: UUID, *, limit: int) -> list[Report]:
        return self.db.scalars(
            select(Report)
            .where(Report.generated_by_id == generated_by_id)
            .order_by(Report.created_at.desc())
            .limit(limit)
        ).all()

    def latest_snapshot(self, report_id: UUID) -> ReportSnapshot | None:
        return self.db.scalar(
            select(ReportSnapshot)
            .where(ReportSnapshot.report_id == report_id)
            .order_by(ReportSnapshot.created_at.desc())
            .limit(1)
        )
