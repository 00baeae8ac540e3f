"""Report assembly: visibility filtering, rate resolution, snapshots and exports."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_policy
from timebill.core.config import get_settings
from timebill.core.errors import PermissionDenied
from timebill.domain.intervals import as_utc
from timebill.domain.reporting import (
    ReportableEntry,
    ReportSummary,
    build_report_summary,
    empty_summary,
    restrict_entries,
    summary_section_rows,
)
from timebill.models.entities import Report, ReportSnapshot, TimeEntry, utcnow
from timebill.repositories.time_tracking_repository import TimeTrackingRepository
from timebill.services.rate_service import RateService

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ("section", "label", "total_minutes", "billable_amount_cents")


@dataclass(slots=True)
class ReportFilters:
    start_date: datetime
    end_date: datetime
    client_id: UUID | None = None
    project_id: UUID | None = None
    member_id: UUID | None = None
    activity_type_id: UUID | None = None

    def to_json(self) -> dict[str, object]:
        return {
            "start_date": as_utc(self.start_date).isoformat(),
            "end_date": as_utc(self.end_date).isoformat(),
            "client_id": str(self.client_id) if self.client_id else None,
            "project_id": str(self.project_id) if self.project_id else None,
            "member_id": str(self.member_id) if self.member_id else None,
            "activity_type_id": str(self.activity_type_id) if self.activity_type_id else None,
        }


@dataclass(slots=True)
class ReportResult:
    summary: ReportSummary
    entry_count: int
    has_full_access: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "entry_count": self.entry_count,
            "has_full_access": self.has_full_access,
        }


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


class ReportingService:
    """Gathers visible entries, attaches resolved rates and aggregates them."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.policy = get_policy()
        self.settings = get_settings()

    # ---------- Summary ----------
    @staticmethod
    def _validate_window(filters: ReportFilters) -> None:
        if as_utc(filters.end_date) < as_utc(filters.start_date):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="end_date must be greater than or equal to start_date.",
            )

    def build_summary(self, *, context: RequestUserContext, filters: ReportFilters) -> ReportResult:
        self._validate_window(filters)
        roles = {
            row.project_id: row.role.value
            for row in self.repo.list_project_memberships_for_user(context.user_id)
            if self.policy.can_view_entries(row.role)
        }
        if not roles:
            return ReportResult(summary=empty_summary(), entry_count=0, has_full_access=False)

        projects = self.repo.list_projects(roles)
        if filters.client_id is not None:
            if not any(project.client_id == filters.client_id for project in projects):
                raise PermissionDenied("You do not have access to this client.")
            projects = [project for project in projects if project.client_id == filters.client_id]
        if filters.project_id is not None:
            projects = [project for project in projects if project.id == filters.project_id]
        if not projects:
            return ReportResult(summary=empty_summary(), entry_count=0, has_full_access=False)

        # Billing figures are visible only with billing rights on every touched project.
        has_full_access = all(self.policy.can_view_billing(roles[project.id]) for project in projects)
        effective_member_id = filters.member_id if has_full_access else context.user_id

        entries = self.repo.list_entries_filtered(
            project_ids=[project.id for project in projects],
            start_from=as_utc(filters.start_date),
            end_until=as_utc(filters.end_date),
            user_id=effective_member_id,
            activity_type_id=filters.activity_type_id,
        )
        if not entries:
            return ReportResult(summary=empty_summary(), entry_count=0, has_full_access=has_full_access)

        reportable = self._to_reportable(entries, {project.id: project.name for project in projects})
        if has_full_access:
            reportable = self._attach_rates(entries, reportable)
        else:
            reportable = restrict_entries(reportable)

        return ReportResult(
            summary=build_report_summary(reportable),
            entry_count=len(entries),
            has_full_access=has_full_access,
        )

    def _to_reportable(self, entries: list[TimeEntry], project_names: dict[UUID, str]) -> list[ReportableEntry]:
        user_names = {user.id: user.display_name for user in self.repo.list_users(e.user_id for e in entries)}
        activity_names = {
            row.id: row.name for row in self.repo.list_activity_types_by_ids(e.activity_type_id for e in entries)
        }
        return [
            ReportableEntry(
                entry_id=entry.id,
                project_id=entry.project_id,
                project_name=project_names.get(entry.project_id),
                user_id=entry.user_id,
                user_name=user_names.get(entry.user_id),
                activity_type_id=entry.activity_type_id,
                activity_type_name=activity_names.get(entry.activity_type_id),
                duration_minutes=entry.duration_minutes,
                is_billable=entry.is_billable,
                hourly_rate_cents=None,
            )
            for entry in entries
        ]

    def _attach_rates(self, entries: list[TimeEntry], reportable: list[ReportableEntry]) -> list[ReportableEntry]:
        lookup = RateService(self.db).rate_lookup(
            user_ids={entry.user_id for entry in entries},
            project_ids={entry.project_id for entry in entries},
            client_ids={entry.client_id for entry in entries},
        )
        enriched: list[ReportableEntry] = []
        for entry, row in zip(entries, reportable):
            rate = lookup.resolve(user_id=entry.user_id, client_id=entry.client_id, project_id=entry.project_id)
            enriched.append(
                ReportableEntry(
                    entry_id=row.entry_id,
                    project_id=row.project_id,
                    project_name=row.project_name,
                    user_id=row.user_id,
                    user_name=row.user_name,
                    activity_type_id=row.activity_type_id,
                    activity_type_name=row.activity_type_name,
                    duration_minutes=row.duration_minutes,
                    is_billable=row.is_billable and rate is not None,
                    hourly_rate_cents=rate,
                )
            )
        return enriched

    # ---------- Snapshots ----------
    def generate(self, *, context: RequestUserContext, filters: ReportFilters) -> dict[str, object]:
        result = self.build_summary(context=context, filters=filters)
        report = self.repo.add_report(
            Report(
                generated_by_id=context.user_id,
                client_id=filters.client_id,
                project_id=filters.project_id,
                start_date=as_utc(filters.start_date),
                end_date=as_utc(filters.end_date),
                filters=filters.to_json(),
            ),
            ReportSnapshot(summary=result.summary.to_dict()),
        )
        self.db.commit()
        logger.info("Generated report %s for %s (%d entries)", report.id, context.user_id, result.entry_count)
        return {"report_id": str(report.id), **result.to_dict()}

    def list_reports(self, *, context: RequestUserContext) -> list[dict[str, object]]:
        reports = self.repo.list_reports(context.user_id, limit=self.settings.report_list_limit)
        items: list[dict[str, object]] = []
        for report in reports:
            snapshot = self.repo.latest_snapshot(report.id)
            items.append(
                {
                    "id": str(report.id),
                    "client_id": str(report.client_id) if report.client_id else None,
                    "project_id": str(report.project_id) if report.project_id else None,
                    "start_date": as_utc(report.start_date).isoformat(),
                    "end_date": as_utc(report.end_date).isoformat(),
                    "filters": report.filters,
                    "created_at": as_utc(report.created_at).isoformat(),
                    "summary": snapshot.summary if snapshot is not None else None,
                }
            )
        return items

    # ---------- Exports ----------
    @staticmethod
    def _flatten_summary(summary: ReportSummary) -> list[dict[str, object]]:
        rows: list[dict[str, object]] = [
            {
                "section": "total",
                "label": "All entries",
                "total_minutes": summary.total_minutes,
                "billable_amount_cents": summary.total_billable_amount_cents,
            }
        ]
        for section, items in (
            ("project", summary.by_project),
            ("member", summary.by_member),
            ("activity", summary.by_activity),
        ):
            rows.extend({"section": section, **row} for row in summary_section_rows(items))
        return rows

    def export_report(
        self,
        *,
        context: RequestUserContext,
        filters: ReportFilters,
        format_name: str,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in {"csv", "xlsx"}:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )

        result = self.build_summary(context=context, filters=filters)
        flattened = self._flatten_summary(result.summary)
        base_filename = f"time-report-{utcnow().date().isoformat()}"

        if normalized_format == "csv":
            sio = io.StringIO()
            writer = csv.DictWriter(sio, fieldnames=list(EXPORT_COLUMNS))
            writer.writeheader()
            writer.writerows(flattened)
            return ExportFilePayload(
                media_type="text/csv; charset=utf-8",
                filename=f"{base_filename}.csv",
                content=sio.getvalue().encode("utf-8"),
            )

        # XLSX
        from openpyxl import Workbook

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "report"
        sheet.append(list(EXPORT_COLUMNS))
        for row in flattened:
            sheet.append([row[column] for column in EXPORT_COLUMNS])

        output = BytesIO()
        workbook.save(output)
        return ExportFilePayload(
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=f"{base_filename}.xlsx",
            content=output.getvalue(),
        )
