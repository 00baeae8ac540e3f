"""Report summary, snapshot and export endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.domain.intervals import parse_instant
from timebill.services.reporting_service import ReportFilters, ReportingService

router = APIRouter(prefix="/reports", tags=["reports"])


class ReportFiltersPayload(BaseModel):
    start_date: str
    end_date: str
    client_id: UUID | None = None
    project_id: UUID | None = None
    member_id: UUID | None = None
    activity_type_id: UUID | None = None

    def to_filters(self) -> ReportFilters:
        return ReportFilters(
            start_date=parse_instant(self.start_date, "start_date").unwrap(),
            end_date=parse_instant(self.end_date, "end_date").unwrap(),
            client_id=self.client_id,
            project_id=self.project_id,
            member_id=self.member_id,
            activity_type_id=self.activity_type_id,
        )


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


def _query_filters(
    start_date: str = Query(...),
    end_date: str = Query(...),
    client_id: UUID | None = Query(default=None),
    project_id: UUID | None = Query(default=None),
    member_id: UUID | None = Query(default=None),
    activity_type_id: UUID | None = Query(default=None),
) -> ReportFilters:
    return ReportFilters(
        start_date=parse_instant(start_date, "start_date").unwrap(),
        end_date=parse_instant(end_date, "end_date").unwrap(),
        client_id=client_id,
        project_id=project_id,
        member_id=member_id,
        activity_type_id=activity_type_id,
    )


@router.get("/summary")
def get_report_summary(
    filters: ReportFilters = Depends(_query_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).build_summary(context=context, filters=filters).to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
def generate_report(
    payload: ReportFiltersPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _service(db).generate(context=context, filters=payload.to_filters())


@router.get("")
def list_reports(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    return {"items": _service(db).list_reports(context=context)}


@router.get("/export")
def export_report(
    format: str = Query(default="xlsx"),
    filters: ReportFilters = Depends(_query_filters),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_report(context=context, filters=filters, format_name=format)
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
