"""Time entry endpoints: manual and stopwatch capture, edits, audits and totals."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, StringConstraints
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.services.time_entry_service import (
    EntryCreateData,
    EntryListFilters,
    EntryUpdateData,
    TimeEntryService,
)

router = APIRouter(prefix="/time-entries", tags=["time-entries"])

EntryDescription = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]


class ManualEntryPayload(BaseModel):
    project_id: UUID
    activity_type_id: UUID
    # Raw strings, parsed by validate_interval into invalid_timestamp errors.
    start_at: str
    end_at: str
    description: EntryDescription
    is_billable: bool | None = None


class StopwatchEntryPayload(BaseModel):
    project_id: UUID
    activity_type_id: UUID
    started_at: str
    stopped_at: str
    description: EntryDescription
    is_billable: bool | None = None


class EntryUpdatePayload(BaseModel):
    start_at: str | None = None
    end_at: str | None = None
    activity_type_id: UUID | None = None
    description: EntryDescription | None = None
    is_billable: bool | None = None


def _service(db: Session) -> TimeEntryService:
    return TimeEntryService(db)


@router.get("")
def list_time_entries(
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    project_id: UUID | None = Query(default=None),
    member_id: UUID | None = Query(default=None),
    activity_type_id: UUID | None = Query(default=None),
    client_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_entries(
        context=context,
        filters=EntryListFilters(
            start_date=start_date,
            end_date=end_date,
            project_id=project_id,
            member_id=member_id,
            activity_type_id=activity_type_id,
            client_id=client_id,
        ),
    )
    return {"items": [service.serialize_entry(entry) for entry in rows]}


@router.post("/manual", status_code=status.HTTP_201_CREATED)
def create_manual_entry(
    payload: ManualEntryPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.create_manual(
        context=context,
        data=EntryCreateData(
            project_id=payload.project_id,
            activity_type_id=payload.activity_type_id,
            start_at=payload.start_at,
            end_at=payload.end_at,
            description=payload.description,
            is_billable=payload.is_billable,
        ),
    )
    return service.serialize_entry(entry)


@router.post("/stopwatch", status_code=status.HTTP_201_CREATED)
def create_stopwatch_entry(
    payload: StopwatchEntryPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.create_from_stopwatch(
        context=context,
        data=EntryCreateData(
            project_id=payload.project_id,
            activity_type_id=payload.activity_type_id,
            start_at=payload.started_at,
            end_at=payload.stopped_at,
            description=payload.description,
            is_billable=payload.is_billable,
        ),
    )
    return service.serialize_entry(entry)


@router.get("/totals-by-project/{project_id}")
def totals_by_project(
    project_id: UUID,
    start_date: str = Query(...),
    end_date: str = Query(...),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    rows = _service(db).totals_by_project(
        context=context,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )
    return {"items": rows}


@router.patch("/{entry_id}")
def update_time_entry(
    entry_id: UUID,
    payload: EntryUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    entry = service.update_entry(
        context=context,
        entry_id=entry_id,
        data=EntryUpdateData(
            start_at=payload.start_at,
            end_at=payload.end_at,
            activity_type_id=payload.activity_type_id,
            description=payload.description,
            is_billable=payload.is_billable,
        ),
    )
    return service.serialize_entry(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_time_entry(
    entry_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).delete_entry(context=context, entry_id=entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{entry_id}/audits")
def list_time_entry_audits(
    entry_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_audits(context=context, entry_id=entry_id)
    return {"items": [service.serialize_audit(audit) for audit in rows]}
