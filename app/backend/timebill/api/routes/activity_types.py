"""Activity type catalogue endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.services.project_service import ProjectService

router = APIRouter(prefix="/activity-types", tags=["activity-types"])


class ActivityTypeCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    is_billable_default: bool = True


class ActivityTypeUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=80)
    is_billable_default: bool | None = None


@router.get("")
def list_activity_types(
    _context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = ProjectService(db)
    return {"items": [service.serialize_activity_type(row) for row in service.list_activity_types()]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_activity_type(
    payload: ActivityTypeCreatePayload,
    _context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    activity_type = service.create_activity_type(name=payload.name, is_billable_default=payload.is_billable_default)
    return service.serialize_activity_type(activity_type)


@router.patch("/{activity_type_id}")
def update_activity_type(
    activity_type_id: UUID,
    payload: ActivityTypeUpdatePayload,
    _context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = ProjectService(db)
    activity_type = service.update_activity_type(
        activity_type_id=activity_type_id,
        name=payload.name,
        is_billable_default=payload.is_billable_default,
    )
    return service.serialize_activity_type(activity_type)


@router.delete("/{activity_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_activity_type(
    activity_type_id: UUID,
    _context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    ProjectService(db).delete_activity_type(activity_type_id=activity_type_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
