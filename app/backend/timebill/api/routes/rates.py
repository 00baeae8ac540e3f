"""Rate card and project override endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.services.rate_service import RateService

router = APIRouter(prefix="/rates", tags=["rates"])


class DefaultRatePayload(BaseModel):
    hourly_rate_cents: int = Field(ge=0)


class ProjectOverridePayload(BaseModel):
    hourly_rate_cents: int = Field(ge=0)


def _service(db: Session) -> RateService:
    return RateService(db)


@router.get("/me/default")
def get_my_default_rate(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return {"rate_card": service.serialize_rate_card(service.get_default_rate(context=context))}


@router.put("/me/default")
def set_my_default_rate(
    payload: DefaultRatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    rate_card = service.set_default_rate(context=context, hourly_rate_cents=payload.hourly_rate_cents)
    return {"rate_card": service.serialize_rate_card(rate_card)}


@router.get("/projects/{project_id}/overrides")
def list_project_overrides(
    project_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_project_overrides(context=context, project_id=project_id)
    return {"items": [service.serialize_override(row) for row in rows]}


@router.put("/projects/{project_id}/overrides/{user_id}")
def set_project_override(
    project_id: UUID,
    user_id: UUID,
    payload: ProjectOverridePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    override = service.set_project_override(
        context=context,
        project_id=project_id,
        user_id=user_id,
        hourly_rate_cents=payload.hourly_rate_cents,
    )
    return service.serialize_override(override)


@router.delete("/projects/{project_id}/overrides/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_project_override(
    project_id: UUID,
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).remove_project_override(context=context, project_id=project_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
