"""Client and client membership endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.domain.access import ClientRole
from timebill.services.project_service import ClientUpdateData, ProjectService
from timebill.services.rate_service import RateService

router = APIRouter(prefix="/clients", tags=["clients"])


class ClientCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=500)


class ClientUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class ClientMemberCreatePayload(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    role: ClientRole = ClientRole.MEMBER
    hourly_rate_cents: int | None = Field(default=None, ge=0)


class ClientMemberRatePayload(BaseModel):
    hourly_rate_cents: int | None = Field(default=None, ge=0)


def _service(db: Session) -> ProjectService:
    return ProjectService(db)


@router.get("")
def list_clients(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_clients(context=context)
    return {"items": [{**service.serialize_client(client), "role": role} for client, role in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    client = service.create_client(context=context, name=payload.name, description=payload.description)
    return service.serialize_client(client)


@router.post("/{client_id}/members", status_code=status.HTTP_201_CREATED)
def add_client_member(
    client_id: UUID,
    payload: ClientMemberCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    member = service.add_client_member(
        context=context,
        client_id=client_id,
        email=payload.email,
        role=payload.role,
        hourly_rate_cents=payload.hourly_rate_cents,
    )
    return service.serialize_client_member(member)


@router.put("/{client_id}/members/{user_id}/rate")
def set_client_member_rate(
    client_id: UUID,
    user_id: UUID,
    payload: ClientMemberRatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    member = RateService(db).set_client_member_rate(
        context=context,
        client_id=client_id,
        user_id=user_id,
        hourly_rate_cents=payload.hourly_rate_cents,
    )
    return ProjectService.serialize_client_member(member)


@router.get("/users")
def list_users(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    return {"items": [service.serialize_user(user) for user in service.list_all_users(context=context)]}


@router.patch("/{client_id}")
def update_client(
    client_id: UUID,
    payload: ClientUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    client = service.update_client(
        context=context,
        client_id=client_id,
        data=ClientUpdateData(name=payload.name, description=payload.description, is_active=payload.is_active),
    )
    return service.serialize_client(client)


@router.get("/{client_id}/members")
def list_client_members(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_client_members(context=context, client_id=client_id)
    return {
        "items": [
            {**service.serialize_client_member(member), "user_name": user.display_name, "user_email": user.email}
            for member, user in rows
        ]
    }


@router.delete("/{client_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_client_member(
    client_id: UUID,
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).remove_client_member(context=context, client_id=client_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
