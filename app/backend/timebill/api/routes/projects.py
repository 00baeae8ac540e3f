"""Project and project membership endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.domain.access import ProjectRole
from timebill.services.project_service import ProjectCreateData, ProjectService, ProjectUpdateData

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectCreatePayload(BaseModel):
    client_id: UUID
    name: str = Field(min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=64)
    description: str | None = Field(default=None, max_length=2000)


class ProjectUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    code: str | None = Field(default=None, max_length=40)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class ProjectMemberCreatePayload(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    role: ProjectRole = ProjectRole.MEMBER


class ProjectMemberRolePayload(BaseModel):
    role: ProjectRole


def _service(db: Session) -> ProjectService:
    return ProjectService(db)


@router.get("")
def list_projects(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_projects(context=context)
    return {"items": [service.serialize_project(project, role) for project, role in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    project = service.create_project(
        context=context,
        data=ProjectCreateData(
            client_id=payload.client_id,
            name=payload.name,
            code=payload.code,
            description=payload.description,
        ),
    )
    return service.serialize_project(project, ProjectRole.OWNER.value)


@router.patch("/{project_id}")
def update_project(
    project_id: UUID,
    payload: ProjectUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    project, role = service.update_project(
        context=context,
        project_id=project_id,
        data=ProjectUpdateData(
            name=payload.name,
            code=payload.code,
            description=payload.description,
            is_active=payload.is_active,
        ),
    )
    return service.serialize_project(project, role)


@router.get("/{project_id}/members")
def list_project_members(
    project_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = _service(db)
    rows = service.list_project_members(context=context, project_id=project_id)
    return {"items": [service.serialize_project_member(member) for member in rows]}


@router.post("/{project_id}/members", status_code=status.HTTP_201_CREATED)
def add_project_member(
    project_id: UUID,
    payload: ProjectMemberCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    member = service.add_project_member(
        context=context,
        project_id=project_id,
        email=payload.email,
        role=payload.role,
    )
    return service.serialize_project_member(member)


@router.patch("/{project_id}/members/{user_id}")
def change_project_member_role(
    project_id: UUID,
    user_id: UUID,
    payload: ProjectMemberRolePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    member = service.change_member_role(context=context, project_id=project_id, user_id=user_id, role=payload.role)
    return service.serialize_project_member(member)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_project_member(
    project_id: UUID,
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    _service(db).remove_project_member(context=context, project_id=project_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
