"""Clients, projects, memberships and activity types."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, ensure_client_owner, get_policy, get_project_membership_or_raise
from timebill.core.errors import PermissionDenied
from timebill.domain.access import CLIENT_TO_PROJECT_ROLE, ClientRole, ProjectRole, get_access_policy
from timebill.models.entities import ActivityType, Client, ClientMember, Project, ProjectMember, User, utcnow
from timebill.repositories.time_tracking_repository import TimeTrackingRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProjectCreateData:
    client_id: UUID
    name: str
    code: str | None = None
    description: str | None = None


@dataclass(slots=True)
class ClientUpdateData:
    name: str | None = None
    description: str | None = None
    is_active: bool | None = None


@dataclass(slots=True)
class ProjectUpdateData:
    name: str | None = None
    code: str | None = None
    description: str | None = None
    is_active: bool | None = None


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class ProjectService:
    """Membership management; the project membership is the canonical access scope."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.policy = get_policy()

    # ---------- Serialization ----------
    @staticmethod
    def serialize_client(client: Client) -> dict[str, object]:
        return {
            "id": str(client.id),
            "name": client.name,
            "description": client.description,
            "is_active": client.is_active,
            "created_by_id": str(client.created_by_id),
        }

    @staticmethod
    def serialize_client_member(member: ClientMember) -> dict[str, object]:
        return {
            "client_id": str(member.client_id),
            "user_id": str(member.user_id),
            "role": member.role.value,
            "hourly_rate_cents": member.hourly_rate_cents,
        }

    @staticmethod
    def serialize_user(user: User) -> dict[str, object]:
        return {"id": str(user.id), "email": user.email, "display_name": user.display_name}

    @staticmethod
    def serialize_project(project: Project, role: str | None = None) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": str(project.id),
            "client_id": str(project.client_id),
            "name": project.name,
            "code": project.code,
            "description": project.description,
            "is_active": project.is_active,
        }
        if role is not None:
            payload["role"] = role
        return payload

    @staticmethod
    def serialize_project_member(member: ProjectMember) -> dict[str, object]:
        return {
            "project_id": str(member.project_id),
            "user_id": str(member.user_id),
            "role": member.role.value,
        }

    @staticmethod
    def serialize_activity_type(activity_type: ActivityType) -> dict[str, object]:
        return {
            "id": str(activity_type.id),
            "name": activity_type.name,
            "is_billable_default": activity_type.is_billable_default,
        }

    # ---------- Helpers ----------
    def _get_user_by_email_or_404(self, email: str) -> User:
        user = self.repo.get_user_by_email(email)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
        return user

    def _ensure_can_manage_membership(self, context: RequestUserContext, project_id: UUID) -> None:
        membership = get_project_membership_or_raise(self.db, context, project_id)
        if not self.policy.can_manage_membership(membership.role):
            raise PermissionDenied("Only owners can manage project members.")

    def _ensure_role_available(self, role: ProjectRole) -> None:
        if not self.policy.lattice.knows(role):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Role '{role.value}' is not available in the '{self.policy.lattice.name}' role lattice.",
            )

    def _ensure_other_owner_remains(self, project_id: UUID, member: ProjectMember) -> None:
        if member.role is not ProjectRole.OWNER:
            return
        owners = [row for row in self.repo.list_project_members(project_id) if row.role is ProjectRole.OWNER]
        if len(owners) <= 1:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A project must keep at least one owner.",
            )

    def _commit_membership(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Membership already exists.") from exc

    # ---------- Clients ----------
    def list_clients(self, *, context: RequestUserContext) -> list[tuple[Client, str]]:
        rows: list[tuple[Client, str]] = []
        for membership in self.repo.list_client_memberships_for_user(context.user_id):
            client = self.repo.get_client(membership.client_id)
            if client is not None:
                rows.append((client, membership.role.value))
        rows.sort(key=lambda row: row[0].name)
        return rows

    def create_client(self, *, context: RequestUserContext, name: str, description: str | None = None) -> Client:
        client = self.repo.add_client(
            Client(name=name.strip(), description=_blank_to_none(description), created_by_id=context.user_id)
        )
        self.repo.add_client_member(ClientMember(client_id=client.id, user_id=context.user_id, role=ClientRole.OWNER))
        self.db.commit()
        self.db.refresh(client)
        return client

    def add_client_member(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        email: str,
        role: ClientRole,
        hourly_rate_cents: int | None,
    ) -> ClientMember:
        client = ensure_client_owner(self.db, context, client_id)
        user = self._get_user_by_email_or_404(email)
        if self.repo.get_client_member(client.id, user.id) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Membership already exists.")

        member = self.repo.add_client_member(
            ClientMember(client_id=client.id, user_id=user.id, role=role, hourly_rate_cents=hourly_rate_cents)
        )
        project_role = CLIENT_TO_PROJECT_ROLE[role]
        for project in self.repo.list_projects_for_client(client.id):
            if self.repo.get_project_member(project.id, user.id) is None:
                self.repo.add_project_member(ProjectMember(project_id=project.id, user_id=user.id, role=project_role))
        self._commit_membership()
        self.db.refresh(member)
        return member

    def update_client(self, *, context: RequestUserContext, client_id: UUID, data: ClientUpdateData) -> Client:
        client = ensure_client_owner(self.db, context, client_id)
        if data.name is not None:
            client.name = data.name.strip()
        if data.description is not None:
            client.description = _blank_to_none(data.description)
        if data.is_active is not None:
            client.is_active = data.is_active
        client.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(client)
        logger.info("Updated client %s by %s", client.id, context.user_id)
        return client

    def list_client_members(self, *, context: RequestUserContext, client_id: UUID) -> list[tuple[ClientMember, User]]:
        client = ensure_client_owner(self.db, context, client_id)
        members = self.repo.list_client_members(client.id)
        users = {user.id: user for user in self.repo.list_users(member.user_id for member in members)}
        return [(member, users[member.user_id]) for member in members]

    def remove_client_member(self, *, context: RequestUserContext, client_id: UUID, user_id: UUID) -> None:
        """Drop a client member together with the project memberships the client granted."""

        client = ensure_client_owner(self.db, context, client_id)
        if user_id == context.user_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="You cannot remove yourself from a client.",
            )
        member = self.repo.get_client_member(client.id, user_id)
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client member not found.")

        try:
            for project in self.repo.list_projects_for_client(client.id):
                project_member = self.repo.get_project_member(project.id, user_id)
                if project_member is None:
                    continue
                self._ensure_other_owner_remains(project.id, project_member)
                self.repo.delete_project_member(project_member)
            self.repo.delete_client_member(member)
        except HTTPException:
            self.db.rollback()
            raise
        self.db.commit()
        logger.info("Removed user %s from client %s", user_id, client.id)

    def list_all_users(self, *, context: RequestUserContext) -> list[User]:
        """Directory of registered users, used by client owners to invite members."""

        memberships = self.repo.list_client_memberships_for_user(context.user_id)
        client_policy = get_access_policy("client")
        if not any(client_policy.can_manage_membership(row.role) for row in memberships):
            raise PermissionDenied("Only client owners can list users.")
        return self.repo.list_all_users()

    # ---------- Projects ----------
    def list_projects(self, *, context: RequestUserContext) -> list[tuple[Project, str]]:
        roles = {row.project_id: row.role.value for row in self.repo.list_project_memberships_for_user(context.user_id)}
        return [(project, roles[project.id]) for project in self.repo.list_projects(roles)]

    def create_project(self, *, context: RequestUserContext, data: ProjectCreateData) -> Project:
        client = ensure_client_owner(self.db, context, data.client_id)
        project = self.repo.add_project(
            Project(
                client_id=client.id,
                name=data.name.strip(),
                code=_blank_to_none(data.code),
                description=_blank_to_none(data.description),
            )
        )
        self.repo.add_project_member(ProjectMember(project_id=project.id, user_id=context.user_id, role=ProjectRole.OWNER))

        for member in self.repo.list_client_members(client.id):
            if member.user_id == context.user_id:
                continue
            self.repo.add_project_member(
                ProjectMember(project_id=project.id, user_id=member.user_id, role=CLIENT_TO_PROJECT_ROLE[member.role])
            )
        self.db.commit()
        self.db.refresh(project)
        logger.info("Created project %s under client %s", project.id, client.id)
        return project

    def update_project(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        data: ProjectUpdateData,
    ) -> tuple[Project, str]:
        membership = get_project_membership_or_raise(self.db, context, project_id)
        if not self.policy.can_manage_project(membership.role):
            raise PermissionDenied("Your project role cannot change project settings.")

        project = membership.project
        if data.name is not None:
            project.name = data.name.strip()
        if data.code is not None:
            project.code = _blank_to_none(data.code)
        if data.description is not None:
            project.description = _blank_to_none(data.description)
        if data.is_active is not None:
            project.is_active = data.is_active
        project.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(project)
        logger.info("Updated project %s by %s", project.id, context.user_id)
        return project, membership.role

    def list_project_members(self, *, context: RequestUserContext, project_id: UUID) -> list[ProjectMember]:
        get_project_membership_or_raise(self.db, context, project_id)
        return self.repo.list_project_members(project_id)

    def add_project_member(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        email: str,
        role: ProjectRole,
    ) -> ProjectMember:
        self._ensure_can_manage_membership(context, project_id)
        self._ensure_role_available(role)
        user = self._get_user_by_email_or_404(email)
        if self.repo.get_project_member(project_id, user.id) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Membership already exists.")

        member = self.repo.add_project_member(ProjectMember(project_id=project_id, user_id=user.id, role=role))
        self._commit_membership()
        self.db.refresh(member)
        return member

    def change_member_role(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        user_id: UUID,
        role: ProjectRole,
    ) -> ProjectMember:
        self._ensure_can_manage_membership(context, project_id)
        self._ensure_role_available(role)
        member = self.repo.get_project_member(project_id, user_id)
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project member not found.")
        if role is not ProjectRole.OWNER:
            self._ensure_other_owner_remains(project_id, member)

        member.role = role
        self.db.commit()
        self.db.refresh(member)
        return member

    def remove_project_member(self, *, context: RequestUserContext, project_id: UUID, user_id: UUID) -> None:
        self._ensure_can_manage_membership(context, project_id)
        member = self.repo.get_project_member(project_id, user_id)
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project member not found.")
        self._ensure_other_owner_remains(project_id, member)
        self.repo.delete_project_member(member)
        self.db.commit()

    # ---------- Activity types ----------
    def list_activity_types(self) -> list[ActivityType]:
        return self.repo.list_activity_types()

    def create_activity_type(self, *, name: str, is_billable_default: bool) -> ActivityType:
        activity_type = ActivityType(name=name.strip(), is_billable_default=is_billable_default)
        try:
            self.repo.add_activity_type(activity_type)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Activity type already exists.") from exc
        self.db.refresh(activity_type)
        return activity_type

    def _get_activity_type_or_404(self, activity_type_id: UUID) -> ActivityType:
        activity_type = self.repo.get_activity_type(activity_type_id)
        if activity_type is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity type not found.")
        return activity_type

    def update_activity_type(
        self,
        *,
        activity_type_id: UUID,
        name: str | None,
        is_billable_default: bool | None,
    ) -> ActivityType:
        activity_type = self._get_activity_type_or_404(activity_type_id)
        if name is not None:
            activity_type.name = name.strip()
        if is_billable_default is not None:
            activity_type.is_billable_default = is_billable_default
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Activity type already exists.") from exc
        self.db.refresh(activity_type)
        return activity_type

    def delete_activity_type(self, *, activity_type_id: UUID) -> None:
        activity_type = self._get_activity_type_or_404(activity_type_id)
        in_use = self.repo.count_entries_for_activity_type(activity_type.id)
        if in_use:
            noun = "entry uses" if in_use == 1 else "entries use"
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Cannot delete: {in_use} time {noun} this activity type.",
            )
        self.repo.delete_activity_type(activity_type)
        self.db.commit()
        logger.info("Deleted activity type %s", activity_type_id)
