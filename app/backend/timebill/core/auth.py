"""Authentication context extraction and membership guard utilities."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from timebill.core.config import Settings, get_settings
from timebill.core.errors import PermissionDenied
from timebill.db.dependencies import get_db_session
from timebill.domain.access import AccessPolicy, get_access_policy
from timebill.models.entities import Client, ClientMember, Project, ProjectMember, User, utcnow


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    subject: str
    email: str
    display_name: str
    status: str


@dataclass(frozen=True)
class ProjectMembership:
    """Actor membership on one project, with the project row attached."""

    project: Project
    role: str
    user_id: UUID


@dataclass(frozen=True)
class IdentityClaims:
    """Identity asserted by the trusted proxy, normalized for storage."""

    subject: str
    email: str
    display_name: str

    @classmethod
    def normalized(cls, subject: str, email: str, display_name: str | None = None) -> IdentityClaims:
        email = email.strip().lower()
        return cls(subject=subject.strip(), email=email, display_name=(display_name or "").strip() or email)


def read_identity_claims(request: Request, settings: Settings) -> IdentityClaims:
    """Read the proxy identity headers named in settings.

    Falls back to the configured development principal when both the subject
    and email headers are absent and the fallback is enabled.
    """

    subject = request.headers.get(settings.auth_subject_header)
    email = request.headers.get(settings.auth_email_header)
    if subject and email:
        return IdentityClaims.normalized(subject, email, request.headers.get(settings.auth_name_header))

    if settings.auth_allow_dev_principal:
        return IdentityClaims.normalized(
            settings.auth_dev_subject,
            settings.auth_dev_email,
            settings.auth_dev_display_name,
        )

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=(
            f"Missing identity headers {settings.auth_subject_header} and {settings.auth_email_header}, "
            "and the development principal is disabled."
        ),
    )


def sync_user(db: Session, claims: IdentityClaims) -> User:
    """Create the user on first sight, otherwise refresh its profile and login time."""

    now = utcnow()
    user = db.scalar(select(User).where(User.subject == claims.subject))
    if user is None:
        user = User(
            subject=claims.subject,
            email=claims.email,
            display_name=claims.display_name,
            status="active",
            created_at=now,
            updated_at=now,
        )
        db.add(user)
    elif (user.email, user.display_name) != (claims.email, claims.display_name):
        user.email = claims.email
        user.display_name = claims.display_name
        user.updated_at = now

    user.last_login_at = now
    db.flush()
    return user


def ensure_user_principal(db: Session, *, subject: str, email: str, display_name: str) -> User:
    """Persist a user for the given identity and return the committed row."""

    user = sync_user(db, IdentityClaims.normalized(subject, email, display_name))
    db.commit()
    db.refresh(user)
    return user


def get_current_user_context(request: Request, db: Session = Depends(get_db_session)) -> RequestUserContext:
    """Resolve current request user from trusted proxy headers."""

    user = sync_user(db, read_identity_claims(request, get_settings()))
    db.commit()

    return RequestUserContext(
        user_id=user.id,
        subject=user.subject,
        email=user.email,
        display_name=user.display_name,
        status=user.status,
    )


def get_policy() -> AccessPolicy:
    """Access policy for the configured role lattice."""

    return get_access_policy(get_settings().role_lattice)


def get_project_membership_or_raise(db: Session, context: RequestUserContext, project_id: UUID) -> ProjectMembership:
    """Resolve the actor's membership on a project.

    Raises 404 for unknown projects and ``PermissionDenied`` for non-members.
    """

    project = db.scalar(select(Project).where(Project.id == project_id))
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")

    membership = db.scalar(
        select(ProjectMember).where(
            and_(ProjectMember.project_id == project_id, ProjectMember.user_id == context.user_id)
        )
    )
    if membership is None:
        raise PermissionDenied("You do not have access to this project.")
    return ProjectMembership(project=project, role=membership.role.value, user_id=context.user_id)


def ensure_client_owner(db: Session, context: RequestUserContext, client_id: UUID) -> Client:
    """Resolve a client the actor owns, or raise."""

    client = db.scalar(select(Client).where(Client.id == client_id))
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found.")

    membership = db.scalar(
        select(ClientMember).where(
            and_(ClientMember.client_id == client_id, ClientMember.user_id == context.user_id)
        )
    )
    if membership is None or not get_access_policy("client").can_manage_membership(membership.role):
        raise PermissionDenied("Only the client owner can perform this action.")
    return client
