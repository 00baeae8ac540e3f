"""Rate cards, client member rates and project overrides."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, ensure_client_owner, get_policy, get_project_membership_or_raise
from timebill.core.config import get_settings
from timebill.core.errors import PermissionDenied
from timebill.domain.rates import resolve_from_levels
from timebill.models.entities import ClientMember, ProjectRateOverride, RateCard, utcnow
from timebill.repositories.time_tracking_repository import TimeTrackingRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RateLookup:
    """Rate tables for a set of entries, keyed the way resolution needs them."""

    default_by_user: dict[UUID, int]
    client_member_by_client_user: dict[tuple[UUID, UUID], int]
    override_by_project_user: dict[tuple[UUID, UUID], int]

    def resolve(self, *, user_id: UUID, client_id: UUID, project_id: UUID) -> int | None:
        return resolve_from_levels(
            default=self.default_by_user.get(user_id),
            client_member=self.client_member_by_client_user.get((client_id, user_id)),
            project_override=self.override_by_project_user.get((project_id, user_id)),
        )


class RateService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.policy = get_policy()
        self.settings = get_settings()

    @staticmethod
    def serialize_rate_card(rate_card: RateCard | None) -> dict[str, object] | None:
        if rate_card is None:
            return None
        return {
            "user_id": str(rate_card.user_id),
            "hourly_rate_cents": rate_card.hourly_rate_cents,
            "currency": rate_card.currency,
        }

    @staticmethod
    def serialize_override(override: ProjectRateOverride) -> dict[str, object]:
        return {
            "id": str(override.id),
            "project_id": str(override.project_id),
            "user_id": str(override.user_id),
            "hourly_rate_cents": override.hourly_rate_cents,
            "currency": override.currency,
        }

    def _ensure_can_manage_project(self, context: RequestUserContext, project_id: UUID) -> None:
        membership = get_project_membership_or_raise(self.db, context, project_id)
        if not self.policy.can_manage_project(membership.role):
            raise PermissionDenied("Only owners and managers can manage this project.")

    # ---------- Default rate ----------
    def get_default_rate(self, *, context: RequestUserContext) -> RateCard | None:
        return self.repo.get_rate_card(context.user_id)

    def set_default_rate(self, *, context: RequestUserContext, hourly_rate_cents: int) -> RateCard:
        rate_card = self.repo.get_rate_card(context.user_id)
        if rate_card is None:
            rate_card = self.repo.add_rate_card(
                RateCard(
                    user_id=context.user_id,
                    hourly_rate_cents=hourly_rate_cents,
                    currency=self.settings.billing_currency,
                )
            )
        else:
            rate_card.hourly_rate_cents = hourly_rate_cents
            rate_card.currency = self.settings.billing_currency
            rate_card.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(rate_card)
        return rate_card

    # ---------- Client member rates ----------
    def set_client_member_rate(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        user_id: UUID,
        hourly_rate_cents: int | None,
    ) -> ClientMember:
        ensure_client_owner(self.db, context, client_id)
        member = self.repo.get_client_member(client_id, user_id)
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client member not found.")
        member.hourly_rate_cents = hourly_rate_cents
        self.db.commit()
        self.db.refresh(member)
        return member

    # ---------- Project overrides ----------
    def list_project_overrides(self, *, context: RequestUserContext, project_id: UUID) -> list[ProjectRateOverride]:
        self._ensure_can_manage_project(context, project_id)
        return self.repo.list_project_overrides(project_id)

    def set_project_override(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        user_id: UUID,
        hourly_rate_cents: int,
    ) -> ProjectRateOverride:
        self._ensure_can_manage_project(context, project_id)
        if self.repo.get_project_member(project_id, user_id) is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="user_id must reference a member of this project.",
            )

        override = self.repo.get_project_override(project_id, user_id)
        if override is None:
            override = self.repo.add_project_override(
                ProjectRateOverride(
                    project_id=project_id,
                    user_id=user_id,
                    hourly_rate_cents=hourly_rate_cents,
                    currency=self.settings.billing_currency,
                )
            )
        else:
            override.hourly_rate_cents = hourly_rate_cents
            override.currency = self.settings.billing_currency
        self.db.commit()
        self.db.refresh(override)
        logger.info("Set project %s override for user %s", project_id, user_id)
        return override

    def remove_project_override(self, *, context: RequestUserContext, project_id: UUID, user_id: UUID) -> None:
        self._ensure_can_manage_project(context, project_id)
        override = self.repo.get_project_override(project_id, user_id)
        if override is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Rate override not found.")
        self.repo.delete_project_override(override)
        self.db.commit()

    # ---------- Resolution ----------
    def rate_lookup(
        self,
        *,
        user_ids: Iterable[UUID],
        project_ids: Iterable[UUID],
        client_ids: Iterable[UUID],
    ) -> RateLookup:
        users = set(user_ids)
        return RateLookup(
            default_by_user={row.user_id: row.hourly_rate_cents for row in self.repo.list_rate_cards(users)},
            client_member_by_client_user={
                (row.client_id, row.user_id): row.hourly_rate_cents
                for row in self.repo.list_client_member_rates(users, client_ids)
            },
            override_by_project_user={
                (row.project_id, row.user_id): row.hourly_rate_cents
                for row in self.repo.list_overrides_for(users, project_ids)
            },
        )
