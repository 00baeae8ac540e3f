"""Current user endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timebill.core.auth import RequestUserContext, get_current_user_context
from timebill.db.dependencies import get_db_session
from timebill.repositories.time_tracking_repository import TimeTrackingRepository

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Return the authenticated user with client and project memberships."""

    repo = TimeTrackingRepository(db)
    return {
        "id": str(context.user_id),
        "subject": context.subject,
        "email": context.email,
        "display_name": context.display_name,
        "status": context.status,
        "clients": [
            {"client_id": str(row.client_id), "role": row.role.value}
            for row in repo.list_client_memberships_for_user(context.user_id)
        ],
        "projects": [
            {"project_id": str(row.project_id), "role": row.role.value}
            for row in repo.list_project_memberships_for_user(context.user_id)
        ],
    }
