"""Top-level API router."""

from fastapi import APIRouter

from timebill.api.routes.activity_types import router as activity_types_router
from timebill.api.routes.clients import router as clients_router
from timebill.api.routes.health import router as health_router
from timebill.api.routes.me import router as me_router
from timebill.api.routes.projects import router as projects_router
from timebill.api.routes.rates import router as rates_router
from timebill.api.routes.reports import router as reports_router
from timebill.api.routes.time_entries import router as time_entries_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(clients_router)
api_router.include_router(projects_router)
api_router.include_router(activity_types_router)
api_router.include_router(time_entries_router)
api_router.include_router(rates_router)
api_router.include_router(reports_router)
