"""Top-level API router."""

from fastapi import APIRouter

from registro.api.routes.admin import router as admin_router
from registro.api.routes.dashboards import router as dashboards_router
from registro.api.routes.exports import router as exports_router
from registro.api.routes.health import router as health_router
from registro.api.routes.me import router as me_router
from registro.api.routes.reports import router as reports_router
from registro.api.routes.time_entries import router as time_entries_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(admin_router)
api_router.include_router(time_entries_router)
api_router.include_router(reports_router)
api_router.include_router(exports_router)
api_router.include_router(dashboards_router)
