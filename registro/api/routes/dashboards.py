"""Dashboard endpoints for consultant, manager and director KPIs."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from registro.core.auth import RequestUserContext, get_current_user_context
from registro.db.dependencies import get_db_session
from registro.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def _service(db: Session) -> DashboardService:
    return DashboardService(db)


@router.get("/consultant")
def get_consultant_dashboard(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    user_id: UUID | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.consultant_dashboard(context=context, user_id=user_id, year=year, month=month)


@router.get("/manager")
def get_manager_dashboard(
    manager_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.manager_dashboard(
        context=context,
        manager_id=manager_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/director")
def get_director_dashboard(
    start_date: date | None = None,
    end_date: date | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.director_dashboard(context=context, start_date=start_date, end_date=end_date)
