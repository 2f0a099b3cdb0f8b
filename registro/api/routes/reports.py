"""Reporting endpoints for executive, manager, project and monthly views."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from registro.core.auth import RequestUserContext, get_current_user_context
from registro.db.dependencies import get_db_session
from registro.models.entities import TimeEntryStatus, WorkFront
from registro.services.report_service import ReportService, serialize_user

router = APIRouter(prefix="/reports", tags=["reports"])


def _service(db: Session) -> ReportService:
    return ReportService(db)


@router.get("/users")
def list_report_users(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    """Users whose monthly report the caller may open."""

    service = _service(db)
    return [serialize_user(user) for user in service.list_report_users(context=context)]


@router.get("/managers")
def list_report_managers(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    selection = _service(db).manager_selection(context=context)
    return {
        "managers": [{"id": str(manager.id), "name": manager.full_name} for manager in selection.managers],
        "selected_manager_id": str(selection.selected_manager_id) if selection.selected_manager_id else None,
        "selector_enabled": selection.selector_enabled,
    }


@router.get("/executive")
def report_executive(
    start_date: date,
    end_date: date,
    client_id: list[UUID] | None = Query(default=None),
    system_id: list[UUID] | None = Query(default=None),
    work_front: WorkFront | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    report = service.executive_report_model(
        context=context,
        start_date=start_date,
        end_date=end_date,
        client_ids=client_id,
        system_ids=system_id,
        work_front=work_front,
    )
    return service.serialize_executive_report(report)


@router.get("/managers/{manager_id}")
def report_manager(
    manager_id: UUID,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    report = service.manager_report_model(context=context, manager_id=manager_id, year=year, month=month)
    return service.serialize_manager_report(report)


@router.get("/projects/{project_id}")
def report_project(
    project_id: UUID,
    start_date: date,
    end_date: date,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    report = service.project_report_model(
        context=context,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )
    return service.serialize_project_report(report)


@router.get("/users/{user_id}/monthly")
def report_monthly(
    user_id: UUID,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    status: TimeEntryStatus | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    report = service.monthly_report_model(
        context=context,
        user_id=user_id,
        year=year,
        month=month,
        entry_status=status,
    )
    return service.serialize_monthly_report(report)
