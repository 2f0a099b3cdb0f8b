"""Export endpoints for report downloads."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from registro.core.auth import RequestUserContext, get_current_user_context
from registro.db.dependencies import get_db_session
from registro.models.entities import WorkFront
from registro.services.report_service import ExportFilePayload, ReportService

router = APIRouter(prefix="/exports", tags=["exports"])


def _service(db: Session) -> ReportService:
    return ReportService(db)


def _download(exported: ExportFilePayload) -> Response:
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.get("/executive")
def export_executive(
    start_date: date,
    end_date: date,
    format: str = Query(default="csv"),
    client_id: list[UUID] | None = Query(default=None),
    system_id: list[UUID] | None = Query(default=None),
    work_front: WorkFront | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_executive_report(
        context=context,
        format_name=format,
        start_date=start_date,
        end_date=end_date,
        client_ids=client_id,
        system_ids=system_id,
        work_front=work_front,
    )
    return _download(exported)


@router.get("/manager")
def export_manager(
    manager_id: UUID,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    format: str = Query(default="csv"),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_manager_report(
        context=context,
        format_name=format,
        manager_id=manager_id,
        year=year,
        month=month,
    )
    return _download(exported)


@router.get("/project")
def export_project(
    project_id: UUID,
    start_date: date,
    end_date: date,
    format: str = Query(default="csv"),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_project_report(
        context=context,
        format_name=format,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )
    return _download(exported)


@router.get("/monthly")
def export_monthly(
    user_id: UUID,
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    format: str = Query(default="csv"),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    exported = _service(db).export_monthly_report(
        context=context,
        format_name=format,
        user_id=user_id,
        year=year,
        month=month,
    )
    return _download(exported)
