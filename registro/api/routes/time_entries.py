"""Time entry logging and approval endpoints."""

from __future__ import annotations

from datetime import date, time
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from registro.core.auth import RequestUserContext, get_current_user_context
from registro.db.dependencies import get_db_session
from registro.models.entities import TimeEntryStatus
from registro.services.time_entry_service import TimeEntryInput, TimeEntryService

router = APIRouter(prefix="/time-entries", tags=["time-entries"])


class TimeEntryCreate(BaseModel):
    project_id: UUID
    fecha: date
    start_time: time
    end_time: time
    description: str = Field(min_length=1, max_length=2000)


class TimeEntryDecision(BaseModel):
    entry_ids: list[UUID] = Field(min_length=1)
    action: Literal["approve", "reject"]
    rejection_reason: str | None = Field(default=None, max_length=2000)


def _service(db: Session) -> TimeEntryService:
    return TimeEntryService(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_time_entry(
    payload: TimeEntryCreate,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.create_entry(
        context=context,
        payload=TimeEntryInput(
            project_id=payload.project_id,
            fecha=payload.fecha,
            start_time=payload.start_time,
            end_time=payload.end_time,
            description=payload.description,
        ),
    )


@router.get("")
def list_my_time_entries(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).list_own_entries(context=context, year=year, month=month)


@router.get("/pending")
def list_pending_time_entries(
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).list_pending_entries(context=context)


@router.get("/history")
def list_time_entry_history(
    status_filter: TimeEntryStatus | None = Query(default=None, alias="status"),
    client_id: UUID | None = Query(default=None),
    consultant_id: UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    return _service(db).list_history_entries(
        context=context,
        status_filter=status_filter,
        client_id=client_id,
        consultant_id=consultant_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/decisions")
def decide_time_entries(
    payload: TimeEntryDecision,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    """Approve or reject pending entries in bulk."""

    service = _service(db)
    return service.process_entries(
        context=context,
        entry_ids=payload.entry_ids,
        action=payload.action,
        rejection_reason=payload.rejection_reason,
    )
