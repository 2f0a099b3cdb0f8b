"""Time entry logging and approval workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from registro.core.auth import REPORTING_ROLES, RequestUserContext, ensure_role
from registro.models.entities import AuditLog, ProjectStatus, TimeEntry, TimeEntryStatus, UserRole
from registro.reporting.builders import month_bounds
from registro.reporting.durations import minutes_to_hours
from registro.reporting.records import EntryRow
from registro.repositories.time_tracking_repository import TimeTrackingRepository, to_user_record
from registro.services.report_service import hours_str, validate_date_range

logger = logging.getLogger(__name__)

APPROVAL_ACTIONS = {"approve": TimeEntryStatus.APROBADO, "reject": TimeEntryStatus.RECHAZADO}
HISTORY_STATUSES = (TimeEntryStatus.APROBADO, TimeEntryStatus.RECHAZADO)
AUDIT_ACTIONS = {TimeEntryStatus.APROBADO: "approval", TimeEntryStatus.RECHAZADO: "rejection"}


@dataclass(slots=True)
class TimeEntryInput:
    project_id: UUID
    fecha: date
    start_time: time
    end_time: time
    description: str


def duration_between(start_time: time, end_time: time) -> int:
    """Whole minutes from ``start_time`` to ``end_time`` on the same day."""

    start_minutes = start_time.hour * 60 + start_time.minute
    end_minutes = end_time.hour * 60 + end_time.minute
    return end_minutes - start_minutes


def serialize_time_entry(entry: TimeEntry) -> dict[str, object]:
    return {
        "id": str(entry.id),
        "user_id": str(entry.user_id),
        "project_id": str(entry.project_id),
        "fecha": entry.fecha.isoformat(),
        "start_time": entry.start_time.strftime("%H:%M"),
        "end_time": entry.end_time.strftime("%H:%M"),
        "duration_minutes": entry.duration_minutes,
        "hours": hours_str(minutes_to_hours(entry.duration_minutes)),
        "description": entry.description,
        "status": entry.status.value,
        "rejection_reason": entry.rejection_reason,
        "processed_by": str(entry.processed_by) if entry.processed_by else None,
        "processed_at": entry.processed_at.isoformat() if entry.processed_at else None,
    }


def serialize_history_entry(entry: TimeEntry, row: EntryRow, processor_name: str | None) -> dict[str, object]:
    return {
        **serialize_time_entry(entry),
        "project_name": row.project_name,
        "client_name": row.client_name,
        "system_name": row.system_name,
        "user_name": row.consultant_name,
        "processed_by_name": processor_name,
    }


class TimeEntryService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)

    def create_entry(self, *, context: RequestUserContext, payload: TimeEntryInput) -> dict[str, object]:
        project = self.repo.get_project(payload.project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        if project.status is not ProjectStatus.ACTIVO:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Time can only be logged on active projects.",
            )
        if context.role is UserRole.CONSULTOR and context.user_id not in self.repo.list_assigned_user_ids([project.id]):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Consultant is not assigned to this project.",
            )

        duration_minutes = duration_between(payload.start_time, payload.end_time)
        if duration_minutes <= 0:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="end_time must be later than start_time.",
            )

        now = datetime.utcnow()
        entry = TimeEntry(
            user_id=context.user_id,
            project_id=project.id,
            fecha=payload.fecha,
            start_time=payload.start_time,
            end_time=payload.end_time,
            duration_minutes=duration_minutes,
            description=payload.description.strip(),
            status=TimeEntryStatus.PENDIENTE,
            created_at=now,
            updated_at=now,
        )
        self.repo.add_time_entry(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info("User %s logged %s minutes on project %s", context.user_id, duration_minutes, project.codigo)
        return serialize_time_entry(entry)

    def list_own_entries(self, *, context: RequestUserContext, year: int, month: int) -> list[dict[str, object]]:
        start_date, end_date = month_bounds(year, month)
        entries = self.repo.list_time_entries(start_date=start_date, end_date=end_date, user_ids=[context.user_id])
        return [serialize_time_entry(entry) for entry in entries]

    def list_pending_entries(self, *, context: RequestUserContext) -> list[dict[str, object]]:
        ensure_role(context, REPORTING_ROLES)
        project_ids = None
        if context.role is UserRole.GERENTE:
            project_ids = [project.id for project in self.repo.list_projects(manager_id=context.user_id)]
            if not project_ids:
                return []
        entries = self.repo.list_time_entries(project_ids=project_ids, statuses=[TimeEntryStatus.PENDIENTE])
        return [serialize_time_entry(entry) for entry in entries]

    def list_history_entries(
        self,
        *,
        context: RequestUserContext,
        status_filter: TimeEntryStatus | None = None,
        client_id: UUID | None = None,
        consultant_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[dict[str, object]]:
        """Processed entries, most recently processed first."""

        ensure_role(context, REPORTING_ROLES)
        if status_filter is TimeEntryStatus.PENDIENTE:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="History only covers approved or rejected entries.",
            )
        if start_date is not None and end_date is not None:
            validate_date_range(start_date, end_date)

        project_ids = None
        if context.role is UserRole.GERENTE or client_id is not None:
            projects = self.repo.list_projects(
                client_ids=[client_id] if client_id is not None else None,
                manager_id=context.user_id if context.role is UserRole.GERENTE else None,
            )
            project_ids = [project.id for project in projects]
            if not project_ids:
                return []

        entries = self.repo.list_time_entries(
            start_date=start_date,
            end_date=end_date,
            project_ids=project_ids,
            user_ids=[consultant_id] if consultant_id is not None else None,
            statuses=[status_filter] if status_filter is not None else HISTORY_STATUSES,
            processed_first=True,
        )
        processors = {
            user.id: to_user_record(user).full_name
            for user in self.repo.list_users({entry.processed_by for entry in entries if entry.processed_by})
        }
        return [
            serialize_history_entry(entry, row, processors.get(entry.processed_by))
            for entry, row in zip(entries, self.repo.entry_rows(entries))
        ]

    def process_entries(
        self,
        *,
        context: RequestUserContext,
        entry_ids: list[UUID],
        action: str,
        rejection_reason: str | None = None,
    ) -> list[dict[str, object]]:
        """Approve or reject pending entries in one transaction."""

        ensure_role(context, REPORTING_ROLES)
        target_status = APPROVAL_ACTIONS.get(action)
        if target_status is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="action must be one of: approve, reject.",
            )
        reason = (rejection_reason or "").strip()
        if target_status is TimeEntryStatus.RECHAZADO and not reason:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="rejection_reason is required when rejecting entries.",
            )

        unique_ids = list(dict.fromkeys(entry_ids))
        entries = self.repo.list_time_entries_by_ids(unique_ids)
        if len(entries) != len(unique_ids):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="One or more time entries not found.")

        if context.role is UserRole.GERENTE:
            managed = {project.id for project in self.repo.list_projects(manager_id=context.user_id)}
            if any(entry.project_id not in managed for entry in entries):
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="Managers can only process entries of projects they manage.",
                )

        if any(entry.status is not TimeEntryStatus.PENDIENTE for entry in entries):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only pending entries can be approved or rejected.",
            )

        previous = {entry.id: entry.status for entry in entries}
        now = datetime.utcnow()
        for entry in entries:
            entry.status = target_status
            entry.rejection_reason = reason if target_status is TimeEntryStatus.RECHAZADO else None
            entry.processed_by = context.user_id
            entry.processed_at = now
            entry.updated_at = now

        self.db.commit()
        logger.info("User %s set %d entries to %s", context.user_id, len(entries), target_status.value)
        self._record_audit(actor_id=context.user_id, entries=entries, previous=previous, target_status=target_status)
        by_id = {entry.id: entry for entry in entries}
        return [serialize_time_entry(by_id[entry_id]) for entry_id in unique_ids]

    def _record_audit(
        self,
        *,
        actor_id: UUID,
        entries: list[TimeEntry],
        previous: dict[UUID, TimeEntryStatus],
        target_status: TimeEntryStatus,
    ) -> None:
        # Written after the status change is committed; a failure here never undoes it.
        now = datetime.utcnow()
        logs = [
            AuditLog(
                admin_id=actor_id,
                action_type=AUDIT_ACTIONS[target_status],
                target_user_id=entry.user_id,
                details={
                    "time_entry_id": str(entry.id),
                    "previous_status": previous[entry.id].value,
                    "new_status": target_status.value,
                },
                created_at=now,
            )
            for entry in entries
        ]
        try:
            self.repo.add_audit_logs(logs)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to write audit logs for %d processed entries", len(logs))
