"""Report and export service layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from registro.core.auth import ORGANISATION_ROLES, REPORTING_ROLES, RequestUserContext, ensure_role
from registro.core.config import get_settings
from registro.models.entities import Project, TimeEntryStatus, User, UserRole, WorkFront
from registro.reporting.builders import (
    DistributionSlice,
    ExecutiveFilters,
    ExecutiveReport,
    ManagerReport,
    ManagerSelection,
    MonthlyReport,
    ProjectReport,
    build_executive_report,
    build_manager_report,
    build_monthly_report,
    build_project_report,
    month_bounds,
    resolve_manager_selection,
)
from registro.reporting.csv_writer import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    CsvTable,
    encode_csv,
    serialize_xlsx,
)
from registro.reporting.durations import round_hours, round_percentage
from registro.reporting.exports import (
    date_range_label,
    executive_report_table,
    export_filename,
    manager_report_table,
    month_label,
    monthly_report_table,
    project_report_table,
)
from registro.repositories.time_tracking_repository import TimeTrackingRepository, to_user_record

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {"csv", "xlsx"}


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def hours_str(value: Decimal) -> str:
    return str(round_hours(value))


def percent_str(value: Decimal) -> str:
    return str(round_percentage(value))


def serialize_user(user: User) -> dict[str, object]:
    return {
        "id": str(user.id),
        "email": user.email,
        "nombre": user.nombre,
        "apellido": user.apellido,
        "role": user.role.value,
        "activo": user.activo,
    }


def serialize_slices(slices: list[DistributionSlice]) -> list[dict[str, object]]:
    return [{"name": item.name, "minutes": item.minutes, "hours": hours_str(item.hours)} for item in slices]


def validate_date_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must be greater than or equal to start_date.",
        )


class ReportService:
    """Service assembling executive, manager, project and monthly reports."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.settings = get_settings()

    # ---------- Access / scope ----------
    def list_report_users(self, *, context: RequestUserContext) -> list[User]:
        """Users whose monthly report the actor may open."""

        if context.sees_whole_organisation:
            return self.repo.list_active_users()

        if context.role is UserRole.GERENTE:
            managed = self.repo.list_projects(manager_id=context.user_id)
            if not managed:
                user = self.repo.get_user(context.user_id)
                return [user] if user is not None else []
            user_ids = set(self.repo.list_assigned_user_ids(project.id for project in managed))
            user_ids.add(context.user_id)
            return self.repo.list_active_users(user_ids)

        user = self.repo.get_user(context.user_id)
        return [user] if user is not None else []

    def ensure_report_user(self, *, context: RequestUserContext, user_id: UUID) -> User:
        allowed = {user.id: user for user in self.list_report_users(context=context)}
        user = allowed.get(user_id)
        if user is None:
            if self.repo.get_user(user_id) is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions to view this user's report.",
            )
        return user

    def _ensure_manager_scope(self, *, context: RequestUserContext, manager_id: UUID) -> User:
        ensure_role(context, REPORTING_ROLES)
        if context.role is UserRole.GERENTE and manager_id != context.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Managers can only view their own report.",
            )
        manager = self.repo.get_user(manager_id)
        if manager is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Manager not found.")
        return manager

    def _ensure_project_access(self, *, context: RequestUserContext, project_id: UUID) -> Project:
        ensure_role(context, REPORTING_ROLES)
        project = self.repo.get_project(project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        if context.role is UserRole.GERENTE and project.gerente_id != context.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Managers can only view reports of projects they manage.",
            )
        return project

    def manager_selection(self, *, context: RequestUserContext) -> ManagerSelection:
        ensure_role(context, REPORTING_ROLES)
        managers = [to_user_record(user) for user in self.repo.list_managers()]
        return resolve_manager_selection(context.as_record(), managers)

    # ---------- Report models ----------
    def executive_report_model(
        self,
        *,
        context: RequestUserContext,
        start_date: date,
        end_date: date,
        client_ids: list[UUID] | None = None,
        system_ids: list[UUID] | None = None,
        work_front: WorkFront | None = None,
    ) -> ExecutiveReport:
        ensure_role(context, ORGANISATION_ROLES)
        validate_date_range(start_date, end_date)
        filters = ExecutiveFilters(
            start_date=start_date,
            end_date=end_date,
            client_ids=frozenset(client_ids or ()),
            system_ids=frozenset(system_ids or ()),
            work_front=work_front.value if work_front is not None else None,
        )

        projects = self.repo.list_projects(client_ids=client_ids, system_ids=system_ids, work_front=work_front)
        if not projects:
            return build_executive_report([], filters)

        entries = self.repo.list_time_entries(
            start_date=start_date,
            end_date=end_date,
            project_ids=[project.id for project in projects],
        )
        return build_executive_report(self.repo.entry_rows(entries), filters)

    def manager_report_model(
        self,
        *,
        context: RequestUserContext,
        manager_id: UUID,
        year: int,
        month: int,
    ) -> ManagerReport:
        manager = self._ensure_manager_scope(context=context, manager_id=manager_id)
        projects = self.repo.list_projects(manager_id=manager.id)
        start_date, end_date = month_bounds(year, month)
        entries = (
            self.repo.list_time_entries(
                start_date=start_date,
                end_date=end_date,
                project_ids=[project.id for project in projects],
            )
            if projects
            else []
        )
        return build_manager_report(
            manager=to_user_record(manager),
            projects=self.repo.project_rows(projects),
            rows=self.repo.entry_rows(entries),
            year=year,
            month=month,
        )

    def project_report_model(
        self,
        *,
        context: RequestUserContext,
        project_id: UUID,
        start_date: date,
        end_date: date,
    ) -> ProjectReport:
        project = self._ensure_project_access(context=context, project_id=project_id)
        validate_date_range(start_date, end_date)
        entries = self.repo.list_time_entries(
            start_date=start_date,
            end_date=end_date,
            project_ids=[project.id],
            statuses=[TimeEntryStatus.APROBADO],
        )
        return build_project_report(
            self.repo.project_rows([project])[0],
            self.repo.entry_rows(entries),
            start_date=start_date,
            end_date=end_date,
        )

    def monthly_report_model(
        self,
        *,
        context: RequestUserContext,
        user_id: UUID,
        year: int,
        month: int,
        entry_status: TimeEntryStatus | None = None,
    ) -> MonthlyReport:
        user = self.ensure_report_user(context=context, user_id=user_id)
        start_date, end_date = month_bounds(year, month)
        entries = self.repo.list_time_entries(start_date=start_date, end_date=end_date, user_ids=[user.id])
        return build_monthly_report(
            to_user_record(user),
            self.repo.entry_rows(entries),
            year=year,
            month=month,
            status=entry_status,
        )

    # ---------- Serialization ----------
    @staticmethod
    def serialize_executive_report(report: ExecutiveReport) -> dict[str, object]:
        filters = report.filters
        return {
            "report_key": "executive",
            "start_date": filters.start_date.isoformat(),
            "end_date": filters.end_date.isoformat(),
            "client_ids": sorted(str(client_id) for client_id in filters.client_ids),
            "system_ids": sorted(str(system_id) for system_id in filters.system_ids),
            "work_front": filters.work_front,
            "clients": [
                {
                    "client_id": str(client.client_id) if client.client_id else None,
                    "client_name": client.client_name,
                    "total_hours": hours_str(client.total_hours),
                    "systems": [
                        {
                            "system_id": str(system.system_id) if system.system_id else None,
                            "system_name": system.system_name,
                            "total_hours": hours_str(system.total_hours),
                            "projects": [
                                {
                                    "project_id": str(project.project_id),
                                    "project_name": project.project_name,
                                    "total_hours": hours_str(project.total_hours),
                                    "unique_consultants": project.unique_consultants,
                                    "items": [
                                        {
                                            "status": item.status.value,
                                            "project_code": item.project_code,
                                            "manager_name": item.manager_name,
                                            "work_front": item.work_front,
                                            "project_status": item.project_status,
                                            "total_minutes": item.total_minutes,
                                            "total_hours": hours_str(item.total_hours),
                                            "unique_consultants": item.unique_consultants,
                                        }
                                        for item in project.items
                                    ],
                                }
                                for project in system.projects
                            ],
                        }
                        for system in client.systems
                    ],
                }
                for client in report.clients
            ],
            "grand_total_minutes": report.grand_total_minutes,
            "grand_total_hours": hours_str(report.grand_total_hours),
            "work_front_distribution": serialize_slices(report.work_front_distribution),
            "top_clients": serialize_slices(report.top_clients),
        }

    @staticmethod
    def serialize_manager_report(report: ManagerReport) -> dict[str, object]:
        stats = report.stats
        return {
            "report_key": "manager",
            "manager_id": str(report.manager_id),
            "manager_name": report.manager_name,
            "period": month_label(report.year, report.month),
            "projects": [
                {
                    "project_id": str(project.project_id),
                    "project_name": project.project_name,
                    "project_code": project.project_code,
                    "client_name": project.client_name,
                    "system_name": project.system_name,
                    "status": project.status.value,
                    "approved_hours": hours_str(project.approved_hours),
                    "pending_count": project.pending_count,
                    "consultant_count": project.consultant_count,
                }
                for project in report.projects
            ],
            "stats": {
                "active_projects": stats.active_projects,
                "total_approved_hours": hours_str(stats.total_approved_hours),
                "avg_hours_per_project": hours_str(stats.avg_hours_per_project),
            },
        }

    @staticmethod
    def serialize_project_report(report: ProjectReport) -> dict[str, object]:
        return {
            "report_key": "project",
            "project_id": str(report.project_id),
            "project_name": report.project_name,
            "project_code": report.project_code,
            "client_name": report.client_name,
            "system_name": report.system_name,
            "manager_name": report.manager_name,
            "start_date": report.start_date.isoformat(),
            "end_date": report.end_date.isoformat(),
            "consultants": [
                {
                    "user_id": str(group.user_id),
                    "consultant_name": group.consultant_name,
                    "email": group.email,
                    "total_hours": hours_str(group.total_hours),
                    "entries": [
                        {
                            "id": str(line.entry_id),
                            "date": line.date.isoformat(),
                            "start_time": line.start_time.strftime("%H:%M"),
                            "end_time": line.end_time.strftime("%H:%M"),
                            "description": line.description,
                            "duration_minutes": line.duration_minutes,
                            "hours": hours_str(line.hours),
                        }
                        for line in group.entries
                    ],
                }
                for group in report.consultants
            ],
            "distribution": serialize_slices(report.distribution),
            "grand_total_minutes": report.grand_total_minutes,
            "grand_total_hours": hours_str(report.grand_total_hours),
        }

    @staticmethod
    def serialize_monthly_report(report: MonthlyReport) -> dict[str, object]:
        return {
            "report_key": "monthly",
            "user_id": str(report.user_id),
            "user_name": report.user_name,
            "period": month_label(report.year, report.month),
            "weeks": [
                {
                    "iso_year": week.iso_year,
                    "week": week.week,
                    "subtotal_hours": hours_str(week.total_hours),
                    "entries": [
                        {
                            "id": str(line.entry_id),
                            "date": line.date.isoformat(),
                            "project_name": line.project_name,
                            "client_name": line.client_name,
                            "system_name": line.system_name,
                            "start_time": line.start_time.strftime("%H:%M"),
                            "end_time": line.end_time.strftime("%H:%M"),
                            "duration_minutes": line.duration_minutes,
                            "hours": hours_str(line.hours),
                            "description": line.description,
                            "status": line.status.value,
                        }
                        for line in week.entries
                    ],
                }
                for week in report.weeks
            ],
            "total_minutes": report.total_minutes,
            "total_hours": hours_str(report.total_hours),
        }

    # ---------- Exports ----------
    @staticmethod
    def _render_export(
        table: CsvTable,
        *,
        is_empty: bool,
        format_name: str,
        scope: str,
        identifier: str,
        period: str,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in EXPORT_FORMATS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )
        if is_empty:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Nothing to export for the selected filters.",
            )

        filename = export_filename(scope, identifier, period, extension=normalized_format)
        logger.info("Exporting %s report as %s", scope, filename)
        if normalized_format == "csv":
            return ExportFilePayload(media_type=CSV_MEDIA_TYPE, filename=filename, content=encode_csv(table))
        return ExportFilePayload(
            media_type=XLSX_MEDIA_TYPE,
            filename=filename,
            content=serialize_xlsx(table, sheet_title=scope),
        )

    def export_executive_report(
        self,
        *,
        context: RequestUserContext,
        format_name: str,
        start_date: date,
        end_date: date,
        client_ids: list[UUID] | None = None,
        system_ids: list[UUID] | None = None,
        work_front: WorkFront | None = None,
    ) -> ExportFilePayload:
        report = self.executive_report_model(
            context=context,
            start_date=start_date,
            end_date=end_date,
            client_ids=client_ids,
            system_ids=system_ids,
            work_front=work_front,
        )
        client_names = [client.nombre for client in self.repo.list_clients(client_ids or [])]
        table = executive_report_table(
            report,
            client_names=client_names,
            system_names=[system.nombre for system in self.repo.list_systems(system_ids or [])],
            decimal_separator=self.settings.csv_decimal_separator,
        )
        return self._render_export(
            table,
            is_empty=report.is_empty,
            format_name=format_name,
            scope="ejecutivo",
            identifier=client_names[0] if len(client_names) == 1 else "general",
            period=date_range_label(start_date, end_date),
        )

    def export_manager_report(
        self,
        *,
        context: RequestUserContext,
        format_name: str,
        manager_id: UUID,
        year: int,
        month: int,
    ) -> ExportFilePayload:
        report = self.manager_report_model(context=context, manager_id=manager_id, year=year, month=month)
        table = manager_report_table(report, decimal_separator=self.settings.csv_decimal_separator)
        return self._render_export(
            table,
            is_empty=report.is_empty,
            format_name=format_name,
            scope="gerente",
            identifier=report.manager_name,
            period=month_label(year, month),
        )

    def export_project_report(
        self,
        *,
        context: RequestUserContext,
        format_name: str,
        project_id: UUID,
        start_date: date,
        end_date: date,
    ) -> ExportFilePayload:
        report = self.project_report_model(
            context=context,
            project_id=project_id,
            start_date=start_date,
            end_date=end_date,
        )
        table = project_report_table(report, decimal_separator=self.settings.csv_decimal_separator)
        return self._render_export(
            table,
            is_empty=report.is_empty,
            format_name=format_name,
            scope="proyecto",
            identifier=report.project_code or report.project_name,
            period=date_range_label(start_date, end_date),
        )

    def export_monthly_report(
        self,
        *,
        context: RequestUserContext,
        format_name: str,
        user_id: UUID,
        year: int,
        month: int,
    ) -> ExportFilePayload:
        report = self.monthly_report_model(context=context, user_id=user_id, year=year, month=month)
        table = monthly_report_table(report, decimal_separator=self.settings.csv_decimal_separator)
        return self._render_export(
            table,
            is_empty=report.is_empty,
            format_name=format_name,
            scope="consultor",
            identifier=report.user_name,
            period=month_label(year, month),
        )
