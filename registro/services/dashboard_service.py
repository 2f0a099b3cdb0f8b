"""Dashboard KPI service for consultants, managers and directors."""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from registro.core.auth import ORGANISATION_ROLES, REPORTING_ROLES, RequestUserContext, ensure_role
from registro.core.config import get_settings
from registro.models.entities import UserRole
from registro.reporting.builders import month_bounds
from registro.reporting.dashboards import (
    LAST_ENTRIES_LIMIT,
    ConsultantDashboard,
    DirectorDashboard,
    ManagerDashboard,
    StatusBreakdown,
    build_consultant_dashboard,
    build_director_dashboard,
    build_manager_dashboard,
)
from registro.reporting.durations import minutes_to_hours
from registro.repositories.time_tracking_repository import TimeTrackingRepository, to_project_record
from registro.services.report_service import (
    ReportService,
    hours_str,
    percent_str,
    serialize_slices,
    validate_date_range,
)

DEFAULT_WINDOW_DAYS = 30


def serialize_kpis(kpis: StatusBreakdown) -> dict[str, str]:
    return {
        "registered_hours": hours_str(kpis.registered_hours),
        "approved_hours": hours_str(kpis.approved_hours),
        "pending_hours": hours_str(kpis.pending_hours),
        "rejected_hours": hours_str(kpis.rejected_hours),
        "approval_rate": percent_str(kpis.approval_rate),
    }


class DashboardService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.settings = get_settings()

    @staticmethod
    def default_window(today: date | None = None) -> tuple[date, date]:
        """Trailing window ending today, used when no dates are supplied."""

        end_date = today or date.today()
        return end_date - timedelta(days=DEFAULT_WINDOW_DAYS), end_date

    def consultant_dashboard(
        self,
        *,
        context: RequestUserContext,
        user_id: UUID | None,
        year: int,
        month: int,
    ) -> dict[str, object]:
        user = ReportService(self.db).ensure_report_user(context=context, user_id=user_id or context.user_id)

        start_date, end_date = month_bounds(year, month)
        month_entries = self.repo.list_time_entries(start_date=start_date, end_date=end_date, user_ids=[user.id])
        recent_entries = self.repo.list_time_entries(user_ids=[user.id], newest_first=True, limit=LAST_ENTRIES_LIMIT)
        dashboard = build_consultant_dashboard(
            self.repo.entry_rows(month_entries),
            year=year,
            month=month,
            recent_rows=self.repo.entry_rows(recent_entries),
        )
        return self._serialize_consultant(user.id, dashboard)

    def manager_dashboard(
        self,
        *,
        context: RequestUserContext,
        manager_id: UUID | None,
        start_date: date | None,
        end_date: date | None,
    ) -> dict[str, object]:
        ensure_role(context, REPORTING_ROLES)
        target_id = manager_id or context.user_id
        if context.role is UserRole.GERENTE and target_id != context.user_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Managers can only view their own dashboard.",
            )
        start_date, end_date = self._window(start_date, end_date)

        projects = self.repo.list_projects(manager_id=target_id)
        project_ids = [project.id for project in projects]
        entries = (
            self.repo.list_time_entries(start_date=start_date, end_date=end_date, project_ids=project_ids)
            if project_ids
            else []
        )
        dashboard = build_manager_dashboard(
            [to_project_record(project) for project in projects],
            self.repo.entry_rows(entries),
            start_date=start_date,
            end_date=end_date,
            pending_approvals=self.repo.count_pending_entries(project_ids) if project_ids else 0,
        )
        return self._serialize_manager(target_id, start_date, end_date, dashboard)

    def director_dashboard(
        self,
        *,
        context: RequestUserContext,
        start_date: date | None,
        end_date: date | None,
    ) -> dict[str, object]:
        ensure_role(context, ORGANISATION_ROLES)
        start_date, end_date = self._window(start_date, end_date)
        entries = self.repo.list_time_entries(start_date=start_date, end_date=end_date)
        dashboard = build_director_dashboard(
            self.repo.entry_rows(entries),
            start_date=start_date,
            end_date=end_date,
            active_projects=self.repo.count_active_projects(),
            capacity_hours=self.settings.monthly_capacity_hours,
        )
        return self._serialize_director(start_date, end_date, dashboard)

    def _window(self, start_date: date | None, end_date: date | None) -> tuple[date, date]:
        """Fill missing bounds from the supplied one, or trail today when both are missing."""

        span = timedelta(days=DEFAULT_WINDOW_DAYS)
        if start_date is None and end_date is None:
            start_date, end_date = self.default_window()
        elif start_date is None:
            start_date = end_date - span
        elif end_date is None:
            end_date = start_date + span
        validate_date_range(start_date, end_date)
        return start_date, end_date

    # ---------- Serialization ----------
    @staticmethod
    def _serialize_consultant(user_id: UUID, dashboard: ConsultantDashboard) -> dict[str, object]:
        return {
            "user_id": str(user_id),
            "year": dashboard.year,
            "month": dashboard.month,
            "kpis": serialize_kpis(dashboard.kpis),
            "daily_trend": [
                {"date": point.day.isoformat(), "hours": hours_str(point.hours)} for point in dashboard.daily_trend
            ],
            "last_entries": [
                {
                    "id": str(row.entry.id),
                    "date": row.entry.date.isoformat(),
                    "project_name": row.project_name,
                    "hours": hours_str(minutes_to_hours(row.duration_minutes)),
                    "status": row.status.value,
                }
                for row in dashboard.last_entries
            ],
        }

    @staticmethod
    def _serialize_manager(
        manager_id: UUID,
        start_date: date,
        end_date: date,
        dashboard: ManagerDashboard,
    ) -> dict[str, object]:
        return {
            "manager_id": str(manager_id),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "assigned_projects": dashboard.assigned_projects,
            "pending_approvals": dashboard.pending_approvals,
            "total_consultants": dashboard.total_consultants,
            "kpis": serialize_kpis(dashboard.kpis),
            "top_consultants": [
                {
                    "user_id": str(item.user_id),
                    "name": item.name,
                    "hours": hours_str(item.hours),
                    "projects": list(item.projects),
                    "percentage": percent_str(item.percentage),
                }
                for item in dashboard.top_consultants
            ],
            "project_distribution": serialize_slices(dashboard.project_distribution),
        }

    @staticmethod
    def _serialize_director(start_date: date, end_date: date, dashboard: DirectorDashboard) -> dict[str, object]:
        return {
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "active_projects": dashboard.active_projects,
            "active_consultants": dashboard.active_consultants,
            "total_hours": hours_str(dashboard.total_hours),
            "utilization": percent_str(dashboard.utilization),
            "kpis": serialize_kpis(dashboard.kpis),
            "by_client": serialize_slices(dashboard.by_client),
            "by_system": serialize_slices(dashboard.by_system),
            "by_work_front": serialize_slices(dashboard.by_work_front),
            "top_projects": [
                {
                    "project_id": str(item.project_id),
                    "project": item.project,
                    "client": item.client,
                    "manager": item.manager,
                    "hours": hours_str(item.hours),
                }
                for item in dashboard.top_projects
            ],
        }
