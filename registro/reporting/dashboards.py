"""KPI builders for consultant, manager and director dashboards."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from registro.models.entities import TimeEntryStatus
from registro.reporting.builders import (
    DistributionSlice,
    distribution,
    in_range,
    month_bounds,
)
from registro.reporting.durations import minutes_to_hours, percentage, sum_minutes
from registro.reporting.grouping import group_by, label_sort_key
from registro.reporting.records import EntryRow, ProjectRecord

TOP_CONSULTANTS_LIMIT = 5
TOP_PROJECTS_LIMIT = 10
LAST_ENTRIES_LIMIT = 5
DEFAULT_MONTHLY_CAPACITY_HOURS = Decimal("160")


def _minutes_with_status(rows: list[EntryRow], status: TimeEntryStatus) -> int:
    return sum_minutes(row for row in rows if row.status is status)


@dataclass(frozen=True, slots=True)
class StatusBreakdown:
    """Registered minutes split by approval status."""

    total_minutes: int = 0
    approved_minutes: int = 0
    pending_minutes: int = 0
    rejected_minutes: int = 0

    @classmethod
    def from_rows(cls, rows: list[EntryRow]) -> StatusBreakdown:
        return cls(
            total_minutes=sum_minutes(rows),
            approved_minutes=_minutes_with_status(rows, TimeEntryStatus.APROBADO),
            pending_minutes=_minutes_with_status(rows, TimeEntryStatus.PENDIENTE),
            rejected_minutes=_minutes_with_status(rows, TimeEntryStatus.RECHAZADO),
        )

    @property
    def registered_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)

    @property
    def approved_hours(self) -> Decimal:
        return minutes_to_hours(self.approved_minutes)

    @property
    def pending_hours(self) -> Decimal:
        return minutes_to_hours(self.pending_minutes)

    @property
    def rejected_hours(self) -> Decimal:
        return minutes_to_hours(self.rejected_minutes)

    @property
    def approval_rate(self) -> Decimal:
        return percentage(self.approved_minutes, self.total_minutes)


# ---------- Consultant ----------
@dataclass(frozen=True, slots=True)
class DailyPoint:
    day: date
    minutes: int

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.minutes)


@dataclass(slots=True)
class ConsultantDashboard:
    year: int
    month: int
    kpis: StatusBreakdown = field(default_factory=StatusBreakdown)
    daily_trend: list[DailyPoint] = field(default_factory=list)
    last_entries: list[EntryRow] = field(default_factory=list)


def build_consultant_dashboard(
    rows: list[EntryRow],
    *,
    year: int,
    month: int,
    recent_rows: list[EntryRow] | None = None,
) -> ConsultantDashboard:
    """Month KPIs, one trend point per calendar day and the latest entries.

    ``recent_rows`` may come from outside the month; when omitted the last
    entries are taken from ``rows``.
    """

    start_date, end_date = month_bounds(year, month)
    in_month = [row for row in rows if in_range(row.entry.date, start_date, end_date)]
    minutes_by_day = {day: sum_minutes(members) for day, members in group_by(in_month, lambda row: row.entry.date).items()}

    daily_trend = []
    current = start_date
    while current <= end_date:
        daily_trend.append(DailyPoint(day=current, minutes=minutes_by_day.get(current, 0)))
        current += timedelta(days=1)

    candidates = rows if recent_rows is None else recent_rows
    last_entries = sorted(
        candidates,
        key=lambda row: (row.entry.date, row.entry.start_time, str(row.entry.id)),
        reverse=True,
    )[:LAST_ENTRIES_LIMIT]

    return ConsultantDashboard(
        year=year,
        month=month,
        kpis=StatusBreakdown.from_rows(in_month),
        daily_trend=daily_trend,
        last_entries=last_entries,
    )


# ---------- Manager ----------
@dataclass(frozen=True, slots=True)
class ConsultantRanking:
    user_id: UUID
    name: str
    minutes: int
    projects: tuple[str, ...]
    percentage: Decimal

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.minutes)


@dataclass(slots=True)
class ManagerDashboard:
    assigned_projects: int = 0
    pending_approvals: int = 0
    kpis: StatusBreakdown = field(default_factory=StatusBreakdown)
    total_consultants: int = 0
    top_consultants: list[ConsultantRanking] = field(default_factory=list)
    project_distribution: list[DistributionSlice] = field(default_factory=list)

    @property
    def hours(self) -> Decimal:
        return self.kpis.registered_hours


def rank_consultants(rows: list[EntryRow], limit: int = TOP_CONSULTANTS_LIMIT) -> list[ConsultantRanking]:
    """Top consultants by minutes, with share of the top performer's minutes."""

    by_user = group_by(rows, lambda row: row.entry.user_id)
    if not by_user:
        return []

    totals = {user_id: sum_minutes(members) for user_id, members in by_user.items()}
    top_minutes = max(totals.values())
    ranked = sorted(
        by_user.items(),
        key=lambda pair: (-totals[pair[0]], label_sort_key(pair[1][0].consultant_name, pair[0])),
    )
    return [
        ConsultantRanking(
            user_id=user_id,
            name=members[0].consultant_name,
            minutes=totals[user_id],
            projects=tuple(dict.fromkeys(row.project_name for row in members)),
            percentage=percentage(totals[user_id], top_minutes),
        )
        for user_id, members in ranked[:limit]
    ]


def build_manager_dashboard(
    projects: list[ProjectRecord],
    rows: list[EntryRow],
    *,
    start_date: date,
    end_date: date,
    pending_approvals: int = 0,
) -> ManagerDashboard:
    """KPIs over the manager's projects within an inclusive date range."""

    if not projects:
        return ManagerDashboard()

    project_ids = {project.id for project in projects}
    selected = [
        row
        for row in rows
        if row.entry.project_id in project_ids and in_range(row.entry.date, start_date, end_date)
    ]
    return ManagerDashboard(
        assigned_projects=len(projects),
        pending_approvals=pending_approvals,
        kpis=StatusBreakdown.from_rows(selected),
        total_consultants=len({row.entry.user_id for row in selected}),
        top_consultants=rank_consultants(selected),
        project_distribution=distribution(selected, lambda row: row.project_name),
    )


# ---------- Director ----------
@dataclass(frozen=True, slots=True)
class ProjectRanking:
    project_id: UUID
    project: str
    client: str
    manager: str
    minutes: int

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.minutes)


@dataclass(slots=True)
class DirectorDashboard:
    active_projects: int = 0
    kpis: StatusBreakdown = field(default_factory=StatusBreakdown)
    active_consultants: int = 0
    capacity_hours: Decimal = DEFAULT_MONTHLY_CAPACITY_HOURS
    by_client: list[DistributionSlice] = field(default_factory=list)
    by_system: list[DistributionSlice] = field(default_factory=list)
    by_work_front: list[DistributionSlice] = field(default_factory=list)
    top_projects: list[ProjectRanking] = field(default_factory=list)

    @property
    def total_hours(self) -> Decimal:
        return self.kpis.registered_hours

    @property
    def utilization(self) -> Decimal:
        """Approved hours over ``active_consultants × capacity`` as a percentage."""

        return percentage(self.kpis.approved_hours, self.active_consultants * self.capacity_hours)


def rank_projects(rows: list[EntryRow], limit: int = TOP_PROJECTS_LIMIT) -> list[ProjectRanking]:
    by_project = group_by(rows, lambda row: row.entry.project_id)
    rankings = [
        ProjectRanking(
            project_id=project_id,
            project=members[0].project_name,
            client=members[0].client_name,
            manager=members[0].manager_name,
            minutes=sum_minutes(members),
        )
        for project_id, members in by_project.items()
    ]
    rankings.sort(key=lambda item: (-item.minutes, label_sort_key(item.project, item.project_id)))
    return rankings[:limit]


def build_director_dashboard(
    rows: list[EntryRow],
    *,
    start_date: date,
    end_date: date,
    active_projects: int = 0,
    capacity_hours: Decimal = DEFAULT_MONTHLY_CAPACITY_HOURS,
) -> DirectorDashboard:
    """Organisation-wide KPIs; distributions use approved entries only."""

    selected = [row for row in rows if in_range(row.entry.date, start_date, end_date)]
    approved = [row for row in selected if row.status is TimeEntryStatus.APROBADO]
    return DirectorDashboard(
        active_projects=active_projects,
        kpis=StatusBreakdown.from_rows(selected),
        active_consultants=len({row.entry.user_id for row in selected}),
        capacity_hours=capacity_hours,
        by_client=distribution(approved, lambda row: row.client_name),
        by_system=distribution(approved, lambda row: row.system_name),
        by_work_front=distribution(approved, lambda row: row.work_front),
        top_projects=rank_projects(selected),
    )
