"""Report builders: executive, manager, project and consultant monthly.

Builders are pure folds over already-fetched rows. An empty input always
yields a renderable model with zero totals and no groups.
"""

from __future__ import annotations

import calendar
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from uuid import UUID

from registro.models.entities import ProjectStatus, TimeEntryStatus, UserRole
from registro.reporting.durations import minutes_to_hours, safe_div, sum_minutes
from registro.reporting.grouping import (
    GroupLevel,
    GroupNode,
    group_by,
    group_tree,
    iso_week_key,
    label_sort_key,
    sort_groups,
)
from registro.reporting.records import (
    EntryRow,
    ProjectRow,
    UserRecord,
)

STATUS_ORDER = {status: index for index, status in enumerate(TimeEntryStatus)}
TOP_CLIENTS_LIMIT = 10


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of ``month`` (1-12) in ``year``."""

    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def in_range(day: date, start_date: date, end_date: date) -> bool:
    return start_date <= day <= end_date


# ---------- Shared shapes ----------
@dataclass(frozen=True, slots=True)
class DistributionSlice:
    name: str
    minutes: int

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.minutes)


def distribution(
    rows: list[EntryRow],
    label_fn: Callable[[EntryRow], str],
    limit: int | None = None,
) -> list[DistributionSlice]:
    """Minutes per label, largest first, ties alphabetical."""

    slices = [
        DistributionSlice(name=label, minutes=sum_minutes(members))
        for label, members in group_by(rows, label_fn).items()
    ]
    slices.sort(key=lambda item: (-item.minutes, label_sort_key(item.name)))
    if limit is not None:
        return slices[:limit]
    return slices


# ---------- Executive report ----------
@dataclass(frozen=True, slots=True)
class ExecutiveFilters:
    start_date: date
    end_date: date
    client_ids: frozenset[UUID] = frozenset()
    system_ids: frozenset[UUID] = frozenset()
    work_front: str | None = None


@dataclass(frozen=True, slots=True)
class ExecutiveReportItem:
    """One row per (project, entry status) combination."""

    project_id: UUID
    project_name: str
    project_code: str
    client_id: UUID | None
    client_name: str
    system_id: UUID | None
    system_name: str
    manager_name: str
    work_front: str
    project_status: str
    status: TimeEntryStatus
    total_minutes: int
    unique_consultants: int

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)


@dataclass(slots=True)
class ExecutiveProjectGroup:
    project_id: UUID
    project_name: str
    total_minutes: int
    unique_consultants: int
    items: list[ExecutiveReportItem]

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)


@dataclass(slots=True)
class ExecutiveSystemGroup:
    system_id: UUID | None
    system_name: str
    total_minutes: int
    projects: list[ExecutiveProjectGroup]

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)


@dataclass(slots=True)
class ExecutiveClientGroup:
    client_id: UUID | None
    client_name: str
    total_minutes: int
    systems: list[ExecutiveSystemGroup]

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)


@dataclass(slots=True)
class ExecutiveReport:
    filters: ExecutiveFilters
    clients: list[ExecutiveClientGroup] = field(default_factory=list)
    grand_total_minutes: int = 0
    work_front_distribution: list[DistributionSlice] = field(default_factory=list)
    top_clients: list[DistributionSlice] = field(default_factory=list)

    @property
    def grand_total_hours(self) -> Decimal:
        return minutes_to_hours(self.grand_total_minutes)

    @property
    def items(self) -> list[ExecutiveReportItem]:
        """Leaf rows flattened in display order."""

        return [
            item
            for client in self.clients
            for system in client.systems
            for project in system.projects
            for item in project.items
        ]

    @property
    def is_empty(self) -> bool:
        return not self.clients


def matches_executive_filters(row: EntryRow, filters: ExecutiveFilters) -> bool:
    if not in_range(row.entry.date, filters.start_date, filters.end_date):
        return False
    if filters.client_ids and row.client_id not in filters.client_ids:
        return False
    if filters.system_ids and row.system_id not in filters.system_ids:
        return False
    if filters.work_front and row.work_front != filters.work_front:
        return False
    return True


def _executive_item(project_rows: list[EntryRow], status: TimeEntryStatus) -> ExecutiveReportItem:
    first = project_rows[0]
    status_rows = [row for row in project_rows if row.status is status]
    return ExecutiveReportItem(
        project_id=first.entry.project_id,
        project_name=first.project_name,
        project_code=first.project.codigo if first.project is not None else "",
        client_id=first.client_id,
        client_name=first.client_name,
        system_id=first.system_id,
        system_name=first.system_name,
        manager_name=first.manager_name,
        work_front=first.work_front,
        project_status=first.project.status.value if first.project is not None else "",
        status=status,
        total_minutes=sum_minutes(status_rows),
        unique_consultants=len({row.entry.user_id for row in status_rows}),
    )


def _executive_project_group(node: GroupNode[EntryRow]) -> ExecutiveProjectGroup:
    statuses = sorted({row.status for row in node.items}, key=STATUS_ORDER.__getitem__)
    return ExecutiveProjectGroup(
        project_id=node.key,
        project_name=node.label,
        total_minutes=node.total_minutes,
        unique_consultants=len({row.entry.user_id for row in node.items}),
        items=[_executive_item(node.items, status) for status in statuses],
    )


EXECUTIVE_LEVELS: tuple[GroupLevel[EntryRow], ...] = (
    GroupLevel(key_fn=lambda row: row.client_id, label_fn=lambda row: row.client_name),
    GroupLevel(key_fn=lambda row: row.system_id, label_fn=lambda row: row.system_name),
    GroupLevel(key_fn=lambda row: row.entry.project_id, label_fn=lambda row: row.project_name),
)


def build_executive_report(rows: list[EntryRow], filters: ExecutiveFilters) -> ExecutiveReport:
    """Client → System → Project tree with per-status leaf rows."""

    selected = [row for row in rows if matches_executive_filters(row, filters)]
    tree = group_tree(selected, EXECUTIVE_LEVELS, minutes_fn=lambda row: row.duration_minutes)

    clients = [
        ExecutiveClientGroup(
            client_id=client_node.key,
            client_name=client_node.label,
            total_minutes=client_node.total_minutes,
            systems=[
                ExecutiveSystemGroup(
                    system_id=system_node.key,
                    system_name=system_node.label,
                    total_minutes=system_node.total_minutes,
                    projects=[_executive_project_group(project_node) for project_node in system_node.children],
                )
                for system_node in client_node.children
            ],
        )
        for client_node in tree
    ]

    return ExecutiveReport(
        filters=filters,
        clients=clients,
        grand_total_minutes=sum_minutes(selected),
        work_front_distribution=distribution(selected, lambda row: row.work_front),
        top_clients=distribution(selected, lambda row: row.client_name, limit=TOP_CLIENTS_LIMIT),
    )


# ---------- Manager report ----------
@dataclass(frozen=True, slots=True)
class ManagerProjectStat:
    project_id: UUID
    project_name: str
    project_code: str
    client_name: str
    system_name: str
    status: ProjectStatus
    approved_minutes: int
    pending_count: int
    consultant_count: int

    @property
    def approved_hours(self) -> Decimal:
        return minutes_to_hours(self.approved_minutes)


@dataclass(frozen=True, slots=True)
class ManagerReportStats:
    active_projects: int
    total_approved_minutes: int

    @property
    def total_approved_hours(self) -> Decimal:
        return minutes_to_hours(self.total_approved_minutes)

    @property
    def avg_hours_per_project(self) -> Decimal:
        return safe_div(self.total_approved_hours, self.active_projects)


@dataclass(slots=True)
class ManagerReport:
    manager_id: UUID
    manager_name: str
    year: int
    month: int
    projects: list[ManagerProjectStat] = field(default_factory=list)
    stats: ManagerReportStats = field(default_factory=lambda: ManagerReportStats(0, 0))

    @property
    def total_pending_count(self) -> int:
        return sum(project.pending_count for project in self.projects)

    @property
    def is_empty(self) -> bool:
        return not self.projects


def build_manager_report(
    *,
    manager: UserRecord,
    projects: list[ProjectRow],
    rows: list[EntryRow],
    year: int,
    month: int,
) -> ManagerReport:
    """Per-project approval stats for one manager within one calendar month."""

    start_date, end_date = month_bounds(year, month)
    project_ids = {row.project.id for row in projects}
    in_month = [
        row
        for row in rows
        if row.entry.project_id in project_ids and in_range(row.entry.date, start_date, end_date)
    ]
    rows_by_project = group_by(in_month, lambda row: row.entry.project_id)

    stats: list[ManagerProjectStat] = []
    for project_row in sorted(projects, key=lambda item: label_sort_key(item.project.nombre, item.project.id)):
        project_entries = rows_by_project.get(project_row.project.id, [])
        approved = [row for row in project_entries if row.status is TimeEntryStatus.APROBADO]
        stats.append(
            ManagerProjectStat(
                project_id=project_row.project.id,
                project_name=project_row.project.nombre,
                project_code=project_row.project.codigo,
                client_name=project_row.client_name,
                system_name=project_row.system_name,
                status=project_row.project.status,
                approved_minutes=sum_minutes(approved),
                pending_count=sum(1 for row in project_entries if row.status is TimeEntryStatus.PENDIENTE),
                consultant_count=len({row.entry.user_id for row in project_entries}),
            )
        )

    active_projects = sum(1 for row in projects if row.project.status is ProjectStatus.ACTIVO)
    return ManagerReport(
        manager_id=manager.id,
        manager_name=manager.full_name,
        year=year,
        month=month,
        projects=stats,
        stats=ManagerReportStats(
            active_projects=active_projects,
            total_approved_minutes=sum(stat.approved_minutes for stat in stats),
        ),
    )


@dataclass(frozen=True, slots=True)
class ManagerSelection:
    managers: list[UserRecord]
    selected_manager_id: UUID | None
    selector_enabled: bool


def resolve_manager_selection(viewer: UserRecord, managers: list[UserRecord]) -> ManagerSelection:
    """Which managers a viewer may pick and which one is preselected.

    A ``gerente`` is pinned to their own report. Other roles pick from the
    full list, defaulting to themselves when listed, else the first manager
    alphabetically.
    """

    if viewer.role is UserRole.GERENTE:
        return ManagerSelection(managers=[viewer], selected_manager_id=viewer.id, selector_enabled=False)

    ordered = sorted(managers, key=lambda user: label_sort_key(user.full_name, user.id))
    if not ordered:
        return ManagerSelection(managers=[], selected_manager_id=None, selector_enabled=True)
    if any(user.id == viewer.id for user in ordered):
        selected = viewer.id
    else:
        selected = ordered[0].id
    return ManagerSelection(managers=ordered, selected_manager_id=selected, selector_enabled=True)


# ---------- Project report ----------
@dataclass(frozen=True, slots=True)
class ProjectReportLine:
    entry_id: UUID
    date: date
    start_time: time
    end_time: time
    description: str
    duration_minutes: int

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.duration_minutes)


@dataclass(slots=True)
class ConsultantGroup:
    user_id: UUID
    consultant_name: str
    email: str
    total_minutes: int
    entries: list[ProjectReportLine]

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)


@dataclass(slots=True)
class ProjectReport:
    project_id: UUID
    project_name: str
    project_code: str
    client_name: str
    system_name: str
    manager_name: str
    start_date: date
    end_date: date
    consultants: list[ConsultantGroup] = field(default_factory=list)
    grand_total_minutes: int = 0

    @property
    def grand_total_hours(self) -> Decimal:
        return minutes_to_hours(self.grand_total_minutes)

    @property
    def distribution(self) -> list[DistributionSlice]:
        slices = [DistributionSlice(name=group.consultant_name, minutes=group.total_minutes) for group in self.consultants]
        slices.sort(key=lambda item: (-item.minutes, label_sort_key(item.name)))
        return slices

    @property
    def is_empty(self) -> bool:
        return not self.consultants


def _line_order(row: EntryRow) -> tuple[date, time, str]:
    return row.entry.date, row.entry.start_time, str(row.entry.id)


def build_project_report(
    project: ProjectRow,
    rows: list[EntryRow],
    *,
    start_date: date,
    end_date: date,
) -> ProjectReport:
    """Approved time per consultant on one project, entries by date ascending."""

    approved = [
        row
        for row in rows
        if row.entry.project_id == project.project.id
        and row.status is TimeEntryStatus.APROBADO
        and in_range(row.entry.date, start_date, end_date)
    ]
    by_consultant = sort_groups(
        group_by(approved, lambda row: row.entry.user_id),
        lambda user_id, members: label_sort_key(members[0].consultant_name, user_id),
    )

    consultants = [
        ConsultantGroup(
            user_id=user_id,
            consultant_name=members[0].consultant_name,
            email=members[0].consultant.email if members[0].consultant is not None else "",
            total_minutes=sum_minutes(members),
            entries=[
                ProjectReportLine(
                    entry_id=row.entry.id,
                    date=row.entry.date,
                    start_time=row.entry.start_time,
                    end_time=row.entry.end_time,
                    description=row.entry.description,
                    duration_minutes=row.duration_minutes,
                )
                for row in sorted(members, key=_line_order)
            ],
        )
        for user_id, members in by_consultant.items()
    ]

    return ProjectReport(
        project_id=project.project.id,
        project_name=project.project.nombre,
        project_code=project.project.codigo,
        client_name=project.client_name,
        system_name=project.system_name,
        manager_name=project.manager_name,
        start_date=start_date,
        end_date=end_date,
        consultants=consultants,
        grand_total_minutes=sum_minutes(approved),
    )


# ---------- Consultant monthly report ----------
@dataclass(frozen=True, slots=True)
class MonthlyReportLine:
    entry_id: UUID
    date: date
    project_name: str
    client_name: str
    system_name: str
    start_time: time
    end_time: time
    duration_minutes: int
    description: str
    status: TimeEntryStatus

    @property
    def hours(self) -> Decimal:
        return minutes_to_hours(self.duration_minutes)


@dataclass(slots=True)
class WeekGroup:
    iso_year: int
    week: int
    total_minutes: int
    entries: list[MonthlyReportLine]

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)


@dataclass(slots=True)
class MonthlyReport:
    user_id: UUID
    user_name: str
    year: int
    month: int
    weeks: list[WeekGroup] = field(default_factory=list)
    total_minutes: int = 0

    @property
    def total_hours(self) -> Decimal:
        return minutes_to_hours(self.total_minutes)

    @property
    def lines(self) -> list[MonthlyReportLine]:
        return [line for week in self.weeks for line in week.entries]

    @property
    def is_empty(self) -> bool:
        return not self.weeks


def build_monthly_report(
    user: UserRecord,
    rows: list[EntryRow],
    *,
    year: int,
    month: int,
    status: TimeEntryStatus | None = None,
) -> MonthlyReport:
    """One consultant's month grouped by ISO week with weekly subtotals."""

    start_date, end_date = month_bounds(year, month)
    selected = [
        row
        for row in rows
        if row.entry.user_id == user.id
        and in_range(row.entry.date, start_date, end_date)
        and (status is None or row.status is status)
    ]
    by_week = sort_groups(
        group_by(selected, lambda row: iso_week_key(row.entry.date)),
        lambda week_key, _members: week_key,
    )

    weeks = [
        WeekGroup(
            iso_year=week_key[0],
            week=week_key[1],
            total_minutes=sum_minutes(members),
            entries=[
                MonthlyReportLine(
                    entry_id=row.entry.id,
                    date=row.entry.date,
                    project_name=row.project_name,
                    client_name=row.client_name,
                    system_name=row.system_name,
                    start_time=row.entry.start_time,
                    end_time=row.entry.end_time,
                    duration_minutes=row.duration_minutes,
                    description=row.entry.description,
                    status=row.status,
                )
                for row in sorted(members, key=_line_order)
            ],
        )
        for week_key, members in by_week.items()
    ]

    return MonthlyReport(
        user_id=user.id,
        user_name=user.full_name,
        year=year,
        month=month,
        weeks=weeks,
        total_minutes=sum_minutes(selected),
    )
