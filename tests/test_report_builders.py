from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal

from registro.models.entities import ProjectStatus, TimeEntryStatus, UserRole, WorkFront
from registro.reporting.builders import (
    ExecutiveFilters,
    build_executive_report,
    build_manager_report,
    build_monthly_report,
    build_project_report,
    month_bounds,
    resolve_manager_selection,
)
from registro.reporting.durations import format_hours
from registro.reporting.records import (
    MISSING_LABEL,
    UNKNOWN_LABEL,
    ClientRecord,
    EntryRow,
    ProjectRecord,
    ProjectRow,
    SystemRecord,
    TimeEntryRecord,
    UserRecord,
)

ACME = ClientRecord(id=uuid.uuid4(), nombre="Acme", codigo="ACM", pais="CL")
BETA = ClientRecord(id=uuid.uuid4(), nombre="Beta", codigo="BET", pais="PE")
IBP = SystemRecord(id=uuid.uuid4(), nombre="SAP IBP", codigo="IBP")
MANAGER = UserRecord(id=uuid.uuid4(), email="gerente@test.local", nombre="Gina", apellido="Rojas", role=UserRole.GERENTE)
ANA = UserRecord(id=uuid.uuid4(), email="ana@test.local", nombre="Ana", apellido="Diaz")
BRUNO = UserRecord(id=uuid.uuid4(), email="bruno@test.local", nombre="Bruno", apellido="Lopez")


def _project(
    nombre: str,
    client: ClientRecord = ACME,
    *,
    work_front: WorkFront | None = WorkFront.SAP_IBP,
    status: ProjectStatus = ProjectStatus.ACTIVO,
) -> ProjectRecord:
    return ProjectRecord(
        id=uuid.uuid4(),
        nombre=nombre,
        codigo=nombre.upper()[:6],
        client_id=client.id,
        manager_id=MANAGER.id,
        system_id=IBP.id,
        work_front=work_front,
        status=status,
    )


def _row(
    project: ProjectRecord,
    consultant: UserRecord,
    day: date,
    minutes: int,
    status: TimeEntryStatus = TimeEntryStatus.APROBADO,
    *,
    client: ClientRecord | None = ACME,
    start: time = time(9, 0),
) -> EntryRow:
    end_minutes = start.hour * 60 + start.minute + minutes
    return EntryRow(
        entry=TimeEntryRecord(
            id=uuid.uuid4(),
            user_id=consultant.id,
            project_id=project.id,
            date=day,
            start_time=start,
            end_time=time(end_minutes // 60, end_minutes % 60),
            duration_minutes=minutes,
            description=f"{consultant.nombre} {minutes}",
            status=status,
        ),
        project=project,
        client=client,
        system=IBP,
        manager=MANAGER,
        consultant=consultant,
    )


def _filters(**overrides: object) -> ExecutiveFilters:
    values: dict[str, object] = {"start_date": date(2024, 3, 1), "end_date": date(2024, 3, 31)}
    values.update(overrides)
    return ExecutiveFilters(**values)


def test_project_report_sums_raw_minutes_of_approved_entries() -> None:
    project = _project("Rollout")
    rows = [
        _row(project, ANA, date(2024, 3, 4), 120),
        _row(project, BRUNO, date(2024, 3, 5), 90),
        _row(project, ANA, date(2024, 3, 2), 30, start=time(14, 0)),
        _row(project, ANA, date(2024, 3, 6), 60, TimeEntryStatus.PENDIENTE),
    ]

    report = build_project_report(
        ProjectRow(project=project, client=ACME, system=IBP, manager=MANAGER),
        rows,
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
    )

    assert report.grand_total_minutes == 240
    assert format_hours(report.grand_total_hours) == "4.00"
    assert [group.consultant_name for group in report.consultants] == ["Ana Diaz", "Bruno Lopez"]
    ana = report.consultants[0]
    assert ana.total_minutes == 150
    assert [line.date for line in ana.entries] == [date(2024, 3, 2), date(2024, 3, 4)]
    assert report.manager_name == "Gina Rojas"
    assert [(item.name, item.minutes) for item in report.distribution] == [("Ana Diaz", 150), ("Bruno Lopez", 90)]


def test_manager_report_without_active_projects_averages_to_zero() -> None:
    closed = _project("Closed", status=ProjectStatus.FINALIZADO)
    rows = [_row(closed, ANA, date(2024, 3, 4), 120)]

    report = build_manager_report(
        manager=MANAGER,
        projects=[ProjectRow(project=closed, client=ACME, system=IBP, manager=MANAGER)],
        rows=rows,
        year=2024,
        month=3,
    )

    assert report.stats.active_projects == 0
    assert report.stats.avg_hours_per_project == Decimal("0.00")
    assert report.stats.total_approved_minutes == 120


def test_manager_report_counts_pending_and_consultants_per_project() -> None:
    alpha = _project("Alpha")
    beta = _project("Beta")
    rows = [
        _row(alpha, ANA, date(2024, 3, 4), 20),
        _row(alpha, ANA, date(2024, 3, 5), 20),
        _row(alpha, BRUNO, date(2024, 3, 6), 20),
        _row(alpha, BRUNO, date(2024, 3, 7), 45, TimeEntryStatus.PENDIENTE),
        _row(beta, ANA, date(2024, 2, 28), 600),
    ]

    report = build_manager_report(
        manager=MANAGER,
        projects=[
            ProjectRow(project=beta, client=ACME, system=IBP, manager=MANAGER),
            ProjectRow(project=alpha, client=ACME, system=IBP, manager=MANAGER),
        ],
        rows=rows,
        year=2024,
        month=3,
    )

    assert [project.project_name for project in report.projects] == ["Alpha", "Beta"]
    alpha_stat, beta_stat = report.projects
    assert alpha_stat.approved_minutes == 60
    assert alpha_stat.pending_count == 1
    assert alpha_stat.consultant_count == 2
    assert beta_stat.approved_minutes == 0
    assert report.stats.total_approved_hours == Decimal("1")
    assert report.stats.avg_hours_per_project == Decimal("0.5")
    assert report.total_pending_count == 1


def test_executive_report_for_client_without_matches_is_empty() -> None:
    project = _project("Rollout")
    rows = [_row(project, ANA, date(2024, 3, 4), 120)]

    report = build_executive_report(rows, _filters(client_ids=frozenset({BETA.id})))

    assert report.clients == []
    assert report.is_empty
    assert format_hours(report.grand_total_hours) == "0.00"


def test_executive_report_buckets_missing_work_front_as_other() -> None:
    tagged = _project("Tagged", work_front=WorkFront.SAP_IBP)
    untagged = _project("Untagged", work_front=None)
    rows = [
        _row(tagged, ANA, date(2024, 3, 4), 60),
        _row(untagged, ANA, date(2024, 3, 4), 30),
        _row(untagged, BRUNO, date(2024, 3, 5), 45),
    ]

    report = build_executive_report(rows, _filters())

    buckets = {item.name: item.minutes for item in report.work_front_distribution}
    assert buckets == {"SAP IBP": 60, "Otro": 75}

    filtered = build_executive_report(rows, _filters(work_front="Otro"))
    assert filtered.grand_total_minutes == 75


def test_executive_report_tree_and_totals_match_selected_entries() -> None:
    first = _project("Alpha")
    second = _project("Gamma", BETA)
    rows = [
        _row(first, ANA, date(2024, 3, 4), 60),
        _row(first, BRUNO, date(2024, 3, 5), 30, TimeEntryStatus.PENDIENTE),
        _row(second, ANA, date(2024, 3, 6), 90, client=BETA),
        _row(second, ANA, date(2024, 4, 1), 500, client=BETA),
    ]

    report = build_executive_report(rows, _filters())

    assert [client.client_name for client in report.clients] == ["Acme", "Beta"]
    assert report.grand_total_minutes == 180
    assert sum(client.total_minutes for client in report.clients) == report.grand_total_minutes
    assert sum(item.total_minutes for item in report.items) == report.grand_total_minutes

    alpha = report.clients[0].systems[0].projects[0]
    assert alpha.unique_consultants == 2
    assert [(item.status, item.total_minutes) for item in alpha.items] == [
        (TimeEntryStatus.PENDIENTE, 30),
        (TimeEntryStatus.APROBADO, 60),
    ]
    assert [item.name for item in report.top_clients] == ["Acme", "Beta"]


def test_executive_report_substitutes_placeholders_for_missing_joins() -> None:
    project = _project("Orphan")
    row = _row(project, ANA, date(2024, 3, 4), 60, client=None)
    row = EntryRow(entry=row.entry, project=project, consultant=None)

    report = build_executive_report([row], _filters())

    item = report.items[0]
    assert item.client_name == UNKNOWN_LABEL
    assert item.system_name == MISSING_LABEL
    assert item.manager_name == MISSING_LABEL
    assert report.grand_total_minutes == 60


def test_executive_report_is_idempotent() -> None:
    project = _project("Alpha")
    rows = [_row(project, ANA, date(2024, 3, 4), 60), _row(project, BRUNO, date(2024, 3, 5), 30)]

    assert build_executive_report(rows, _filters()) == build_executive_report(rows, _filters())


def test_monthly_report_groups_by_iso_week_with_subtotals() -> None:
    project = _project("Alpha")
    rows = [
        _row(project, ANA, date(2024, 12, 30), 60),
        _row(project, ANA, date(2024, 12, 2), 30, TimeEntryStatus.PENDIENTE),
        _row(project, ANA, date(2024, 12, 3), 45),
        _row(project, BRUNO, date(2024, 12, 3), 600),
        _row(project, ANA, date(2025, 1, 2), 600),
    ]

    report = build_monthly_report(ANA, rows, year=2024, month=12)

    assert [(week.iso_year, week.week) for week in report.weeks] == [(2024, 49), (2025, 1)]
    assert [week.total_minutes for week in report.weeks] == [75, 60]
    assert report.total_minutes == 135
    assert [line.date for line in report.lines] == [date(2024, 12, 2), date(2024, 12, 3), date(2024, 12, 30)]

    approved_only = build_monthly_report(ANA, rows, year=2024, month=12, status=TimeEntryStatus.APROBADO)
    assert approved_only.total_minutes == 105


def test_builders_return_renderable_models_for_empty_input() -> None:
    project = _project("Empty")

    assert build_executive_report([], _filters()).is_empty
    assert build_monthly_report(ANA, [], year=2024, month=2).total_minutes == 0
    assert build_project_report(
        ProjectRow(project=project),
        [],
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
    ).is_empty
    manager_report = build_manager_report(manager=MANAGER, projects=[], rows=[], year=2024, month=3)
    assert manager_report.is_empty
    assert manager_report.stats.avg_hours_per_project == Decimal("0.00")


def test_month_bounds_handles_leap_years() -> None:
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))


def test_manager_selection_pins_gerente_and_defaults_for_others() -> None:
    other = UserRecord(id=uuid.uuid4(), email="zeta@test.local", nombre="Zeta", role=UserRole.GERENTE)
    director = UserRecord(id=uuid.uuid4(), email="dir@test.local", nombre="Dora", role=UserRole.DIRECTOR)

    pinned = resolve_manager_selection(MANAGER, [other, MANAGER])
    assert pinned.selected_manager_id == MANAGER.id
    assert pinned.selector_enabled is False

    chosen = resolve_manager_selection(director, [other, MANAGER])
    assert [manager.id for manager in chosen.managers] == [MANAGER.id, other.id]
    assert chosen.selected_manager_id == MANAGER.id
    assert chosen.selector_enabled is True
