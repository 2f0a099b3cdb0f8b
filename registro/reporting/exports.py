"""Shape report models into exportable tables and download filenames.

Hour values are formatted here, with the export decimal separator, so the
CSV writer stays format-agnostic.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date

from registro.reporting.builders import (
    ExecutiveReport,
    ManagerReport,
    MonthlyReport,
    ProjectReport,
)
from registro.reporting.csv_writer import CsvTable
from registro.reporting.durations import format_duration_clock, format_hours

DEFAULT_DECIMAL_SEPARATOR = ","
ALL_LABEL = "Todos"


def _slug(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "sin-nombre"


def export_filename(scope: str, identifier: str, period: str, *, extension: str = "csv") -> str:
    """``reporte-<scope>-<identifier>-<date-or-period>.<extension>``."""

    return f"reporte-{_slug(scope)}-{_slug(identifier)}-{period}.{extension}"


def date_range_label(start_date: date, end_date: date) -> str:
    return f"{start_date.isoformat()}_{end_date.isoformat()}"


def month_label(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def executive_report_table(
    report: ExecutiveReport,
    *,
    client_names: list[str] | None = None,
    system_names: list[str] | None = None,
    decimal_separator: str = DEFAULT_DECIMAL_SEPARATOR,
) -> CsvTable:
    filters = report.filters
    metadata = [
        ["Reporte Ejecutivo"],
        ["Periodo", f"{filters.start_date.isoformat()} - {filters.end_date.isoformat()}"],
        ["Clientes", ", ".join(client_names) if client_names else ALL_LABEL],
        ["Sistemas", ", ".join(system_names) if system_names else ALL_LABEL],
        ["Frente de trabajo", filters.work_front or ALL_LABEL],
    ]
    header = [
        "Cliente",
        "Sistema",
        "Proyecto",
        "Código",
        "Gerente",
        "Frente de trabajo",
        "Estado",
        "Horas",
        "Consultores",
    ]
    rows = [
        [
            item.client_name,
            item.system_name,
            item.project_name,
            item.project_code,
            item.manager_name,
            item.work_front,
            item.status.value,
            format_hours(item.total_hours, decimal_separator),
            item.unique_consultants,
        ]
        for item in report.items
    ]
    totals = ["Total General", "", "", "", "", "", "", format_hours(report.grand_total_hours, decimal_separator), ""]
    return CsvTable(header=header, rows=rows, metadata=metadata, totals=totals)


def manager_report_table(
    report: ManagerReport,
    *,
    decimal_separator: str = DEFAULT_DECIMAL_SEPARATOR,
) -> CsvTable:
    stats = report.stats
    metadata = [
        ["Reporte de Gerente"],
        ["Gerente", report.manager_name],
        ["Periodo", month_label(report.year, report.month)],
        ["Proyectos activos", stats.active_projects],
        ["Promedio horas por proyecto", format_hours(stats.avg_hours_per_project, decimal_separator)],
    ]
    header = [
        "Proyecto",
        "Código",
        "Cliente",
        "Sistema",
        "Estado",
        "Horas aprobadas",
        "Registros pendientes",
        "Consultores",
    ]
    rows = [
        [
            project.project_name,
            project.project_code,
            project.client_name,
            project.system_name,
            project.status.value,
            format_hours(project.approved_hours, decimal_separator),
            project.pending_count,
            project.consultant_count,
        ]
        for project in report.projects
    ]
    # Total hours come from summed raw minutes, never from the formatted rows.
    totals = [
        "Total",
        "",
        "",
        "",
        "",
        format_hours(stats.total_approved_hours, decimal_separator),
        report.total_pending_count,
        "",
    ]
    return CsvTable(header=header, rows=rows, metadata=metadata, totals=totals)


def project_report_table(
    report: ProjectReport,
    *,
    decimal_separator: str = DEFAULT_DECIMAL_SEPARATOR,
) -> CsvTable:
    metadata = [
        ["Reporte de Proyecto"],
        ["Proyecto", f"{report.project_name} ({report.project_code})"],
        ["Cliente", report.client_name],
        ["Sistema", report.system_name],
        ["Gerente", report.manager_name],
        ["Periodo", f"{report.start_date.isoformat()} - {report.end_date.isoformat()}"],
    ]
    header = ["Consultor", "Fecha", "Hora inicio", "Hora fin", "Descripción", "Horas"]
    rows: list[list[object]] = []
    for group in report.consultants:
        for line in group.entries:
            rows.append(
                [
                    group.consultant_name,
                    line.date.isoformat(),
                    line.start_time.strftime("%H:%M"),
                    line.end_time.strftime("%H:%M"),
                    line.description,
                    format_hours(line.hours, decimal_separator),
                ]
            )
        rows.append([f"Subtotal {group.consultant_name}", "", "", "", "", format_hours(group.total_hours, decimal_separator)])
    totals = ["Total General", "", "", "", "", format_hours(report.grand_total_hours, decimal_separator)]
    return CsvTable(header=header, rows=rows, metadata=metadata, totals=totals)


def monthly_report_table(
    report: MonthlyReport,
    *,
    decimal_separator: str = DEFAULT_DECIMAL_SEPARATOR,
) -> CsvTable:
    metadata = [
        ["Registro de Tiempos"],
        ["Consultor", report.user_name],
        ["Periodo", month_label(report.year, report.month)],
    ]
    header = [
        "Fecha",
        "Proyecto",
        "Cliente",
        "Sistema",
        "Hora Inicio",
        "Hora Fin",
        "Duración",
        "Horas",
        "Descripción",
        "Estado",
    ]
    rows = [
        [
            line.date.isoformat(),
            line.project_name,
            line.client_name,
            line.system_name,
            line.start_time.strftime("%H:%M"),
            line.end_time.strftime("%H:%M"),
            format_duration_clock(line.duration_minutes),
            format_hours(line.hours, decimal_separator),
            line.description,
            line.status.value,
        ]
        for line in report.lines
    ]
    totals = [
        "Total Acumulado",
        "",
        "",
        "",
        "",
        "",
        format_duration_clock(report.total_minutes),
        format_hours(report.total_hours, decimal_separator),
        "",
        "",
    ]
    return CsvTable(header=header, rows=rows, metadata=metadata, totals=totals)
