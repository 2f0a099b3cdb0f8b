"""Repository returning report row records for the aggregation builders."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from registro.models.entities import (
    AuditLog,
    Client,
    Project,
    ProjectAssignment,
    ProjectStatus,
    System,
    TimeEntry,
    TimeEntryStatus,
    User,
    UserRole,
    WorkFront,
)
from registro.reporting.records import (
    ClientRecord,
    EntryRow,
    ProjectRecord,
    ProjectRow,
    SystemRecord,
    TimeEntryRecord,
    UserRecord,
)


def to_user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        nombre=user.nombre,
        apellido=user.apellido,
        role=user.role,
        activo=user.activo,
        permissions=tuple(user.permissions or ()),
    )


def to_client_record(client: Client) -> ClientRecord:
    return ClientRecord(id=client.id, nombre=client.nombre, codigo=client.codigo, pais=client.pais, activo=client.activo)


def to_system_record(system: System) -> SystemRecord:
    return SystemRecord(
        id=system.id,
        nombre=system.nombre,
        codigo=system.codigo,
        descripcion=system.descripcion,
        activo=system.activo,
    )


def to_project_record(project: Project) -> ProjectRecord:
    return ProjectRecord(
        id=project.id,
        nombre=project.nombre,
        codigo=project.codigo,
        client_id=project.client_id,
        manager_id=project.gerente_id,
        system_id=project.system_id,
        work_front=project.work_front,
        status=project.status,
    )


def to_time_entry_record(entry: TimeEntry) -> TimeEntryRecord:
    return TimeEntryRecord(
        id=entry.id,
        user_id=entry.user_id,
        project_id=entry.project_id,
        date=entry.fecha,
        start_time=entry.start_time,
        end_time=entry.end_time,
        duration_minutes=entry.duration_minutes,
        description=entry.description,
        status=entry.status,
        processed_by=entry.processed_by,
        processed_at=entry.processed_at,
    )


class TimeTrackingRepository:
    """Persistence operations feeding reports, dashboards and approvals."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Users ----------
    def get_user(self, user_id: UUID) -> User | None:
        return self.db.scalar(select(User).where(User.id == user_id))

    def get_user_by_email(self, email: str) -> User | None:
        return self.db.scalar(select(User).where(User.email == email))

    def add_user(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def list_active_users(self, user_ids: Iterable[UUID] | None = None) -> list[User]:
        stmt = select(User).where(User.activo.is_(True))
        if user_ids is not None:
            stmt = stmt.where(User.id.in_(list(user_ids)))
        return self.db.scalars(stmt.order_by(User.nombre.asc(), User.apellido.asc(), User.email.asc())).all()

    def list_users(self, user_ids: Iterable[UUID]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        return self.db.scalars(select(User).where(User.id.in_(ids))).all()

    def list_managers(self) -> list[User]:
        return self.db.scalars(
            select(User)
            .where(and_(User.role == UserRole.GERENTE, User.activo.is_(True)))
            .order_by(User.nombre.asc(), User.apellido.asc())
        ).all()

    def list_assigned_user_ids(self, project_ids: Iterable[UUID]) -> list[UUID]:
        ids = list(project_ids)
        if not ids:
            return []
        return self.db.scalars(
            select(ProjectAssignment.user_id).where(ProjectAssignment.project_id.in_(ids)).distinct()
        ).all()

    # ---------- Catalogs ----------
    def list_clients(self, client_ids: Iterable[UUID]) -> list[Client]:
        ids = list(client_ids)
        if not ids:
            return []
        return self.db.scalars(select(Client).where(Client.id.in_(ids)).order_by(Client.nombre.asc())).all()

    def list_systems(self, system_ids: Iterable[UUID]) -> list[System]:
        ids = list(system_ids)
        if not ids:
            return []
        return self.db.scalars(select(System).where(System.id.in_(ids)).order_by(System.nombre.asc())).all()

    # ---------- Projects ----------
    def get_project(self, project_id: UUID) -> Project | None:
        return self.db.scalar(select(Project).where(Project.id == project_id))

    def list_projects(
        self,
        *,
        client_ids: Iterable[UUID] | None = None,
        system_ids: Iterable[UUID] | None = None,
        work_front: WorkFront | None = None,
        manager_id: UUID | None = None,
    ) -> list[Project]:
        stmt = select(Project)
        if client_ids:
            stmt = stmt.where(Project.client_id.in_(list(client_ids)))
        if system_ids:
            stmt = stmt.where(Project.system_id.in_(list(system_ids)))
        if work_front is WorkFront.OTRO:
            stmt = stmt.where((Project.work_front == work_front) | Project.work_front.is_(None))
        elif work_front is not None:
            stmt = stmt.where(Project.work_front == work_front)
        if manager_id is not None:
            stmt = stmt.where(Project.gerente_id == manager_id)
        return self.db.scalars(stmt.order_by(Project.nombre.asc())).all()

    def count_active_projects(self) -> int:
        return int(
            self.db.scalar(select(func.count()).select_from(Project).where(Project.status == ProjectStatus.ACTIVO))
            or 0
        )

    def project_rows(self, projects: list[Project]) -> list[ProjectRow]:
        """Join projects with client, system and manager records."""

        clients, systems, users = self._catalog_maps(projects, user_ids=[])
        return [
            ProjectRow(
                project=to_project_record(project),
                client=clients.get(project.client_id),
                system=systems.get(project.system_id) if project.system_id else None,
                manager=users.get(project.gerente_id) if project.gerente_id else None,
            )
            for project in projects
        ]

    # ---------- Time entries ----------
    def list_time_entries_by_ids(self, entry_ids: Iterable[UUID]) -> list[TimeEntry]:
        ids = list(entry_ids)
        if not ids:
            return []
        return self.db.scalars(select(TimeEntry).where(TimeEntry.id.in_(ids))).all()

    def add_time_entry(self, entry: TimeEntry) -> TimeEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_time_entries(
        self,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        project_ids: Iterable[UUID] | None = None,
        user_ids: Iterable[UUID] | None = None,
        statuses: Iterable[TimeEntryStatus] | None = None,
        newest_first: bool = False,
        processed_first: bool = False,
        limit: int | None = None,
    ) -> list[TimeEntry]:
        """Entries within an inclusive calendar-day range."""

        stmt = select(TimeEntry)
        if start_date is not None:
            stmt = stmt.where(TimeEntry.fecha >= start_date)
        if end_date is not None:
            stmt = stmt.where(TimeEntry.fecha <= end_date)
        if project_ids is not None:
            stmt = stmt.where(TimeEntry.project_id.in_(list(project_ids)))
        if user_ids is not None:
            stmt = stmt.where(TimeEntry.user_id.in_(list(user_ids)))
        if statuses is not None:
            stmt = stmt.where(TimeEntry.status.in_(list(statuses)))
        if processed_first:
            stmt = stmt.order_by(TimeEntry.processed_at.desc(), TimeEntry.fecha.desc())
        elif newest_first:
            stmt = stmt.order_by(TimeEntry.fecha.desc(), TimeEntry.start_time.desc())
        else:
            stmt = stmt.order_by(TimeEntry.fecha.asc(), TimeEntry.start_time.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.db.scalars(stmt).all()

    def count_pending_entries(self, project_ids: Iterable[UUID] | None = None) -> int:
        stmt = select(func.count()).select_from(TimeEntry).where(TimeEntry.status == TimeEntryStatus.PENDIENTE)
        if project_ids is not None:
            stmt = stmt.where(TimeEntry.project_id.in_(list(project_ids)))
        return int(self.db.scalar(stmt) or 0)

    # ---------- Audit ----------
    def add_audit_logs(self, logs: Iterable[AuditLog]) -> None:
        self.db.add_all(list(logs))
        self.db.flush()

    def entry_rows(self, entries: list[TimeEntry]) -> list[EntryRow]:
        """Join entries with their project metadata and consultant profile."""

        project_ids = {entry.project_id for entry in entries}
        projects = (
            self.db.scalars(select(Project).where(Project.id.in_(project_ids))).all() if project_ids else []
        )
        project_map = {project.id: project for project in projects}
        clients, systems, users = self._catalog_maps(projects, user_ids=[entry.user_id for entry in entries])

        rows: list[EntryRow] = []
        for entry in entries:
            project = project_map.get(entry.project_id)
            rows.append(
                EntryRow(
                    entry=to_time_entry_record(entry),
                    project=to_project_record(project) if project is not None else None,
                    client=clients.get(project.client_id) if project is not None else None,
                    system=systems.get(project.system_id) if project is not None and project.system_id else None,
                    manager=users.get(project.gerente_id) if project is not None and project.gerente_id else None,
                    consultant=users.get(entry.user_id),
                )
            )
        return rows

    def _catalog_maps(
        self,
        projects: list[Project],
        *,
        user_ids: Iterable[UUID],
    ) -> tuple[dict[UUID, ClientRecord], dict[UUID, SystemRecord], dict[UUID, UserRecord]]:
        client_ids = {project.client_id for project in projects}
        system_ids = {project.system_id for project in projects if project.system_id is not None}
        wanted_users = set(user_ids) | {project.gerente_id for project in projects if project.gerente_id is not None}

        clients = {client.id: to_client_record(client) for client in self.list_clients(client_ids)}
        systems = {system.id: to_system_record(system) for system in self.list_systems(system_ids)}
        users: dict[UUID, UserRecord] = {}
        if wanted_users:
            users = {
                user.id: to_user_record(user)
                for user in self.db.scalars(select(User).where(User.id.in_(list(wanted_users)))).all()
            }
        return clients, systems, users
