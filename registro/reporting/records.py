"""Immutable row records consumed by the report builders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from uuid import UUID

from registro.models.entities import ProjectStatus, TimeEntryStatus, UserRole, WorkFront

MISSING_LABEL = "-"
UNKNOWN_LABEL = "Desconocido"
OTHER_BUCKET = WorkFront.OTRO.value


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: UUID
    email: str
    nombre: str | None = None
    apellido: str | None = None
    role: UserRole = UserRole.CONSULTOR
    activo: bool = True
    permissions: tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        parts = [part.strip() for part in (self.nombre, self.apellido) if part and part.strip()]
        if parts:
            return " ".join(parts)
        return self.email


@dataclass(frozen=True, slots=True)
class ClientRecord:
    id: UUID
    nombre: str
    codigo: str
    pais: str
    activo: bool = True


@dataclass(frozen=True, slots=True)
class SystemRecord:
    id: UUID
    nombre: str
    codigo: str
    descripcion: str | None = None
    activo: bool = True


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    id: UUID
    nombre: str
    codigo: str
    client_id: UUID | None
    manager_id: UUID | None = None
    system_id: UUID | None = None
    work_front: WorkFront | None = None
    status: ProjectStatus = ProjectStatus.ACTIVO


@dataclass(frozen=True, slots=True)
class TimeEntryRecord:
    id: UUID
    user_id: UUID
    project_id: UUID
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    description: str
    status: TimeEntryStatus
    processed_by: UUID | None = None
    processed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ProjectRow:
    """Project joined with its optional client, system and manager."""

    project: ProjectRecord
    client: ClientRecord | None = None
    system: SystemRecord | None = None
    manager: UserRecord | None = None

    @property
    def client_name(self) -> str:
        return self.client.nombre if self.client is not None else UNKNOWN_LABEL

    @property
    def system_name(self) -> str:
        return self.system.nombre if self.system is not None else MISSING_LABEL

    @property
    def manager_name(self) -> str:
        return self.manager.full_name if self.manager is not None else MISSING_LABEL

    @property
    def work_front(self) -> str:
        if self.project.work_front is None:
            return OTHER_BUCKET
        return self.project.work_front.value


@dataclass(frozen=True, slots=True)
class EntryRow:
    """Time entry joined with project metadata and consultant profile.

    Every join is optional; the name properties substitute placeholders so a
    row with a dangling reference still lands in exactly one group.
    """

    entry: TimeEntryRecord
    project: ProjectRecord | None = None
    client: ClientRecord | None = None
    system: SystemRecord | None = None
    manager: UserRecord | None = None
    consultant: UserRecord | None = None

    @property
    def duration_minutes(self) -> int:
        return self.entry.duration_minutes

    @property
    def status(self) -> TimeEntryStatus:
        return self.entry.status

    @property
    def project_name(self) -> str:
        return self.project.nombre if self.project is not None else UNKNOWN_LABEL

    @property
    def client_id(self) -> UUID | None:
        if self.client is not None:
            return self.client.id
        if self.project is not None:
            return self.project.client_id
        return None

    @property
    def client_name(self) -> str:
        return self.client.nombre if self.client is not None else UNKNOWN_LABEL

    @property
    def system_id(self) -> UUID | None:
        if self.system is not None:
            return self.system.id
        if self.project is not None:
            return self.project.system_id
        return None

    @property
    def system_name(self) -> str:
        return self.system.nombre if self.system is not None else MISSING_LABEL

    @property
    def manager_name(self) -> str:
        return self.manager.full_name if self.manager is not None else MISSING_LABEL

    @property
    def consultant_name(self) -> str:
        if self.consultant is None:
            return UNKNOWN_LABEL
        return self.consultant.full_name

    @property
    def work_front(self) -> str:
        if self.project is None or self.project.work_front is None:
            return OTHER_BUCKET
        return self.project.work_front.value
