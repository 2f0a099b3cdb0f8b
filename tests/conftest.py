from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date, datetime, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from registro.db.base import Base
from registro.db.dependencies import get_db_session
import registro.models.entities  # noqa: F401
from registro.main import create_app
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

TEST_TABLES = [
    User.__table__,
    Client.__table__,
    System.__table__,
    Project.__table__,
    ProjectAssignment.__table__,
    TimeEntry.__table__,
    AuditLog.__table__,
]


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=TEST_TABLES)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user: User | uuid.UUID) -> dict[str, str]:
    user_id = user.id if isinstance(user, User) else user
    return {"X-User-Id": str(user_id)}


def create_user(
    db: Session,
    *,
    email: str,
    role: UserRole = UserRole.CONSULTOR,
    nombre: str | None = None,
    apellido: str | None = None,
    activo: bool = True,
) -> User:
    now = datetime.utcnow()
    user = User(
        email=email,
        nombre=nombre,
        apellido=apellido,
        role=role,
        activo=activo,
        permissions=[],
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_client(db: Session, *, nombre: str, codigo: str, pais: str = "CL") -> Client:
    row = Client(nombre=nombre, codigo=codigo, pais=pais, activo=True)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def create_system(db: Session, *, nombre: str, codigo: str) -> System:
    row = System(nombre=nombre, codigo=codigo, activo=True)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def create_project(
    db: Session,
    *,
    nombre: str,
    codigo: str,
    client: Client,
    manager: User | None = None,
    system: System | None = None,
    work_front: WorkFront | None = None,
    status: ProjectStatus = ProjectStatus.ACTIVO,
    consultants: tuple[User, ...] = (),
) -> Project:
    project = Project(
        nombre=nombre,
        codigo=codigo,
        client_id=client.id,
        gerente_id=manager.id if manager is not None else None,
        system_id=system.id if system is not None else None,
        work_front=work_front,
        status=status,
        created_at=datetime.utcnow(),
    )
    db.add(project)
    db.flush()
    for consultant in consultants:
        db.add(ProjectAssignment(project_id=project.id, user_id=consultant.id))
    db.commit()
    db.refresh(project)
    return project


def create_entry(
    db: Session,
    *,
    user: User,
    project: Project,
    fecha: date,
    minutes: int,
    status: TimeEntryStatus = TimeEntryStatus.APROBADO,
    start: time = time(9, 0),
    description: str = "Trabajo",
) -> TimeEntry:
    start_minutes = start.hour * 60 + start.minute
    end_minutes = start_minutes + minutes
    now = datetime.utcnow()
    entry = TimeEntry(
        user_id=user.id,
        project_id=project.id,
        fecha=fecha,
        start_time=start,
        end_time=time(end_minutes // 60, end_minutes % 60),
        duration_minutes=minutes,
        description=description,
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry
