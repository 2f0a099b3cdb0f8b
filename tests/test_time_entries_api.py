from __future__ import annotations

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from registro.models.entities import AuditLog, ProjectStatus, TimeEntry, TimeEntryStatus, User, UserRole
from registro.repositories.time_tracking_repository import TimeTrackingRepository
from tests.conftest import auth_headers, create_client, create_entry, create_project, create_user


def _setup(db: Session):
    manager = create_user(db, email="gerente@test.local", role=UserRole.GERENTE, nombre="Gina")
    other_manager = create_user(db, email="otro@test.local", role=UserRole.GERENTE, nombre="Oscar")
    consultant = create_user(db, email="ana@test.local", nombre="Ana")
    acme = create_client(db, nombre="Acme", codigo="ACM")
    project = create_project(db, nombre="Rollout", codigo="ROL-1", client=acme, manager=manager, consultants=(consultant,))
    return manager, other_manager, consultant, project


def test_create_time_entry_derives_duration(client: TestClient, db_session: Session) -> None:
    _, _, consultant, project = _setup(db_session)

    response = client.post(
        "/api/v1/time-entries",
        headers=auth_headers(consultant),
        json={
            "project_id": str(project.id),
            "fecha": "2024-03-04",
            "start_time": "09:15",
            "end_time": "11:00",
            "description": "Levantamiento",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["duration_minutes"] == 105
    assert body["hours"] == "1.75"
    assert body["status"] == "pendiente"

    listed = client.get("/api/v1/time-entries", headers=auth_headers(consultant), params={"year": 2024, "month": 3})
    assert [item["id"] for item in listed.json()] == [body["id"]]


def test_create_time_entry_rejects_invalid_ranges_and_projects(client: TestClient, db_session: Session) -> None:
    _, _, consultant, project = _setup(db_session)
    outsider = create_user(db_session, email="carla@test.local", nombre="Carla")
    payload = {
        "project_id": str(project.id),
        "fecha": "2024-03-04",
        "start_time": "11:00",
        "end_time": "11:00",
        "description": "Nada",
    }

    zero = client.post("/api/v1/time-entries", headers=auth_headers(consultant), json=payload)
    assert zero.status_code == 422

    not_assigned = client.post(
        "/api/v1/time-entries",
        headers=auth_headers(outsider),
        json={**payload, "end_time": "12:00"},
    )
    assert not_assigned.status_code == 403

    project.status = ProjectStatus.FINALIZADO
    db_session.commit()
    closed = client.post("/api/v1/time-entries", headers=auth_headers(consultant), json={**payload, "end_time": "12:00"})
    assert closed.status_code == 422


def test_manager_approves_and_rejects_pending_entries(client: TestClient, db_session: Session) -> None:
    manager, _, consultant, project = _setup(db_session)
    first = create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=60, status=TimeEntryStatus.PENDIENTE)
    second = create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 5), minutes=30, status=TimeEntryStatus.PENDIENTE)

    pending = client.get("/api/v1/time-entries/pending", headers=auth_headers(manager))
    assert pending.status_code == 200
    assert len(pending.json()) == 2

    missing_reason = client.post(
        "/api/v1/time-entries/decisions",
        headers=auth_headers(manager),
        json={"entry_ids": [str(second.id)], "action": "reject"},
    )
    assert missing_reason.status_code == 422

    approved = client.post(
        "/api/v1/time-entries/decisions",
        headers=auth_headers(manager),
        json={"entry_ids": [str(first.id)], "action": "approve"},
    )
    assert approved.status_code == 200
    assert approved.json()[0]["status"] == "aprobado"
    assert approved.json()[0]["processed_by"] == str(manager.id)

    rejected = client.post(
        "/api/v1/time-entries/decisions",
        headers=auth_headers(manager),
        json={"entry_ids": [str(second.id)], "action": "reject", "rejection_reason": "Fuera de alcance"},
    )
    assert rejected.status_code == 200
    db_session.expire_all()
    stored = db_session.get(TimeEntry, second.id)
    assert stored.status is TimeEntryStatus.RECHAZADO
    assert stored.rejection_reason == "Fuera de alcance"
    assert stored.processed_at is not None

    again = client.post(
        "/api/v1/time-entries/decisions",
        headers=auth_headers(manager),
        json={"entry_ids": [str(first.id)], "action": "approve"},
    )
    assert again.status_code == 409


def test_approval_scope_is_enforced(client: TestClient, db_session: Session) -> None:
    _, other_manager, consultant, project = _setup(db_session)
    entry = create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=60, status=TimeEntryStatus.PENDIENTE)
    body = {"entry_ids": [str(entry.id)], "action": "approve"}

    foreign_manager = client.post("/api/v1/time-entries/decisions", headers=auth_headers(other_manager), json=body)
    assert foreign_manager.status_code == 403

    as_consultant = client.post("/api/v1/time-entries/decisions", headers=auth_headers(consultant), json=body)
    assert as_consultant.status_code == 403

    director = create_user(db_session, email="director@test.local", role=UserRole.DIRECTOR)
    as_director = client.post("/api/v1/time-entries/decisions", headers=auth_headers(director), json=body)
    assert as_director.status_code == 200


def test_processing_writes_one_audit_log_per_entry(client: TestClient, db_session: Session) -> None:
    manager, _, consultant, project = _setup(db_session)
    first = create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=60, status=TimeEntryStatus.PENDIENTE)
    second = create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 5), minutes=30, status=TimeEntryStatus.PENDIENTE)

    response = client.post(
        "/api/v1/time-entries/decisions",
        headers=auth_headers(manager),
        json={"entry_ids": [str(first.id), str(second.id)], "action": "reject", "rejection_reason": "Duplicado"},
    )

    assert response.status_code == 200
    logs = db_session.query(AuditLog).all()
    assert len(logs) == 2
    assert {log.action_type for log in logs} == {"rejection"}
    assert {log.admin_id for log in logs} == {manager.id}
    assert {log.target_user_id for log in logs} == {consultant.id}
    assert sorted(log.details["time_entry_id"] for log in logs) == sorted([str(first.id), str(second.id)])
    assert all(
        log.details["previous_status"] == "pendiente" and log.details["new_status"] == "rechazado" for log in logs
    )


def test_audit_failure_is_logged_without_undoing_the_decision(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    manager, _, consultant, project = _setup(db_session)
    entry = create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=60, status=TimeEntryStatus.PENDIENTE)

    def failing_add(self: TimeTrackingRepository, logs: object) -> None:
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(TimeTrackingRepository, "add_audit_logs", failing_add)

    with caplog.at_level("ERROR", logger="registro"):
        response = client.post(
            "/api/v1/time-entries/decisions",
            headers=auth_headers(manager),
            json={"entry_ids": [str(entry.id)], "action": "approve"},
        )

    assert response.status_code == 200
    assert response.json()[0]["status"] == "aprobado"
    assert "Failed to write audit logs" in caplog.text
    db_session.expire_all()
    assert db_session.get(TimeEntry, entry.id).status is TimeEntryStatus.APROBADO
    assert db_session.query(AuditLog).count() == 0


def _processed(db: Session, entry: TimeEntry, *, by: User, at: datetime) -> TimeEntry:
    entry.processed_by = by.id
    entry.processed_at = at
    db.commit()
    db.refresh(entry)
    return entry


def test_history_lists_processed_entries_newest_first(client: TestClient, db_session: Session) -> None:
    manager, other_manager, consultant, project = _setup(db_session)
    beta = create_client(db_session, nombre="Beta", codigo="BET")
    foreign = create_project(db_session, nombre="Soporte", codigo="SUP-1", client=beta, manager=other_manager, consultants=(consultant,))

    approved = _processed(
        db_session,
        create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=60),
        by=manager,
        at=datetime(2024, 3, 10, 12, 0),
    )
    rejected = _processed(
        db_session,
        create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 5), minutes=30, status=TimeEntryStatus.RECHAZADO),
        by=manager,
        at=datetime(2024, 3, 12, 9, 0),
    )
    create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 6), minutes=45, status=TimeEntryStatus.PENDIENTE)
    _processed(
        db_session,
        create_entry(db_session, user=consultant, project=foreign, fecha=date(2024, 3, 7), minutes=15),
        by=other_manager,
        at=datetime(2024, 3, 15, 8, 0),
    )

    own = client.get("/api/v1/time-entries/history", headers=auth_headers(manager))
    assert own.status_code == 200
    body = own.json()
    assert [item["id"] for item in body] == [str(rejected.id), str(approved.id)]
    assert body[0]["processed_by_name"] == "Gina"
    assert body[0]["user_name"] == "Ana"
    assert body[0]["client_name"] == "Acme"
    assert body[0]["system_name"] == "-"

    only_approved = client.get("/api/v1/time-entries/history", headers=auth_headers(manager), params={"status": "aprobado"})
    assert [item["id"] for item in only_approved.json()] == [str(approved.id)]

    in_range = client.get(
        "/api/v1/time-entries/history",
        headers=auth_headers(manager),
        params={"start_date": "2024-03-05", "end_date": "2024-03-31"},
    )
    assert [item["id"] for item in in_range.json()] == [str(rejected.id)]

    director = create_user(db_session, email="director@test.local", role=UserRole.DIRECTOR)
    everything = client.get("/api/v1/time-entries/history", headers=auth_headers(director))
    assert len(everything.json()) == 3
    assert everything.json()[0]["processed_by_name"] == "Oscar"

    by_client = client.get(
        "/api/v1/time-entries/history",
        headers=auth_headers(director),
        params={"client_id": str(beta.id), "consultant_id": str(consultant.id)},
    )
    assert [item["project_name"] for item in by_client.json()] == ["Soporte"]


def test_history_rejects_pending_filter_and_consultants(client: TestClient, db_session: Session) -> None:
    manager, _, consultant, _ = _setup(db_session)

    pending = client.get("/api/v1/time-entries/history", headers=auth_headers(manager), params={"status": "pendiente"})
    assert pending.status_code == 422

    as_consultant = client.get("/api/v1/time-entries/history", headers=auth_headers(consultant))
    assert as_consultant.status_code == 403
