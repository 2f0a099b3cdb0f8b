from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from registro.models.entities import TimeEntryStatus, UserRole
from tests.conftest import auth_headers, create_client, create_entry, create_project, create_user


def test_consultant_dashboard_for_own_month(client: TestClient, db_session: Session) -> None:
    consultant = create_user(db_session, email="ana@test.local", nombre="Ana")
    acme = create_client(db_session, nombre="Acme", codigo="ACM")
    project = create_project(db_session, nombre="Rollout", codigo="ROL-1", client=acme, consultants=(consultant,))
    create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=90)
    create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 5), minutes=30, status=TimeEntryStatus.PENDIENTE)

    response = client.get("/api/v1/dashboards/consultant", headers=auth_headers(consultant), params={"year": 2024, "month": 3})

    assert response.status_code == 200
    body = response.json()
    assert body["kpis"]["registered_hours"] == "2.00"
    assert body["kpis"]["approved_hours"] == "1.50"
    assert body["kpis"]["approval_rate"] == "75.00"
    assert len(body["daily_trend"]) == 31
    assert body["last_entries"][0]["date"] == "2024-03-05"

    other = create_user(db_session, email="bruno@test.local")
    peeking = client.get(
        "/api/v1/dashboards/consultant",
        headers=auth_headers(other),
        params={"year": 2024, "month": 3, "user_id": str(consultant.id)},
    )
    assert peeking.status_code == 403


def test_manager_and_director_dashboards(client: TestClient, db_session: Session) -> None:
    director = create_user(db_session, email="director@test.local", role=UserRole.DIRECTOR)
    manager = create_user(db_session, email="gerente@test.local", role=UserRole.GERENTE, nombre="Gina")
    consultant = create_user(db_session, email="ana@test.local", nombre="Ana")
    acme = create_client(db_session, nombre="Acme", codigo="ACM")
    project = create_project(db_session, nombre="Rollout", codigo="ROL-1", client=acme, manager=manager, consultants=(consultant,))
    create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 4), minutes=120)
    create_entry(db_session, user=consultant, project=project, fecha=date(2024, 3, 5), minutes=60, status=TimeEntryStatus.PENDIENTE)
    window = {"start_date": "2024-03-01", "end_date": "2024-03-31"}

    manager_view = client.get("/api/v1/dashboards/manager", headers=auth_headers(manager), params=window)
    assert manager_view.status_code == 200
    body = manager_view.json()
    assert body["assigned_projects"] == 1
    assert body["pending_approvals"] == 1
    assert body["top_consultants"][0]["name"] == "Ana"
    assert body["top_consultants"][0]["percentage"] == "100.00"

    director_view = client.get("/api/v1/dashboards/director", headers=auth_headers(director), params=window)
    assert director_view.status_code == 200
    director_body = director_view.json()
    assert director_body["active_projects"] == 1
    assert director_body["total_hours"] == "3.00"
    assert director_body["by_client"] == [{"name": "Acme", "minutes": 120, "hours": "2.00"}]
    assert director_body["utilization"] == "1.25"

    forbidden = client.get("/api/v1/dashboards/director", headers=auth_headers(manager), params=window)
    assert forbidden.status_code == 403


def test_consultant_dashboard_follows_report_user_scope(client: TestClient, db_session: Session) -> None:
    manager = create_user(db_session, email="gerente@test.local", role=UserRole.GERENTE, nombre="Gina")
    assigned = create_user(db_session, email="ana@test.local", nombre="Ana")
    stranger = create_user(db_session, email="carla@test.local", nombre="Carla")
    acme = create_client(db_session, nombre="Acme", codigo="ACM")
    create_project(db_session, nombre="Rollout", codigo="ROL-1", client=acme, manager=manager, consultants=(assigned,))
    params = {"year": 2024, "month": 3}

    own_team = client.get(
        "/api/v1/dashboards/consultant",
        headers=auth_headers(manager),
        params={**params, "user_id": str(assigned.id)},
    )
    assert own_team.status_code == 200

    outside_team = client.get(
        "/api/v1/dashboards/consultant",
        headers=auth_headers(manager),
        params={**params, "user_id": str(stranger.id)},
    )
    assert outside_team.status_code == 403

    monthly = client.get(
        f"/api/v1/reports/users/{stranger.id}/monthly",
        headers=auth_headers(manager),
        params=params,
    )
    assert monthly.status_code == outside_team.status_code


def test_dashboard_window_fills_the_missing_bound(client: TestClient, db_session: Session) -> None:
    director = create_user(db_session, email="director@test.local", role=UserRole.DIRECTOR)

    only_end = client.get("/api/v1/dashboards/director", headers=auth_headers(director), params={"end_date": "2024-03-31"})
    assert only_end.status_code == 200
    assert (only_end.json()["start_date"], only_end.json()["end_date"]) == ("2024-03-01", "2024-03-31")

    only_start = client.get(
        "/api/v1/dashboards/director",
        headers=auth_headers(director),
        params={"start_date": "2024-03-01"},
    )
    assert only_start.status_code == 200
    assert (only_start.json()["start_date"], only_start.json()["end_date"]) == ("2024-03-01", "2024-03-31")

    manager = create_user(db_session, email="gerente@test.local", role=UserRole.GERENTE)
    manager_view = client.get("/api/v1/dashboards/manager", headers=auth_headers(manager), params={"end_date": "2024-01-15"})
    assert manager_view.status_code == 200
    assert manager_view.json()["start_date"] == "2023-12-16"
