from __future__ import annotations

import uuid

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from registro.core.auth import (
    ORGANISATION_ROLES,
    REPORTING_ROLES,
    RequestUserContext,
    ensure_role,
    has_role,
)
from registro.core.config import get_settings
from registro.models.entities import User, UserRole
from tests.conftest import auth_headers, create_user


def _context(role: UserRole, **overrides: object) -> RequestUserContext:
    values: dict[str, object] = {
        "user_id": uuid.uuid4(),
        "email": "user@test.local",
        "nombre": None,
        "apellido": None,
        "role": role,
        "activo": True,
    }
    values.update(overrides)
    return RequestUserContext(**values)


def test_has_role_matches_expected_roles() -> None:
    manager = _context(UserRole.GERENTE)

    assert has_role(manager, REPORTING_ROLES) is True
    assert has_role(manager, ORGANISATION_ROLES) is False
    assert manager.sees_whole_organisation is False
    assert _context(UserRole.DIRECTOR).sees_whole_organisation is True


def test_ensure_role_raises_forbidden() -> None:
    with pytest.raises(HTTPException) as excinfo:
        ensure_role(_context(UserRole.CONSULTOR), REPORTING_ROLES)

    assert excinfo.value.status_code == 403


def test_display_name_falls_back_to_email() -> None:
    assert _context(UserRole.CONSULTOR).display_name == "user@test.local"
    assert _context(UserRole.CONSULTOR, nombre="Ana", apellido="Diaz").display_name == "Ana Diaz"


def test_me_resolves_user_from_identity_header(client: TestClient, db_session: Session) -> None:
    user = create_user(db_session, email="ana@test.local", nombre="Ana", role=UserRole.GERENTE)

    response = client.get("/api/v1/me", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["role"] == "gerente"
    assert response.json()["display_name"] == "Ana"


def test_identity_header_errors(client: TestClient, db_session: Session) -> None:
    malformed = client.get("/api/v1/me", headers={"X-User-Id": "not-a-uuid"})
    assert malformed.status_code == 401

    unknown = client.get("/api/v1/me", headers=auth_headers(uuid.uuid4()))
    assert unknown.status_code == 401


def test_missing_header_falls_back_to_dev_principal(client: TestClient, db_session: Session) -> None:
    response = client.get("/api/v1/me")

    assert response.status_code == 200
    assert response.json()["id"] == get_settings().auth_dev_user_id
    assert response.json()["role"] == "admin"
    assert db_session.query(User).count() == 1

    again = client.get("/api/v1/me")
    assert again.json()["id"] == response.json()["id"]
    assert db_session.query(User).count() == 1
