"""Authentication context extraction and RBAC guard utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from registro.core.config import get_settings
from registro.db.dependencies import get_db_session
from registro.models.entities import User, UserRole
from registro.reporting.records import UserRecord

logger = logging.getLogger(__name__)

REPORTING_ROLES = {UserRole.ADMIN, UserRole.DIRECTOR, UserRole.GERENTE}
ORGANISATION_ROLES = {UserRole.ADMIN, UserRole.DIRECTOR}
PROVISIONING_ROLES = {UserRole.ADMIN, UserRole.DIRECTOR}


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    email: str
    nombre: str | None
    apellido: str | None
    role: UserRole
    activo: bool
    permissions: tuple[str, ...] = ()

    @property
    def display_name(self) -> str:
        return self.as_record().full_name

    @property
    def sees_whole_organisation(self) -> bool:
        """Whether the actor may read every project and user."""

        return self.role in ORGANISATION_ROLES

    def as_record(self) -> UserRecord:
        return UserRecord(
            id=self.user_id,
            email=self.email,
            nombre=self.nombre,
            apellido=self.apellido,
            role=self.role,
            activo=self.activo,
            permissions=self.permissions,
        )


def _parse_user_id(raw: str) -> UUID:
    try:
        return UUID(raw.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header must be a valid UUID.",
        ) from exc


def _ensure_dev_principal(db: Session) -> User:
    settings = get_settings()
    user_id = _parse_user_id(settings.auth_dev_user_id)
    user = db.scalar(select(User).where(User.id == user_id))
    if user is None:
        now = datetime.utcnow()
        user = User(
            id=user_id,
            email=settings.auth_dev_email.strip().lower(),
            nombre="Dev",
            apellido="User",
            role=UserRole.ADMIN,
            activo=True,
            permissions=[],
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        db.flush()
        logger.warning("Created development principal %s", user.email)
    return user


def _resolve_user(db: Session, x_user_id: str | None) -> User:
    settings = get_settings()
    if x_user_id:
        user = db.scalar(select(User).where(User.id == _parse_user_id(x_user_id)))
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Unknown user for supplied identity headers.",
            )
        return user

    if settings.auth_allow_dev_principal:
        return _ensure_dev_principal(db)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity headers. Expected X-User-Id or enable development principal fallback.",
    )


def get_current_user_context(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user.

    Header strategy: the hosted auth provider validates the session upstream
    and forwards the user id; the profile row decides role and activation.
    """

    user = _resolve_user(db, x_user_id)
    db.commit()
    if not user.activo:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is pending approval or deactivated.",
        )

    return RequestUserContext(
        user_id=user.id,
        email=user.email,
        nombre=user.nombre,
        apellido=user.apellido,
        role=user.role,
        activo=user.activo,
        permissions=tuple(user.permissions or ()),
    )


def has_role(context: RequestUserContext, allowed_roles: set[UserRole]) -> bool:
    """Check whether user has any of the allowed roles."""

    return context.role in allowed_roles


def ensure_role(context: RequestUserContext, allowed_roles: set[UserRole]) -> None:
    if not has_role(context, allowed_roles):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role permissions for this operation.",
        )


def require_roles(*roles: UserRole):
    """Dependency factory requiring at least one provided role."""

    allowed = set(roles)

    def dependency(context: RequestUserContext = Depends(get_current_user_context)) -> RequestUserContext:
        ensure_role(context, allowed)
        return context

    return dependency
