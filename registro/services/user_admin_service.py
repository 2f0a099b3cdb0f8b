"""User provisioning and activation."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from registro.core.auth import PROVISIONING_ROLES, RequestUserContext, ensure_role
from registro.models.entities import User, UserRole
from registro.repositories.time_tracking_repository import TimeTrackingRepository
from registro.services.functions_client import CreateUserRequest, FunctionsClient, NotificationRequest
from registro.services.report_service import serialize_user

logger = logging.getLogger(__name__)


def _provisioned_user_id(body: dict[str, object]) -> UUID:
    candidate = body.get("id")
    nested = body.get("user")
    if candidate is None and isinstance(nested, dict):
        candidate = nested.get("id")
    try:
        return UUID(str(candidate))
    except ValueError:
        logger.error("Provisioning function returned no usable user id: %r", candidate)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Provisioning function did not return the created user id.",
        ) from None


class UserAdminService:
    def __init__(self, db: Session, functions: FunctionsClient) -> None:
        self.db = db
        self.repo = TimeTrackingRepository(db)
        self.functions = functions

    def create_user(self, *, context: RequestUserContext, payload: CreateUserRequest) -> dict[str, object]:
        ensure_role(context, PROVISIONING_ROLES)
        if payload.role is UserRole.ADMIN and context.role is not UserRole.ADMIN:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admin can create admin users.",
            )
        email = payload.email.strip().lower()
        if self.repo.get_user_by_email(email) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User email already exists.")

        body = self.functions.create_user(payload.model_copy(update={"email": email}))

        now = datetime.utcnow()
        user = self.repo.add_user(
            User(
                id=_provisioned_user_id(body),
                email=email,
                nombre=payload.nombre.strip(),
                apellido=payload.apellido.strip(),
                role=payload.role,
                activo=payload.activo,
                permissions=[],
                created_at=now,
                updated_at=now,
            )
        )
        self.db.commit()
        logger.info("User %s created by %s", email, context.user_id)
        return serialize_user(user)

    def set_user_status(self, *, context: RequestUserContext, user_id: UUID, activo: bool) -> dict[str, object]:
        ensure_role(context, {UserRole.ADMIN})
        user = self.repo.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
        if user.id == context.user_id and not activo:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Admins cannot deactivate themselves.",
            )

        changed = user.activo != activo
        user.activo = activo
        user.updated_at = datetime.utcnow()
        self.db.commit()

        if changed:
            self.functions.notify_user(
                NotificationRequest(
                    to=user.email,
                    name=user.nombre,
                    type="status_change",
                    data={"status": "active" if activo else "inactive"},
                )
            )
        return serialize_user(user)
