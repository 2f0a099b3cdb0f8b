"""Administration endpoints for user provisioning and activation."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from registro.core.auth import RequestUserContext, get_current_user_context, require_roles
from registro.db.dependencies import get_db_session
from registro.models.entities import UserRole
from registro.services.functions_client import CreateUserRequest, FunctionsClient, get_functions_client
from registro.services.user_admin_service import UserAdminService

router = APIRouter(prefix="/admin", tags=["admin"])


class UserStatusUpdate(BaseModel):
    activo: bool


def _service(db: Session, functions: FunctionsClient) -> UserAdminService:
    return UserAdminService(db, functions)


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: CreateUserRequest,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    functions: FunctionsClient = Depends(get_functions_client),
) -> dict[str, object]:
    return _service(db, functions).create_user(context=context, payload=payload)


@router.patch("/users/{user_id}/status")
def update_user_status(
    user_id: UUID,
    payload: UserStatusUpdate,
    context: RequestUserContext = Depends(require_roles(UserRole.ADMIN)),
    db: Session = Depends(get_db_session),
    functions: FunctionsClient = Depends(get_functions_client),
) -> dict[str, object]:
    return _service(db, functions).set_user_status(context=context, user_id=user_id, activo=payload.activo)
