"""Current user endpoint."""

from fastapi import APIRouter, Depends

from registro.core.auth import RequestUserContext, get_current_user_context

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return current authenticated user profile and role."""

    return {
        "id": str(context.user_id),
        "email": context.email,
        "nombre": context.nombre,
        "apellido": context.apellido,
        "display_name": context.display_name,
        "role": context.role.value,
        "activo": context.activo,
        "permissions": list(context.permissions),
    }
