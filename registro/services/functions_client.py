"""HTTP client for the hosted serverless functions (notifications, provisioning)."""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any, Literal

import httpx
from fastapi import HTTPException, status
from pydantic import BaseModel, Field

from registro.core.config import get_settings
from registro.models.entities import UserRole

logger = logging.getLogger(__name__)

NotificationType = Literal["status_change", "welcome_admin", "registration"]


class NotificationRequest(BaseModel):
    to: str = Field(min_length=3, max_length=320)
    name: str | None = None
    type: NotificationType
    data: dict[str, Any] = Field(default_factory=dict)


class CreateUserRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=6)
    nombre: str = Field(min_length=1, max_length=120)
    apellido: str = Field(min_length=1, max_length=120)
    role: UserRole = UserRole.CONSULTOR
    activo: bool = True


class FunctionsClient:
    """Calls ``notify-user`` and ``create-user`` on the functions host."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers["apikey"] = api_key
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def notify_user(self, request: NotificationRequest) -> bool:
        """Send a notification; failures are logged and reported as ``False``."""

        try:
            response = self._client.post("/notify-user", json=request.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Notification %s to %s rejected with status %s",
                request.type,
                request.to,
                exc.response.status_code,
            )
            return False
        except httpx.HTTPError as exc:
            logger.error("Failed to send notification %s to %s: %s", request.type, request.to, exc)
            return False

        logger.info("Notification %s sent to %s", request.type, request.to)
        return True

    def create_user(self, request: CreateUserRequest) -> dict[str, Any]:
        """Provision an auth account plus profile; errors surface as ``HTTPException``."""

        try:
            response = self._client.post("/create-user", json=request.model_dump(mode="json"))
        except httpx.HTTPError as exc:
            logger.error("create-user call failed for %s: %s", request.email, exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="User provisioning service is unavailable.",
            ) from exc

        body = self._json_body(response)
        error = body.get("error")
        if response.status_code == status.HTTP_403_FORBIDDEN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error or "Forbidden.")
        if response.is_error or error:
            logger.warning("create-user rejected %s: %s", request.email, error)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error or f"User provisioning failed with status {response.status_code}.",
            )

        logger.info("Provisioned user %s with role %s", request.email, request.role.value)
        return body

    @staticmethod
    def _json_body(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


def get_functions_client() -> Generator[FunctionsClient, None, None]:
    settings = get_settings()
    client = FunctionsClient(
        settings.functions_base_url,
        api_key=settings.functions_api_key,
        timeout=settings.functions_timeout_seconds,
    )
    try:
        yield client
    finally:
        client.close()
