"""Auth Service: health probe, login, token verification, password change."""

import logging

from pydantic import ValidationError as PydanticValidationError

from src.api.client import ApiClient
from src.core.errors import ApiError, AuthError, ServerError
from src.core.result import Err, Ok, Result
from src.core.schemas import LoginGrant, Principal

logger = logging.getLogger(__name__)


class AuthService:
    """Thin wrapper over the /auth endpoints.

    Bearer-header management lives here too so the session layer never has
    to reach into the transport.
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    def attach_token(self, token: str) -> None:
        self._client.set_token(token)

    def detach_token(self) -> None:
        self._client.clear_token()

    async def health_probe(self) -> bool:
        """Best-effort ping that also wakes a sleeping backend."""
        result = await self._client.request("GET", "/health")
        if isinstance(result, Err):
            logger.debug("Health probe failed: %s", result.error.message)
            return False
        return True

    async def login(self, userid: str, password: str) -> Result[LoginGrant, ApiError]:
        result = await self._client.request(
            "POST", "/auth/login", json={"userid": userid, "password": password},
        )
        if isinstance(result, Err):
            return result
        payload = result.value if isinstance(result.value, dict) else {}
        if not payload.get("success"):
            return Err(AuthError(str(payload.get("message") or "Login failed")))
        try:
            grant = LoginGrant(
                token=payload.get("token") or "",
                principal=Principal.model_validate(payload.get("user") or {}),
            )
        except PydanticValidationError as e:
            return Err(ServerError(f"Malformed login response: {e.error_count()} error(s)"))
        return Ok(grant)

    async def verify(self) -> Result[Principal, ApiError]:
        """Ask the server who the currently attached token belongs to."""
        result = await self._client.request("GET", "/auth/verify")
        if isinstance(result, Err):
            return result
        payload = result.value if isinstance(result.value, dict) else {}
        if not payload.get("success"):
            return Err(AuthError(str(payload.get("message") or "Token is invalid")))
        try:
            return Ok(Principal.model_validate(payload.get("user") or {}))
        except PydanticValidationError as e:
            return Err(ServerError(f"Malformed verify response: {e.error_count()} error(s)"))

    async def change_password(
        self, current_password: str, new_password: str,
    ) -> Result[str, ApiError]:
        result = await self._client.request(
            "PUT",
            "/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )
        if isinstance(result, Err):
            return result
        payload = result.value if isinstance(result.value, dict) else {}
        if payload.get("success") is False:
            return Err(AuthError(str(payload.get("message") or "Failed to change password")))
        return Ok(str(payload.get("message") or "Password changed successfully"))
