"""User Service: admin account management. Authorization is enforced server-side."""

from pydantic import ValidationError as PydanticValidationError

from src.api.client import ApiClient, confirmation
from src.core.errors import ApiError, ServerError
from src.core.result import Err, Ok, Result
from src.core.schemas import User


class UserService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_users(self) -> Result[list[User], ApiError]:
        result = await self._client.request("GET", "/users")
        if isinstance(result, Err):
            return result
        payload = result.value if isinstance(result.value, dict) else {}
        raw = payload.get("users")
        if not isinstance(raw, list):
            return Err(ServerError("Invalid response format for users"))
        try:
            return Ok([User.model_validate(item) for item in raw])
        except PydanticValidationError as e:
            return Err(ServerError(f"Malformed user entry: {e.error_count()} error(s)"))

    async def create_user(self, userid: str, password: str, role: str = "user") -> Result[str, ApiError]:
        role = User(userid=userid, role=role).role
        result = await self._client.request(
            "POST", "/users", json={"userid": userid, "password": password, "role": role},
        )
        return confirmation(result, "User created successfully")

    async def update_user(
        self,
        userid: str,
        *,
        password: str | None = None,
        role: str | None = None,
    ) -> Result[str, ApiError]:
        """Change a user's role and/or password; omitted values are left as-is."""
        body: dict[str, str] = {}
        if password:
            body["password"] = password
        if role is not None:
            body["role"] = User(userid=userid, role=role).role
        result = await self._client.request("PUT", f"/users/{userid}", json=body)
        return confirmation(result, "User updated successfully")

    async def delete_user(self, userid: str) -> Result[str, ApiError]:
        result = await self._client.request("DELETE", f"/users/{userid}")
        return confirmation(result, "User deleted successfully")

