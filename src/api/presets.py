"""Preset Service: company and position lists for the forms, plus admin upkeep."""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from src.api.client import ApiClient, confirmation
from src.core.errors import ApiError, ServerError
from src.core.result import Err, Ok, Result
from src.core.schemas import Company, Position

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Offered in the role filter when the positions list cannot be fetched.
FALLBACK_JOB_ROLES = (
    "Software Engineer",
    "Frontend Developer",
    "Backend Developer",
    "Full Stack Developer",
    "DevOps Engineer",
    "QA Engineer",
    "Software Architect",
    "Mobile Developer",
    "Data Engineer",
    "Machine Learning Engineer",
    "Cloud Engineer",
    "Security Engineer",
    "UI/UX Designer",
    "Product Manager",
    "Business Analyst",
)

# Collection path -> (wire name field, singular noun for messages)
PRESET_KINDS = {
    "companies": ("companyName", "Company"),
    "positions": ("positionName", "Position"),
}


class PresetService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_companies(self) -> Result[list[Company], ApiError]:
        result = await self._client.request("GET", "/companies")
        return _decode_list(result, "companies", Company)

    async def list_positions(self) -> Result[list[Position], ApiError]:
        result = await self._client.request("GET", "/positions")
        return _decode_list(result, "positions", Position)

    async def job_roles(self) -> list[str]:
        """Position names for the role filter, or the built-in list on failure."""
        result = await self.list_positions()
        if isinstance(result, Err):
            logger.warning(
                "Could not load positions (%s) - using fallback job roles",
                result.error.message,
            )
            return list(FALLBACK_JOB_ROLES)
        roles = [p.position_name for p in result.value]
        logger.debug("Loaded %d job roles from presets", len(roles))
        return roles

    # -- admin upkeep -------------------------------------------------------

    async def create_company(self, name: str) -> Result[str, ApiError]:
        return await self._create("companies", name)

    async def update_company(self, company_id: str, name: str) -> Result[str, ApiError]:
        return await self._update("companies", company_id, name)

    async def delete_company(self, company_id: str) -> Result[str, ApiError]:
        return await self._delete("companies", company_id)

    async def create_position(self, name: str) -> Result[str, ApiError]:
        return await self._create("positions", name)

    async def update_position(self, position_id: str, name: str) -> Result[str, ApiError]:
        return await self._update("positions", position_id, name)

    async def delete_position(self, position_id: str) -> Result[str, ApiError]:
        return await self._delete("positions", position_id)

    async def _create(self, kind: str, name: str) -> Result[str, ApiError]:
        field, noun = PRESET_KINDS[kind]
        result = await self._client.request("POST", f"/{kind}", json={field: name})
        return confirmation(result, f"{noun} created successfully")

    async def _update(self, kind: str, preset_id: str, name: str) -> Result[str, ApiError]:
        field, noun = PRESET_KINDS[kind]
        result = await self._client.request("PUT", f"/{kind}/{preset_id}", json={field: name})
        return confirmation(result, f"{noun} updated successfully")

    async def _delete(self, kind: str, preset_id: str) -> Result[str, ApiError]:
        _, noun = PRESET_KINDS[kind]
        result = await self._client.request("DELETE", f"/{kind}/{preset_id}")
        return confirmation(result, f"{noun} deleted successfully")


def _decode_list(
    result: Result[Any, ApiError],
    key: str,
    model: type[M],
) -> Result[list[M], ApiError]:
    if isinstance(result, Err):
        return result
    payload = result.value if isinstance(result.value, dict) else {}
    raw = payload.get(key)
    if not payload.get("success", True) or not isinstance(raw, list):
        return Err(ServerError(f"Invalid response format for {key}"))
    try:
        return Ok([model.model_validate(item) for item in raw])
    except PydanticValidationError as e:
        return Err(ServerError(f"Malformed {key} entry: {e.error_count()} error(s)"))
