"""Records Service: applicant CRUD and filtered export."""

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.api.client import ApiClient
from src.core.errors import ApiError, ServerError
from src.core.result import Err, Ok, Result
from src.core.schemas import ApplicantFields, ApplicantRecord, FilterCriteria

logger = logging.getLogger(__name__)


class RecordsService:
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_records(self) -> Result[list[ApplicantRecord], ApiError]:
        result = await self._client.request("GET", "/applicants")
        if isinstance(result, Err):
            return result
        raw = _data(result.value)
        if raw is None:
            return Ok([])
        if not isinstance(raw, list):
            return Err(ServerError("Malformed applicant list: 'data' is not a list"))
        try:
            records = [ApplicantRecord.model_validate(item) for item in raw]
        except PydanticValidationError as e:
            return Err(ServerError(f"Malformed applicant record: {e.error_count()} error(s)"))
        logger.debug("Fetched %d applicants", len(records))
        return Ok(records)

    async def create_record(
        self,
        fields: ApplicantFields,
        resume: Path | None = None,
    ) -> Result[ApplicantRecord, ApiError]:
        result = await self._client.request(
            "POST", "/applicants", data=fields.to_form(), files=_resume_files(resume),
        )
        return _decode_record(result)

    async def update_record(
        self,
        record_id: str,
        fields: ApplicantFields,
        resume: Path | None = None,
    ) -> Result[ApplicantRecord, ApiError]:
        result = await self._client.request(
            "PUT", f"/applicants/{record_id}", data=fields.to_form(), files=_resume_files(resume),
        )
        return _decode_record(result)

    async def delete_record(self, record_id: str, admin_password: str) -> Result[str, ApiError]:
        """Delete a record; the server re-checks the admin password."""
        result = await self._client.request(
            "DELETE", f"/applicants/{record_id}", json={"adminPassword": admin_password},
        )
        if isinstance(result, Err):
            return result
        payload = result.value if isinstance(result.value, dict) else {}
        return Ok(str(payload.get("message") or "Applicant deleted successfully"))

    async def export_records(
        self,
        criteria: FilterCriteria,
        destination: Path,
    ) -> Result[Path, ApiError]:
        """Download the server-side export for exactly the given criteria."""
        return await self._client.download(
            "/applicants/export", destination, params=criteria.to_query_params(),
        )


def _data(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("data")
    return payload


def _decode_record(result: Result[Any, ApiError]) -> Result[ApplicantRecord, ApiError]:
    if isinstance(result, Err):
        return result
    raw = _data(result.value)
    try:
        return Ok(ApplicantRecord.model_validate(raw))
    except PydanticValidationError as e:
        return Err(ServerError(f"Malformed applicant record: {e.error_count()} error(s)"))


def _resume_files(resume: Path | None) -> dict[str, Any] | None:
    if resume is None:
        return None
    return {"resume": (resume.name, resume.read_bytes(), "application/pdf")}
