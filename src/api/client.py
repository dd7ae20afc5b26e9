"""HTTP transport for the applicant tracker REST API.

Every call goes through ApiClient.request(), which decodes the response
exactly once into Ok(payload) or Err(ApiError). Nothing above this module
looks at status codes or raw httpx exceptions.
"""

import logging
from pathlib import Path
from types import TracebackType
from typing import Any

import httpx

from src.core.config import ApiConfig
from src.core.errors import ApiError, AuthError, NetworkError, ServerError, ValidationError
from src.core.result import Err, Ok, Result
from src.core.schemas import FieldError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class ApiClient:
    """Async context manager owning one httpx.AsyncClient.

    Usage::

        async with ApiClient(config) as client:
            result = await client.request("GET", "/applicants")
    """

    def __init__(
        self,
        config: ApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_s),
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- bearer header ------------------------------------------------------

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    def clear_token(self) -> None:
        self._client.headers.pop("Authorization", None)

    @property
    def has_token(self) -> bool:
        return "Authorization" in self._client.headers

    # -- calls --------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        data: dict[str, str] | None = None,
        files: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Result[Any, ApiError]:
        """Issue one request and decode it into a tagged result."""
        logger.debug("%s %s", method, path)
        try:
            response = await self._client.request(
                method, path, json=json, data=data, files=files, params=params,
            )
        except httpx.TimeoutException as e:
            logger.debug("%s %s timed out: %s", method, path, e)
            return Err(NetworkError(f"Request to {path} timed out"))
        except httpx.TransportError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            return Err(NetworkError(f"Could not reach server: {e}"))
        except httpx.RequestError as e:
            logger.debug("%s %s unreadable: %s", method, path, e)
            return Err(ServerError(f"Invalid response from server: {e}"))
        return decode_response(response)

    async def download(
        self,
        path: str,
        destination: Path,
        *,
        params: dict[str, str] | None = None,
    ) -> Result[Path, ApiError]:
        """Stream a binary response body to destination.

        The body lands in a ``.part`` file first and is renamed only once the
        stream completes, so a failed download never leaves a truncated file.
        """
        partial = destination.with_name(destination.name + ".part")
        error: ApiError
        try:
            async with self._client.stream("GET", path, params=params) as response:
                if response.is_error:
                    await response.aread()
                    decoded = decode_response(response)
                    if isinstance(decoded, Err):
                        return decoded
                destination.parent.mkdir(parents=True, exist_ok=True)
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                        fh.write(chunk)
            partial.replace(destination)
        except httpx.TimeoutException:
            error = NetworkError(f"Download from {path} timed out")
        except httpx.TransportError as e:
            error = NetworkError(f"Could not reach server: {e}")
        except httpx.RequestError as e:
            error = ServerError(f"Invalid response from server: {e}")
        except OSError as e:
            error = ApiError(f"Could not save {destination.name}: {e.strerror or e}")
        else:
            logger.info("Downloaded %s to %s", path, destination)
            return Ok(destination)
        if partial.exists():
            partial.unlink()
        logger.warning("Download from %s failed: %s", path, error)
        return Err(error)


def confirmation(result: Result[Any, ApiError], default: str) -> Result[str, ApiError]:
    """Reduce a write call's payload to its confirmation message."""
    if isinstance(result, Err):
        return result
    return Ok(_message_from(result.value) or default)


def decode_response(response: httpx.Response) -> Result[Any, ApiError]:
    """Map an HTTP response onto Ok(payload) or one of the ApiError types."""
    payload = _json_or_empty(response)
    if response.is_success:
        return Ok(payload)

    status = response.status_code
    message = _message_from(payload)
    if status in (401, 403):
        return Err(AuthError(message or "Not authorized"))
    raw_errors = payload.get("errors") if isinstance(payload, dict) else None
    if status in (400, 422) and isinstance(raw_errors, list) and raw_errors:
        errors = [_field_error(item) for item in raw_errors]
        return Err(ValidationError(message or "Validation failed", errors))
    logger.debug("Unexpected response %d: %s", status, message)
    return Err(ServerError(message or f"Request failed with status {status}", status))


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


def _message_from(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    message = payload.get("message") or payload.get("error") or ""
    return str(message)


def _field_error(item: Any) -> FieldError:
    if isinstance(item, dict):
        return FieldError.model_validate(item)
    return FieldError(message=str(item))
