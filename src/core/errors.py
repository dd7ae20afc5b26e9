"""Error taxonomy for calls against the applicant tracker API.

  NetworkError   : timeout / connection failure. Retryable only inside login.
  AuthError      : rejected credentials, expired or invalid token. Never retried.
  ValidationError: field-level rejection, one FieldError per offending field.
  ServerError    : 5xx or any other unexpected response. Surfaced once, not retried.
"""

import copy

from src.core.schemas import FieldError


class ApiError(Exception):
    """Base class for every failure decoded from an API call."""

    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def with_message(self, message: str) -> "ApiError":
        """Return a copy of this error carrying a different message."""
        clone = copy.copy(self)
        clone.message = message
        clone.args = (message,)
        return clone


class NetworkError(ApiError):
    """The request never produced a response (timeout, refused, aborted)."""

    retryable = True


class AuthError(ApiError):
    """Credentials or token rejected by the server."""


class ValidationError(ApiError):
    """The server rejected one or more submitted fields."""

    def __init__(self, message: str, errors: list[FieldError] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class ServerError(ApiError):
    """Unexpected response; status_code is 0 when the body itself was malformed."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code
