"""Core data models for the applicant tracker client.

Wire payloads use camelCase (``fullName``, ``dateOfApplication``); models
expose snake_case attributes and accept either spelling on input.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_serializer,
    field_validator,
    model_validator,
)

ALLOWED_STATUSES = ("Applied", "Interviewed", "Hired", "Rejected")
ALLOWED_ROLES = {"admin", "user"}


def _normalize_status(value: Any) -> str:
    text = str(value).strip().lower()
    for status in ALLOWED_STATUSES:
        if status.lower() == text:
            return status
    msg = f"status must be one of {list(ALLOWED_STATUSES)}, got '{value}'"
    raise ValueError(msg)


def _coerce_datetime(value: Any) -> Any:
    """Accept bare ``YYYY-MM-DD`` strings and dates as midnight datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str) and len(value.strip()) == 10:
        return datetime.combine(date.fromisoformat(value.strip()), time())
    return value


def _coerce_date(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if len(value) > 10:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


# ---------------------------------------------------------------------------
# Applicants
# ---------------------------------------------------------------------------


class FieldError(BaseModel):
    """One field-level validation failure reported by the server."""

    field: str = Field(default="", validation_alias=AliasChoices("field", "path", "param"))
    message: str = Field(default="", validation_alias=AliasChoices("message", "msg"))


class ApplicantRecord(BaseModel):
    """A server-confirmed applicant. Frozen; replaced by id, never edited in place."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    full_name: str = Field(alias="fullName")
    email: str
    phone: str | None = None
    position: str
    company: str
    annual_ctc: float = Field(alias="annualCTC", ge=0)
    location: str
    status: str = "Applied"
    date_of_application: datetime = Field(alias="dateOfApplication")
    interview_date: datetime | None = Field(default=None, alias="interviewDate")
    notes: str | None = None
    resume_file_name: str | None = Field(default=None, alias="resumeFileName")

    @field_validator("status", mode="before")
    @classmethod
    def status_in_allowed(cls, v: Any) -> str:
        return _normalize_status(v)

    @field_validator("date_of_application", "interview_date", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> Any:
        return _coerce_datetime(v)


class ApplicantFields(BaseModel):
    """Editable applicant fields submitted on create/update (everything but the id)."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(alias="fullName", min_length=2)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: str | None = None
    position: str = Field(min_length=1)
    company: str = Field(min_length=1)
    annual_ctc: float = Field(alias="annualCTC", ge=0)
    location: str = Field(min_length=2)
    status: str = "Applied"
    date_of_application: date = Field(default_factory=date.today, alias="dateOfApplication")
    interview_date: date | None = Field(default=None, alias="interviewDate")
    notes: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def status_in_allowed(cls, v: Any) -> str:
        return _normalize_status(v)

    @field_validator("phone", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("date_of_application", "interview_date", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> Any:
        return _coerce_date(v)

    @field_serializer("annual_ctc")
    def whole_amount(self, v: float) -> int | float:
        # 50000.0 goes on the wire as 50000
        return int(v) if v.is_integer() else v

    @classmethod
    def from_record(cls, record: ApplicantRecord) -> "ApplicantFields":
        """Pre-fill the edit form from an existing record."""
        data = record.model_dump(exclude={"id", "resume_file_name"})
        return cls.model_validate(data)

    def to_form(self) -> dict[str, str]:
        """Flatten into multipart form fields; unset optionals are omitted."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {key: str(value) for key, value in data.items()}


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class FilterCriteria(BaseModel):
    """Five-axis predicate narrowing the visible record set.

    Frozen value object: equality is structural and instances are hashable.
    An empty string or None means "no constraint on this axis".
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    search_query: str = Field(default="", alias="searchQuery")
    role: str = ""
    status: str = ""
    application_date: date | None = Field(default=None, alias="applicationDate")
    interview_date: date | None = Field(default=None, alias="interviewDate")

    @field_validator("search_query", "role", "status", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("application_date", "interview_date", mode="before")
    @classmethod
    def parse_day(cls, v: Any) -> Any:
        return _coerce_date(v)

    @property
    def is_empty(self) -> bool:
        return not self.to_query_params()

    def to_query_params(self) -> dict[str, str]:
        """Query parameters for the active axes, using wire names."""
        params: dict[str, str] = {}
        if self.search_query.strip():
            params["searchQuery"] = self.search_query
        if self.role:
            params["role"] = self.role
        if self.status:
            params["status"] = self.status
        if self.application_date is not None:
            params["applicationDate"] = self.application_date.isoformat()
        if self.interview_date is not None:
            params["interviewDate"] = self.interview_date.isoformat()
        return params


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class Principal(BaseModel):
    """The signed-in user as reported by the auth endpoints."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "userid", "_id"))
    role: str = "user"


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    userid: str
    secret: SecretStr


class LoginGrant(BaseModel):
    """Decoded successful login: a token and the principal it belongs to."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)
    principal: Principal


class Session(BaseModel):
    """Snapshot of the client's authentication state.

    Token and principal are always set together, never independently.
    """

    model_config = ConfigDict(frozen=True)

    state: SessionState = SessionState.UNAUTHENTICATED
    token: str | None = None
    principal: Principal | None = None
    credentials: Credentials | None = None

    @model_validator(mode="after")
    def token_and_principal_paired(self) -> "Session":
        if (self.token is None) != (self.principal is None):
            msg = "token and principal must be set together"
            raise ValueError(msg)
        if (self.state is SessionState.AUTHENTICATED) != (self.token is not None):
            msg = "a token is present exactly when the session is authenticated"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Presets & users
# ---------------------------------------------------------------------------


class Company(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default="", alias="_id")
    company_name: str = Field(alias="companyName")


class Position(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default="", alias="_id")
    position_name: str = Field(alias="positionName")


class User(BaseModel):
    """An account managed through the admin user screens."""

    model_config = ConfigDict(frozen=True)

    userid: str
    role: str = "user"

    @field_validator("role")
    @classmethod
    def role_in_allowed(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ALLOWED_ROLES:
            msg = f"role must be one of {sorted(ALLOWED_ROLES)}, got '{v}'"
            raise ValueError(msg)
        return v
