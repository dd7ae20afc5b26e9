"""Configuration models and YAML loader for the applicant tracker client."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

API_URL_ENV = "ATS_API_URL"


class ApiConfig(BaseModel):
    """Where the REST API lives and how long a single call may take."""

    base_url: str = "http://localhost:5000/api"
    timeout_s: float = Field(default=10.0, ge=1.0)

    @field_validator("base_url")
    @classmethod
    def base_url_is_http(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            msg = f"base_url must start with http:// or https://, got '{v}'"
            raise ValueError(msg)
        return v


class LoginConfig(BaseModel):
    """Retry policy for signing in against a backend that may be asleep."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_s: float = Field(default=2.0, ge=0.0)


class StorageConfig(BaseModel):
    """Durable client-local storage holding the session token."""

    path: str = "~/.applicant-tracker/storage.json"

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class ExportConfig(BaseModel):
    directory: str = "."


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    login: LoginConfig = Field(default_factory=LoginConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(_apply_env(raw))

    @classmethod
    def load(cls, path: str | Path) -> "Settings":
        """Like from_yaml, but fall back to defaults when the file is absent."""
        if Path(path).exists():
            return cls.from_yaml(path)
        return cls.model_validate(_apply_env({}))


def _apply_env(raw: dict[str, Any]) -> dict[str, Any]:
    """Let ATS_API_URL override api.base_url."""
    url = os.environ.get(API_URL_ENV, "").strip()
    if not url:
        return raw
    api = dict(raw.get("api") or {})
    api["base_url"] = url
    return {**raw, "api": api}
