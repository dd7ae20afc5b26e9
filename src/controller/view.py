"""ViewController: mediates user actions between session, cache and filters.

This is the only layer that turns errors into user-visible text. Every
outcome is appended to ``notices`` (and logged); callers render them.

Flow:
  1. mount() : verify a persisted token, then load records
  2. login() : retrying sign-in, then load records
  3. submit_record() / delete_record(): server first, cache after confirmation
  4. set_filters() / visible_records(): local narrowing, no server call
  5. export(): server-side export of exactly the current criteria
  6. users / presets: admin screens, hidden from non-admins
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

from src.api.auth import AuthService
from src.api.presets import PRESET_KINDS, PresetService
from src.api.records import RecordsService
from src.api.users import UserService
from src.core.errors import ApiError, AuthError, ValidationError
from src.core.result import Err
from src.core.schemas import (
    ApplicantFields,
    ApplicantRecord,
    Company,
    FilterCriteria,
    Position,
    User,
)
from src.pipeline.filters import FilterEngine
from src.records.cache import RecordCache
from src.records.resume import validate_resume
from src.session.store import ProgressCallback, SessionStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class NoticeLevel(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


class ViewController:
    """Owns no state of its own beyond the open form and the notice list."""

    def __init__(
        self,
        session: SessionStore,
        cache: RecordCache,
        engine: FilterEngine,
        records: RecordsService,
        auth: AuthService,
        presets: PresetService,
        *,
        users: UserService,
        export_dir: str | Path = ".",
    ) -> None:
        self.session = session
        self.cache = cache
        self.engine = engine
        self._records = records
        self._auth = auth
        self._presets = presets
        self._users = users
        self._export_dir = Path(export_dir)
        self.notices: list[Notice] = []
        self.form_open = False
        self.editing: ApplicantRecord | None = None

    # -- session ------------------------------------------------------------

    async def mount(self) -> bool:
        """Restore a persisted session if there is one, then load records.

        An invalid stored token logs out silently.
        """
        if self.session.has_persisted_token:
            await self.session.verify()
        if not self.session.is_authenticated:
            return False
        return await self.refresh()

    async def login(
        self,
        userid: str,
        password: str,
        on_progress: ProgressCallback | None = None,
    ) -> bool:
        if not userid.strip() or not password:
            self._error("Please fill in all fields")
            return False
        result = await self.session.attempt_login(userid.strip(), password, on_progress)
        if isinstance(result, Err):
            self._error(result.error.message or "Login failed")
            return False
        self._success("Login successful!")
        return await self.refresh()

    def logout(self) -> None:
        self.session.logout()
        self.form_open = False
        self.editing = None
        self._success("Logged out successfully")

    async def change_password(self, current: str, new: str, confirm: str) -> bool:
        if not current or not new or not confirm:
            self._error("Please fill in all fields")
            return False
        if new != confirm:
            self._error("New passwords do not match")
            return False
        if len(new) < MIN_PASSWORD_LENGTH:
            self._error(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")
            return False
        result = await self._auth.change_password(current, new)
        if isinstance(result, Err):
            self._report(result.error, "Failed to change password")
            return False
        self._success(result.value)
        return True

    # -- records ------------------------------------------------------------

    async def refresh(self) -> bool:
        """Reload the cache. A failure keeps whatever was loaded before."""
        result = await self.cache.load()
        if isinstance(result, Err):
            if isinstance(result.error, AuthError):
                self.session.expire()
                self._error("Session expired, please log in again")
            else:
                self._error("Failed to load applicants")
            return False
        return True

    def open_form(self, record: ApplicantRecord | None = None) -> ApplicantFields | None:
        """Open the add/edit form. Returns pre-filled fields when editing."""
        self.form_open = True
        self.editing = record
        if record is None:
            return None
        return ApplicantFields.from_record(record)

    def close_form(self) -> None:
        self.form_open = False
        self.editing = None

    async def submit_record(
        self,
        fields: ApplicantFields,
        resume: str | Path | None = None,
        record_id: str | None = None,
    ) -> ApplicantRecord | None:
        """Create (record_id None) or update a record.

        The cache changes only after the server confirms the write.
        """
        if record_id is None and self.editing is not None:
            record_id = self.editing.id

        resume_path: Path | None = None
        if resume is not None:
            try:
                resume_path = validate_resume(resume)
            except (FileNotFoundError, ValueError) as e:
                self._error(str(e))
                return None

        if record_id is None:
            result = await self._records.create_record(fields, resume_path)
        else:
            result = await self._records.update_record(record_id, fields, resume_path)
        if isinstance(result, Err):
            self._report(result.error, "Failed to save applicant")
            return None

        record = result.value
        await self.cache.upsert(record)
        self.close_form()
        self._success(
            "Applicant added successfully" if record_id is None
            else "Applicant updated successfully",
        )
        return record

    async def delete_record(self, record_id: str, admin_password: str) -> bool:
        """Delete after the server accepts the admin password; the record stays otherwise."""
        if not admin_password:
            self._error("Admin password is required")
            return False
        result = await self._records.delete_record(record_id, admin_password)
        if isinstance(result, Err):
            self._report(result.error, "Failed to delete applicant")
            return False
        await self.cache.remove(record_id)
        self._success("Applicant deleted successfully")
        return True

    # -- filtering & export -------------------------------------------------

    @property
    def criteria(self) -> FilterCriteria:
        return self.engine.criteria

    def set_filters(self, **axes: Any) -> FilterCriteria:
        return self.engine.update(**axes)

    def clear_filters(self) -> FilterCriteria:
        return self.engine.clear()

    def visible_records(self) -> list[ApplicantRecord]:
        return self.engine.view()

    async def export(self, directory: str | Path | None = None) -> Path | None:
        """Download the server export matching the current criteria."""
        if len(self.cache) == 0:
            self._error("No applicants to export")
            return None
        target_dir = Path(directory) if directory is not None else self._export_dir
        destination = target_dir / f"applicants_export_{date.today().isoformat()}.xlsx"
        result = await self._records.export_records(self.engine.criteria, destination)
        if isinstance(result, Err):
            self._report(result.error, "Failed to export data")
            return None
        self._success("Export completed successfully")
        return result.value

    async def job_roles(self) -> list[str]:
        return await self._presets.job_roles()

    # -- user administration ------------------------------------------------

    async def list_users(self) -> list[User] | None:
        if not self._admin_screen():
            return None
        result = await self._users.list_users()
        if isinstance(result, Err):
            self._report(result.error, "Failed to load users")
            return None
        return result.value

    async def create_user(self, userid: str, password: str, role: str = "user") -> bool:
        if not self._admin_screen():
            return False
        if not userid.strip() or not password:
            self._error("Please fill in all fields")
            return False
        try:
            result = await self._users.create_user(userid.strip(), password, role)
        except ValueError as e:
            self._error(str(e))
            return False
        if isinstance(result, Err):
            self._report(result.error, "Failed to save user")
            return False
        self._success(result.value)
        return True

    async def update_user(
        self,
        userid: str,
        *,
        password: str | None = None,
        role: str | None = None,
    ) -> bool:
        if not self._admin_screen():
            return False
        if not password and role is None:
            self._error("Nothing to update")
            return False
        try:
            result = await self._users.update_user(userid, password=password, role=role)
        except ValueError as e:
            self._error(str(e))
            return False
        if isinstance(result, Err):
            self._report(result.error, "Failed to save user")
            return False
        self._success(result.value)
        return True

    async def delete_user(self, userid: str) -> bool:
        if not self._admin_screen():
            return False
        result = await self._users.delete_user(userid)
        if isinstance(result, Err):
            self._report(result.error, "Failed to delete user")
            return False
        self._success(result.value)
        return True

    # -- preset administration ----------------------------------------------

    async def list_presets(self, kind: str) -> list[Company] | list[Position] | None:
        if not self._admin_screen() or not self._known_kind(kind):
            return None
        if kind == "companies":
            result = await self._presets.list_companies()
        else:
            result = await self._presets.list_positions()
        if isinstance(result, Err):
            self._report(result.error, f"Failed to load {kind}")
            return None
        return result.value

    async def save_preset(self, kind: str, name: str, preset_id: str | None = None) -> bool:
        """Create a company/position, or rename it when preset_id is given."""
        if not self._admin_screen() or not self._known_kind(kind):
            return False
        name = name.strip()
        if not name:
            self._error("Please fill in all fields")
            return False
        companies = kind == "companies"
        if preset_id is None:
            create = self._presets.create_company if companies else self._presets.create_position
            result = await create(name)
        else:
            update = self._presets.update_company if companies else self._presets.update_position
            result = await update(preset_id, name)
        if isinstance(result, Err):
            self._report(result.error, f"Failed to save {PRESET_KINDS[kind][1].lower()}")
            return False
        self._success(result.value)
        return True

    async def delete_preset(self, kind: str, preset_id: str) -> bool:
        if not self._admin_screen() or not self._known_kind(kind):
            return False
        if kind == "companies":
            result = await self._presets.delete_company(preset_id)
        else:
            result = await self._presets.delete_position(preset_id)
        if isinstance(result, Err):
            self._report(result.error, f"Failed to delete {PRESET_KINDS[kind][1].lower()}")
            return False
        self._success(result.value)
        return True

    def _known_kind(self, kind: str) -> bool:
        if kind not in PRESET_KINDS:
            self._error(f"Unknown preset list '{kind}'")
            return False
        return True

    def _admin_screen(self) -> bool:
        # Hides admin screens from non-admins; the server is the real gate.
        if not self.session.is_admin():
            self._error("Admin access required")
            return False
        return True

    # -- notices ------------------------------------------------------------

    def _report(self, error: ApiError, fallback: str) -> None:
        self._error(error.message or fallback)
        if isinstance(error, ValidationError):
            for field_error in error.errors:
                if field_error.message:
                    self._error(field_error.message)

    def _success(self, message: str) -> None:
        logger.info("%s", message)
        self.notices.append(Notice(NoticeLevel.SUCCESS, message))

    def _error(self, message: str) -> None:
        logger.warning("%s", message)
        self.notices.append(Notice(NoticeLevel.ERROR, message))
