"""RecordCache: the authoritative local copy of server-side applicant records.

Mutated only by load / upsert / remove, each applied once per confirmed
server round-trip. Writes are serialized by an asyncio.Lock and swap in a
new tuple, so readers never observe a half-applied change.
"""

import asyncio
import logging
from collections.abc import Iterator

from src.api.records import RecordsService
from src.core.errors import ApiError
from src.core.result import Err, Ok, Result
from src.core.schemas import ApplicantRecord

logger = logging.getLogger(__name__)


class RecordCache:
    def __init__(self, service: RecordsService) -> None:
        self._service = service
        self._records: tuple[ApplicantRecord, ...] = ()
        self._version = 0
        self._lock = asyncio.Lock()

    @property
    def records(self) -> tuple[ApplicantRecord, ...]:
        return self._records

    @property
    def version(self) -> int:
        """Bumped on every mutation; lets derived views detect staleness."""
        return self._version

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ApplicantRecord]:
        return iter(self._records)

    def get(self, record_id: str) -> ApplicantRecord | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    async def load(self) -> Result[tuple[ApplicantRecord, ...], ApiError]:
        """Replace the whole cache with the server's list.

        On failure the previous records stay exactly as they were.
        """
        async with self._lock:
            result = await self._service.list_records()
            if isinstance(result, Err):
                logger.warning("Failed to load applicants: %s", result.error.message)
                return result
            self._commit(tuple(result.value))
            logger.info("Loaded %d applicants", len(self._records))
            return Ok(self._records)

    async def upsert(self, record: ApplicantRecord) -> None:
        """Insert or replace by id. Replacements keep their position; new records go first."""
        async with self._lock:
            replaced = False
            updated: list[ApplicantRecord] = []
            for existing in self._records:
                if existing.id == record.id:
                    if not replaced:
                        updated.append(record)
                        replaced = True
                    continue
                updated.append(existing)
            if not replaced:
                updated.insert(0, record)
            self._commit(tuple(updated))
            logger.debug("%s applicant %s", "Replaced" if replaced else "Inserted", record.id)

    async def remove(self, record_id: str) -> bool:
        """Remove by id. Returns False when no such record was cached."""
        async with self._lock:
            remaining = tuple(r for r in self._records if r.id != record_id)
            if len(remaining) == len(self._records):
                return False
            self._commit(remaining)
            logger.debug("Removed applicant %s", record_id)
            return True

    def _commit(self, records: tuple[ApplicantRecord, ...]) -> None:
        self._records = records
        self._version += 1
