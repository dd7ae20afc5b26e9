"""Tests for RecordCache: load, upsert, remove, version counter."""

import asyncio
from datetime import datetime

from src.core.errors import ApiError, NetworkError
from src.core.result import Err, Ok, Result
from src.core.schemas import ApplicantRecord, FilterCriteria
from src.pipeline.filters import project
from src.records.cache import RecordCache


def _record(id: str, status: str = "Applied", name: str = "Alice") -> ApplicantRecord:
    return ApplicantRecord(
        id=id,
        full_name=name,
        email=f"{id}@example.com",
        position="QA Engineer",
        company="Acme",
        annual_ctc=100,
        location="Pune",
        status=status,
        date_of_application=datetime(2024, 3, 1),
    )


class FakeRecordsService:
    def __init__(self, *results: Result[list[ApplicantRecord], ApiError]) -> None:
        self.results = list(results)
        self.calls = 0

    async def list_records(self) -> Result[list[ApplicantRecord], ApiError]:
        self.calls += 1
        return self.results.pop(0)


def _cache(*results: Result[list[ApplicantRecord], ApiError]) -> RecordCache:
    return RecordCache(FakeRecordsService(*results))  # type: ignore[arg-type]


class TestLoad:
    async def test_replaces_contents(self) -> None:
        a, b = _record("a"), _record("b")
        cache = _cache(Ok([a, b]))

        result = await cache.load()

        assert result == Ok((a, b))
        assert cache.records == (a, b)
        assert len(cache) == 2
        assert list(cache) == [a, b]
        assert cache.version == 1

    async def test_failure_keeps_previous_records(self) -> None:
        a = _record("a")
        cache = _cache(Ok([a]), Err(NetworkError("Could not reach server")))
        await cache.load()

        result = await cache.load()

        assert isinstance(result, Err)
        assert cache.records == (a,)
        assert cache.version == 1

    async def test_empty_load(self) -> None:
        cache = _cache(Ok([]))
        await cache.load()
        assert cache.records == ()
        assert cache.version == 1

    async def test_concurrent_loads_serialized(self) -> None:
        a, b = _record("a"), _record("b")
        cache = _cache(Ok([a]), Ok([b]))
        await asyncio.gather(cache.load(), cache.load())
        assert cache.records == (b,)
        assert cache.version == 2


class TestUpsert:
    async def test_new_record_goes_first(self) -> None:
        a, b = _record("a"), _record("b")
        cache = _cache(Ok([a]))
        await cache.load()

        await cache.upsert(b)

        assert cache.records == (b, a)

    async def test_replacement_keeps_position(self) -> None:
        a, b, c = _record("a"), _record("b"), _record("c")
        cache = _cache(Ok([a, b, c]))
        await cache.load()
        hired = _record("b", status="Hired")

        await cache.upsert(hired)

        assert cache.records == (a, hired, c)
        assert cache.get("b") == hired

    async def test_upsert_twice_is_idempotent(self) -> None:
        a = _record("a")
        cache = _cache(Ok([]))
        await cache.upsert(a)
        await cache.upsert(a)
        assert cache.records == (a,)

    async def test_version_bumps(self) -> None:
        cache = _cache(Ok([]))
        await cache.upsert(_record("a"))
        await cache.upsert(_record("a", name="Alicia"))
        assert cache.version == 2


class TestRemove:
    async def test_remove_existing(self) -> None:
        a, b = _record("a"), _record("b")
        cache = _cache(Ok([a, b]))
        await cache.load()

        assert await cache.remove("a") is True
        assert cache.records == (b,)
        assert cache.get("a") is None
        assert cache.version == 2

    async def test_remove_missing_is_noop(self) -> None:
        a = _record("a")
        cache = _cache(Ok([a]))
        await cache.load()

        assert await cache.remove("zzz") is False
        assert cache.records == (a,)
        assert cache.version == 1

    async def test_snapshot_unaffected_by_later_writes(self) -> None:
        a, b = _record("a"), _record("b")
        cache = _cache(Ok([a, b]))
        await cache.load()
        snapshot = cache.records

        await cache.remove("a")

        assert snapshot == (a, b)


class TestUpsertProjection:
    async def test_upserted_record_appears_once_unchanged(self) -> None:
        a, b = _record("a"), _record("b")
        cache = _cache(Ok([a, b]))
        await cache.load()
        hired = _record("b", status="Hired", name="Bobby")

        await cache.upsert(hired)
        view = project(cache.records, FilterCriteria())

        matching = [r for r in view if r.id == "b"]
        assert matching == [hired]
        assert matching[0].model_dump() == hired.model_dump()
