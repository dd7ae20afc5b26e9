"""Filter chain projecting the record cache onto the visible table rows.

One callable per FilterCriteria axis; only axes with a value are active:
  1. SearchQueryFilter     : substring, any of name/email/position/status
  2. RoleFilter            : exact position, case-insensitive
  3. StatusFilter          : exact status, case-insensitive
  4. ApplicationDateFilter : same calendar day
  5. InterviewDateFilter   : same calendar day; no interview date never matches

Every filter is pure and keeps input order, so the chain is a stable subset
of the cache regardless of the order the filters run in.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import date
from typing import Any

from src.core.schemas import ApplicantRecord, FilterCriteria
from src.records.cache import RecordCache

logger = logging.getLogger(__name__)

# A filter is a callable that takes records and returns a subset.
Filter = Callable[[list[ApplicantRecord]], list[ApplicantRecord]]


class SearchQueryFilter:
    """Keep records whose name, email, position or status contains the query (case-insensitive).

    A blank query is a no-op.
    """

    def __init__(self, query: str) -> None:
        self._query = query.lower() if query.strip() else ""

    def __call__(self, records: list[ApplicantRecord]) -> list[ApplicantRecord]:
        if not self._query:
            return records
        result = [r for r in records if self._matches(r)]
        _log_removed("SearchQueryFilter", records, result)
        return result

    def _matches(self, record: ApplicantRecord) -> bool:
        fields = (record.full_name, record.email, record.position, record.status)
        return any(self._query in (value or "").lower() for value in fields)


class RoleFilter:
    """Keep records whose position equals the role, ignoring case."""

    def __init__(self, role: str) -> None:
        self._role = role.lower()

    def __call__(self, records: list[ApplicantRecord]) -> list[ApplicantRecord]:
        if not self._role:
            return records
        result = [r for r in records if (r.position or "").lower() == self._role]
        _log_removed("RoleFilter", records, result)
        return result


class StatusFilter:
    def __init__(self, status: str) -> None:
        self._status = status.lower()

    def __call__(self, records: list[ApplicantRecord]) -> list[ApplicantRecord]:
        if not self._status:
            return records
        result = [r for r in records if (r.status or "").lower() == self._status]
        _log_removed("StatusFilter", records, result)
        return result


class ApplicationDateFilter:
    """Keep records whose application falls on the given day (time of day ignored)."""

    def __init__(self, day: date | None) -> None:
        self._day = day

    def __call__(self, records: list[ApplicantRecord]) -> list[ApplicantRecord]:
        if self._day is None:
            return records
        result = [r for r in records if _same_day(r.date_of_application, self._day)]
        _log_removed("ApplicationDateFilter", records, result)
        return result


class InterviewDateFilter:
    """Keep records interviewed on the given day. Records without an interview never match."""

    def __init__(self, day: date | None) -> None:
        self._day = day

    def __call__(self, records: list[ApplicantRecord]) -> list[ApplicantRecord]:
        if self._day is None:
            return records
        result = [r for r in records if _same_day(r.interview_date, self._day)]
        _log_removed("InterviewDateFilter", records, result)
        return result


def build_filters(criteria: FilterCriteria) -> list[Filter]:
    """Build the chain for the active axes of criteria (empty axes are skipped)."""
    filters: list[Filter] = []
    if criteria.search_query.strip():
        filters.append(SearchQueryFilter(criteria.search_query))
    if criteria.role:
        filters.append(RoleFilter(criteria.role))
    if criteria.status:
        filters.append(StatusFilter(criteria.status))
    if criteria.application_date is not None:
        filters.append(ApplicationDateFilter(criteria.application_date))
    if criteria.interview_date is not None:
        filters.append(InterviewDateFilter(criteria.interview_date))
    return filters


def run_filter_chain(
    records: list[ApplicantRecord],
    filters: list[Filter],
) -> list[ApplicantRecord]:
    """Apply filters in order, returning the surviving records."""
    result = records
    for f in filters:
        result = f(result)
    return result


def project(
    records: Sequence[ApplicantRecord],
    criteria: FilterCriteria,
) -> list[ApplicantRecord]:
    """The records that satisfy every active axis of criteria, in their input order."""
    return run_filter_chain(list(records), build_filters(criteria))


class FilterEngine:
    """Holds the current criteria and derives the filtered view of a RecordCache.

    The view is recomputed whenever the criteria or the cache change; the last
    projection is memoized on (cache version, criteria).
    """

    def __init__(self, cache: RecordCache, criteria: FilterCriteria | None = None) -> None:
        self._cache = cache
        self._criteria = criteria or FilterCriteria()
        self._memo_key: tuple[int, FilterCriteria] | None = None
        self._memo: list[ApplicantRecord] = []

    @property
    def criteria(self) -> FilterCriteria:
        return self._criteria

    def set_criteria(self, criteria: FilterCriteria) -> None:
        self._criteria = criteria

    def update(self, **axes: Any) -> FilterCriteria:
        """Change some axes, keeping the others. Returns the new criteria."""
        unknown = set(axes) - set(FilterCriteria.model_fields)
        if unknown:
            msg = f"unknown filter axes: {sorted(unknown)}"
            raise ValueError(msg)
        data = self._criteria.model_dump()
        data.update(axes)
        self._criteria = FilterCriteria.model_validate(data)
        return self._criteria

    def clear(self) -> FilterCriteria:
        self._criteria = FilterCriteria()
        return self._criteria

    def view(self) -> list[ApplicantRecord]:
        key = (self._cache.version, self._criteria)
        if key != self._memo_key:
            self._memo = project(self._cache.records, self._criteria)
            self._memo_key = key
            logger.debug(
                "Filtered view: %d of %d applicants", len(self._memo), len(self._cache),
            )
        return list(self._memo)


def _same_day(value: Any, day: date) -> bool:
    if value is None:
        return False
    return value.date() == day


def _log_removed(name: str, before: list[ApplicantRecord], after: list[ApplicantRecord]) -> None:
    removed = len(before) - len(after)
    if removed:
        logger.debug("%s: removed %d applicants", name, removed)
