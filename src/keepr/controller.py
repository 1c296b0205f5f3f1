from __future__ import annotations

import sqlite3
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Iterator, Optional, Type

from pydantic import ValidationError

from .model import Backend
from .record import R, validate_record
from .shared import log_msg

Predicate = Callable[[Any], bool]
SortKey = str | Callable[[Any], Any]


class Period(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    CUSTOM = "custom"


def period_bounds(
    period: Period | str,
    today: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> tuple[Optional[date], Optional[date]]:
    """
    Inclusive (start, end) dates for a period; None means unbounded.

    week  -> the last seven days ending today
    month -> from the first of the current month
    year  -> from January 1 of the current year
    """
    period = Period(period)
    today = today or date.today()
    if period is Period.ALL:
        return None, None
    if period is Period.TODAY:
        return today, today
    if period is Period.WEEK:
        return today - timedelta(days=6), None
    if period is Period.MONTH:
        return today.replace(day=1), None
    if period is Period.YEAR:
        return today.replace(month=1, day=1), None
    if start and end and start > end:
        start, end = end, start
    return start, end


def as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def in_bounds(value: Optional[date | datetime], bounds) -> bool:
    if value is None:
        return False
    start, end = bounds
    d = as_date(value)
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def most_common(counts: Counter) -> Any:
    if not counts:
        return None
    return counts.most_common(1)[0][0]


def _getter(key: SortKey) -> Callable[[Any], Any]:
    if callable(key):
        return key

    def get(record):
        value = getattr(record, key)
        if isinstance(value, str):
            return value.casefold()
        if isinstance(value, Enum):
            return value.value
        return value

    return get


class RecordStore(Generic[R]):
    """
    An ordered in-memory collection of records backed by one persisted key.

    The collection is loaded once, at construction. Every mutation builds
    the new collection, hands all of it to the backend and only then
    replaces the in-memory list; when saving fails the mutation is dropped
    and the failure is logged.
    """

    def __init__(
        self,
        record_cls: Type[R],
        backend: Backend,
        key: str,
        limits: Optional[dict[str, Any]] = None,
    ):
        self.record_cls = record_cls
        self.backend = backend
        self.key = key
        self.limits = limits or {}
        self._records: list[R] = []
        self.load()

    # ---------------- persistence ----------------

    def load(self) -> int:
        records: list[R] = []
        for row in self.backend.load(self.key):
            try:
                records.append(self.record_cls.from_dict(row))
            except ValidationError as e:
                log_msg(f"skipping malformed {self.key} row {row.get('id')!r}: {e}")
        self._records = records
        return len(records)

    def _commit(self, records: list[R]) -> bool:
        try:
            self.backend.save(self.key, [r.to_dict() for r in records])
        except (TypeError, ValueError, sqlite3.Error, OSError) as e:
            log_msg(f"saving {self.key!r} failed, change discarded: {e}")
            return False
        self._records = records
        return True

    # ---------------- construction ----------------

    def new(self, **fields: Any) -> R:
        """Validate user input as a new record without storing it."""
        return validate_record(self.record_cls, fields, self.limits)

    def _index(self, record_id: str) -> int:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        raise KeyError(record_id)

    # ---------------- mutations ----------------

    def add(self, record: Optional[R] = None, **fields: Any) -> Optional[R]:
        if record is None:
            record = self.new(**fields)
        if self.get(record.id) is not None:
            raise ValueError(f"duplicate id {record.id} in {self.key}")
        return record if self._commit([*self._records, record]) else None

    def add_many(self, records: Iterable[R]) -> int:
        records = list(records)
        known = {r.id for r in self._records}
        fresh = [r for r in records if r.id not in known]
        if not fresh:
            return 0
        return len(fresh) if self._commit([*self._records, *fresh]) else 0

    def revised(self, record_id: str, **changes: Any) -> R:
        """Validate an edited copy of a stored record without storing it."""
        current = self._records[self._index(record_id)]
        data = current.model_dump()
        data.update(changes)
        data["id"] = current.id
        data["created"] = current.created
        data["modified"] = datetime.now()
        return validate_record(self.record_cls, data, self.limits)

    def update(self, record_id: str, **changes: Any) -> Optional[R]:
        updated = self.revised(record_id, **changes)
        records = list(self._records)
        records[self._index(record_id)] = updated
        return updated if self._commit(records) else None

    def replace(self, record: R) -> Optional[R]:
        """Swap in an edited copy of an existing record, keeping its position."""
        return self.update(record.id, **record.model_dump(exclude={"id", "created"}))

    def set_fields(self, record_id: str, **changes: Any) -> Optional[R]:
        """Change fields without re-running the submit-time rules."""
        index = self._index(record_id)
        updated = self._records[index].touched(**changes)
        records = list(self._records)
        records[index] = updated
        return updated if self._commit(records) else None

    def toggle(self, record_id: str, flag: str) -> Optional[R]:
        current = self._records[self._index(record_id)]
        value = getattr(current, flag)
        if not isinstance(value, bool):
            raise TypeError(f"{flag} is not a boolean field of {self.record_cls.__name__}")
        return self.set_fields(record_id, **{flag: not value})

    def delete(self, record_id: str) -> bool:
        records = [r for r in self._records if r.id != record_id]
        if len(records) == len(self._records):
            return False
        return self._commit(records)

    def delete_many(self, record_ids: Iterable[str]) -> int:
        doomed = set(record_ids)
        records = [r for r in self._records if r.id not in doomed]
        removed = len(self._records) - len(records)
        if not removed:
            return 0
        return removed if self._commit(records) else 0

    def delete_where(self, predicate: Predicate) -> int:
        return self.delete_many(r.id for r in self._records if predicate(r))

    def clear(self) -> bool:
        return self._commit([])

    def replace_all(self, records: Iterable[R]) -> bool:
        """Store `records` as the whole collection in a single save."""
        records = list(records)
        ids = [r.id for r in records]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate ids in {self.key}")
        return self._commit(records)

    # ---------------- queries ----------------

    def get(self, record_id: str) -> Optional[R]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def find(self, prefix: str) -> Optional[R]:
        """Record whose id starts with `prefix`, when exactly one does."""
        matches = [r for r in self._records if r.id.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None

    def all(self) -> list[R]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[R]:
        return iter(list(self._records))

    def __contains__(self, record_id: object) -> bool:
        return any(r.id == record_id for r in self._records)

    def filtered(
        self, *predicates: Predicate, records: Optional[Iterable[R]] = None
    ) -> list[R]:
        source = self._records if records is None else records
        return [r for r in source if all(p(r) for p in predicates)]

    def sorted_by(
        self,
        key: SortKey,
        descending: bool = False,
        records: Optional[Iterable[R]] = None,
    ) -> list[R]:
        """
        Stable sort; string keys compare case-insensitively and records
        missing the value always go last.
        """
        source = list(self._records if records is None else records)
        get = _getter(key)
        present = [r for r in source if get(r) is not None]
        missing = [r for r in source if get(r) is None]
        return sorted(present, key=get, reverse=descending) + missing

    def search(
        self, text: str, *fields: str, records: Optional[Iterable[R]] = None
    ) -> list[R]:
        needle = (text or "").strip().casefold()
        source = self._records if records is None else records
        if not needle:
            return list(source)

        def hit(record) -> bool:
            for field in fields:
                value = getattr(record, field, None)
                if value is not None and needle in str(value).casefold():
                    return True
            return False

        return [r for r in source if hit(r)]

    def in_period(
        self,
        field: str,
        period: Period | str,
        today: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        records: Optional[Iterable[R]] = None,
    ) -> list[R]:
        bounds = period_bounds(period, today, start, end)
        if bounds == (None, None):
            return list(self._records if records is None else records)
        return self.filtered(
            lambda r: in_bounds(getattr(r, field), bounds), records=records
        )

    def grouped_by_day(
        self, field: str, records: Optional[Iterable[R]] = None
    ) -> dict[date, list[R]]:
        grouped: dict[date, list[R]] = defaultdict(list)
        for record in self._records if records is None else records:
            value = getattr(record, field)
            if value is None:
                continue
            grouped[as_date(value)].append(record)
        return dict(sorted(grouped.items()))

    def count_by(
        self, key: SortKey, records: Optional[Iterable[R]] = None
    ) -> Counter:
        get = key if callable(key) else (lambda r: getattr(r, key))
        return Counter(
            get(r) for r in (self._records if records is None else records)
        )
