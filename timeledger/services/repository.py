from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from timeledger.core.errors import ConflictError
from timeledger.services.entities import TimeEntryRecord
from timeledger.services.time_math import as_utc

OVERLAP_MESSAGE = "Time entry overlaps with existing entry"


@dataclass(frozen=True)
class EntryFilters:
    company_id: int
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    status: Optional[str] = None
    billable: Optional[bool] = None
    started_from: Optional[datetime] = None
    started_to: Optional[datetime] = None


class TimeEntryRepository(Protocol):
    """
    Store contract used by the ledger.

    save() is optimistic: the record's version must match the stored one,
    otherwise ConflictError. add_if_no_open_timer(), add_if_no_overlap() and
    save_if_no_overlap() check and write atomically per user.
    """

    def get(self, time_entry_id: str) -> Optional[TimeEntryRecord]: ...

    def add(self, record: TimeEntryRecord) -> TimeEntryRecord: ...

    def add_if_no_open_timer(self, record: TimeEntryRecord) -> TimeEntryRecord: ...

    def add_if_no_overlap(self, record: TimeEntryRecord) -> TimeEntryRecord: ...

    def save(self, record: TimeEntryRecord) -> TimeEntryRecord: ...

    def save_if_no_overlap(self, record: TimeEntryRecord) -> TimeEntryRecord: ...

    def delete(self, record: TimeEntryRecord) -> None: ...

    def find_open_for_user(self, company_id: int, user_id: str) -> Optional[TimeEntryRecord]: ...

    def find_overlapping(
        self,
        company_id: int,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]: ...

    def find_for_period(
        self,
        company_id: int,
        period_start: datetime,
        period_end: datetime,
        user_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]: ...

    def find_for_project(self, company_id: int, project_id: str) -> List[TimeEntryRecord]: ...

    def list_entries(self, filters: EntryFilters, limit: int = 50, offset: int = 0) -> List[TimeEntryRecord]: ...


def _matches(record: TimeEntryRecord, filters: EntryFilters) -> bool:
    if record.company_id != filters.company_id:
        return False
    if filters.user_id is not None and record.user_id != filters.user_id:
        return False
    if filters.project_id is not None and record.project_id != filters.project_id:
        return False
    if filters.task_id is not None and record.task_id != filters.task_id:
        return False
    if filters.status is not None and record.status != filters.status:
        return False
    if filters.billable is not None and record.billable != filters.billable:
        return False
    if filters.started_from is not None and record.start_time < as_utc(filters.started_from):
        return False
    if filters.started_to is not None and record.start_time > as_utc(filters.started_to):
        return False
    return True


class InMemoryTimeEntryRepository:
    """Dict-backed store. Hands out copies so callers never mutate stored state."""

    def __init__(self) -> None:
        self._rows: Dict[str, TimeEntryRecord] = {}
        self._lock = threading.RLock()

    def get(self, time_entry_id: str) -> Optional[TimeEntryRecord]:
        with self._lock:
            row = self._rows.get(str(time_entry_id))
            return copy.deepcopy(row) if row is not None else None

    def add(self, record: TimeEntryRecord) -> TimeEntryRecord:
        with self._lock:
            if record.time_entry_id in self._rows:
                raise ConflictError("Time entry already exists")
            stored = copy.deepcopy(record)
            stored.version = 1
            self._rows[stored.time_entry_id] = stored
            return copy.deepcopy(stored)

    def add_if_no_open_timer(self, record: TimeEntryRecord) -> TimeEntryRecord:
        with self._lock:
            if self.find_open_for_user(record.company_id, record.user_id) is not None:
                raise ConflictError("You already have a running timer. Please stop it first.")
            return self.add(record)

    def add_if_no_overlap(self, record: TimeEntryRecord) -> TimeEntryRecord:
        with self._lock:
            if self.find_overlapping(record.company_id, record.user_id, record.start_time, record.end_time):
                raise ConflictError(OVERLAP_MESSAGE)
            return self.add(record)

    def save(self, record: TimeEntryRecord) -> TimeEntryRecord:
        with self._lock:
            current = self._rows.get(record.time_entry_id)
            if current is None or current.version != record.version:
                raise ConflictError("Time entry was modified concurrently")
            stored = copy.deepcopy(record)
            stored.version = current.version + 1
            self._rows[stored.time_entry_id] = stored
            return copy.deepcopy(stored)

    def save_if_no_overlap(self, record: TimeEntryRecord) -> TimeEntryRecord:
        with self._lock:
            overlapping = self.find_overlapping(
                record.company_id,
                record.user_id,
                record.start_time,
                record.end_time,
                exclude_id=record.time_entry_id,
            )
            if overlapping:
                raise ConflictError(OVERLAP_MESSAGE)
            return self.save(record)

    def delete(self, record: TimeEntryRecord) -> None:
        with self._lock:
            self._rows.pop(record.time_entry_id, None)

    def find_open_for_user(self, company_id: int, user_id: str) -> Optional[TimeEntryRecord]:
        with self._lock:
            for row in self._rows.values():
                if row.company_id == company_id and row.user_id == user_id and row.is_open:
                    return copy.deepcopy(row)
            return None

    def find_overlapping(
        self,
        company_id: int,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]:
        start = as_utc(start)
        end = as_utc(end)
        with self._lock:
            hits = [
                row
                for row in self._rows.values()
                if row.company_id == company_id
                and row.user_id == user_id
                and row.time_entry_id != exclude_id
                and row.start_time < end
                # open entries have no end yet; they extend to the right
                and (row.end_time is None or row.end_time > start)
            ]
            hits.sort(key=lambda r: (r.start_time, r.time_entry_id))
            return [copy.deepcopy(r) for r in hits]

    def find_for_period(
        self,
        company_id: int,
        period_start: datetime,
        period_end: datetime,
        user_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]:
        period_start = as_utc(period_start)
        period_end = as_utc(period_end)
        with self._lock:
            hits = [
                row
                for row in self._rows.values()
                if row.company_id == company_id
                and (user_id is None or row.user_id == user_id)
                and period_start <= row.start_time < period_end
            ]
            hits.sort(key=lambda r: (r.start_time, r.time_entry_id))
            return [copy.deepcopy(r) for r in hits]

    def find_for_project(self, company_id: int, project_id: str) -> List[TimeEntryRecord]:
        with self._lock:
            hits = [
                row
                for row in self._rows.values()
                if row.company_id == company_id and row.project_id == project_id
            ]
            hits.sort(key=lambda r: (r.start_time, r.time_entry_id))
            return [copy.deepcopy(r) for r in hits]

    def list_entries(self, filters: EntryFilters, limit: int = 50, offset: int = 0) -> List[TimeEntryRecord]:
        with self._lock:
            hits = [row for row in self._rows.values() if _matches(row, filters)]
            hits.sort(key=lambda r: (r.start_time, r.time_entry_id), reverse=True)
            return [copy.deepcopy(r) for r in hits[int(offset): int(offset) + int(limit)]]
