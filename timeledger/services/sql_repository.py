from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from timeledger.core.errors import ConflictError, NotFoundError
from timeledger.models.time_entry import TimeEntry
from timeledger.models.time_entry_break import TimeEntryBreak
from timeledger.models.time_entry_user_lock import TimeEntryUserLock
from timeledger.services.entities import (
    OPEN_STATUSES,
    Approval,
    BreakRecord,
    EditInfo,
    TimeEntryRecord,
)
from timeledger.services.repository import OVERLAP_MESSAGE, EntryFilters
from timeledger.services.time_math import as_utc


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    # columns hold naive UTC
    if value is None:
        return None
    return as_utc(value).replace(tzinfo=None)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: TimeEntry) -> TimeEntryRecord:
    return TimeEntryRecord(
        time_entry_id=row.time_entry_id,
        user_id=row.user_id,
        company_id=int(row.company_id),
        start_time=_aware(row.start_time),
        end_time=_aware(row.end_time),
        duration=row.duration,
        status=row.status,
        project_id=row.project_id,
        task_id=row.task_id,
        description=row.description,
        tags=list(row.tags or []),
        billable=bool(row.billable),
        rate=None if row.rate is None else Decimal(row.rate),
        keyboard_count=int(row.keyboard_count or 0),
        mouse_count=int(row.mouse_count or 0),
        activity_total=int(row.activity_total or 0),
        activity_level=row.activity_level,
        breaks=[
            BreakRecord(
                start_time=_aware(b.start_time),
                end_time=_aware(b.end_time),
                duration=b.duration,
                type=b.type,
            )
            for b in row.breaks
        ],
        approval=Approval(
            status=row.approval_status,
            approver_id=row.approver_id,
            approved_at=_aware(row.approved_at),
            notes=row.approval_notes,
        ),
        edited=EditInfo(
            is_edited=bool(row.is_edited),
            original_duration=row.original_duration,
            edited_by=row.edited_by,
            edited_at=_aware(row.edited_at),
            reason=row.edit_reason,
        ),
        manual=bool(row.manual),
        source=row.source,
        version=int(row.version),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _apply(row: TimeEntry, record: TimeEntryRecord) -> None:
    row.company_id = int(record.company_id)
    row.user_id = str(record.user_id)
    row.project_id = record.project_id
    row.task_id = record.task_id
    row.start_time = _naive(record.start_time)
    row.end_time = _naive(record.end_time)
    row.duration = record.duration
    row.status = record.status
    row.description = record.description
    row.tags = list(record.tags)
    row.billable = bool(record.billable)
    row.rate = record.rate
    row.keyboard_count = int(record.keyboard_count)
    row.mouse_count = int(record.mouse_count)
    row.activity_total = int(record.activity_total)
    row.activity_level = record.activity_level

    row.approval_status = record.approval.status
    row.approver_id = record.approval.approver_id
    row.approved_at = _naive(record.approval.approved_at)
    row.approval_notes = record.approval.notes

    row.is_edited = bool(record.edited.is_edited)
    row.original_duration = record.edited.original_duration
    row.edited_by = record.edited.edited_by
    row.edited_at = _naive(record.edited.edited_at)
    row.edit_reason = record.edited.reason

    row.manual = bool(record.manual)
    row.source = record.source
    if record.created_at is not None:
        row.created_at = _naive(record.created_at)
    if record.updated_at is not None:
        row.updated_at = _naive(record.updated_at)

    existing = list(row.breaks)
    for position, item in enumerate(record.breaks):
        if position < len(existing):
            b = existing[position]
        else:
            b = TimeEntryBreak(position=position)
            row.breaks.append(b)
        b.start_time = _naive(item.start_time)
        b.end_time = _naive(item.end_time)
        b.duration = item.duration
        b.type = item.type
    del row.breaks[len(record.breaks):]


OPEN_TIMER_MESSAGE = "You already have a running timer. Please stop it first."


class SqlTimeEntryRepository:
    """
    SQLAlchemy-backed repository.

    Flushes but never commits; the caller owns the transaction. Each write
    runs in a savepoint, so a ConflictError leaves the session usable for
    the next write.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _row(self, time_entry_id: str) -> Optional[TimeEntry]:
        return (
            self.db.query(TimeEntry)
            .filter(TimeEntry.time_entry_id == str(time_entry_id))
            .one_or_none()
        )

    def _lock_user(self, company_id: int, user_id: str) -> None:
        """Hold the user's lock row until the caller's transaction ends."""
        key = {"company_id": int(company_id), "user_id": str(user_id)}
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(TimeEntryUserLock).values(**key).on_conflict_do_nothing(
                index_elements=["company_id", "user_id"]
            )
            self.db.execute(stmt)
        elif dialect == "sqlite":
            stmt = sqlite_insert(TimeEntryUserLock).values(**key).on_conflict_do_nothing(
                index_elements=["company_id", "user_id"]
            )
            self.db.execute(stmt)

        lock = (
            self.db.query(TimeEntryUserLock)
            .filter_by(**key)
            .with_for_update()
            .one_or_none()
        )
        if lock is None:
            lock = TimeEntryUserLock(**key)
            self.db.add(lock)
        # the write takes the database lock where FOR UPDATE is a no-op (sqlite)
        lock.locked_at = datetime.utcnow()
        self.db.flush()

    def get(self, time_entry_id: str) -> Optional[TimeEntryRecord]:
        row = self._row(time_entry_id)
        return None if row is None else _to_record(row)

    def add(self, record: TimeEntryRecord) -> TimeEntryRecord:
        row = TimeEntry(time_entry_id=str(record.time_entry_id))
        _apply(row, record)
        try:
            with self.db.begin_nested():
                self.db.add(row)
                self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("Time entry conflicts with an existing entry") from exc
        return _to_record(row)

    def add_if_no_open_timer(self, record: TimeEntryRecord) -> TimeEntryRecord:
        self._lock_user(record.company_id, record.user_id)
        if self.find_open_for_user(record.company_id, record.user_id) is not None:
            raise ConflictError(OPEN_TIMER_MESSAGE)
        # uq_time_entries_open_timer still backs this for writers that skip the lock
        try:
            return self.add(record)
        except ConflictError as exc:
            raise ConflictError(OPEN_TIMER_MESSAGE) from exc

    def add_if_no_overlap(self, record: TimeEntryRecord) -> TimeEntryRecord:
        self._lock_user(record.company_id, record.user_id)
        if self.find_overlapping(record.company_id, record.user_id, record.start_time, record.end_time):
            raise ConflictError(OVERLAP_MESSAGE)
        return self.add(record)

    def save(self, record: TimeEntryRecord) -> TimeEntryRecord:
        row = self._row(record.time_entry_id)
        if row is None:
            raise NotFoundError("Time entry not found")
        if int(row.version) != int(record.version):
            raise ConflictError("Time entry was modified concurrently")

        try:
            with self.db.begin_nested():
                _apply(row, record)
                self.db.flush()
        except StaleDataError as exc:
            raise ConflictError("Time entry was modified concurrently") from exc
        except IntegrityError as exc:
            raise ConflictError("Time entry conflicts with an existing entry") from exc
        return _to_record(row)

    def save_if_no_overlap(self, record: TimeEntryRecord) -> TimeEntryRecord:
        self._lock_user(record.company_id, record.user_id)
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
        row = self._row(record.time_entry_id)
        if row is None:
            return
        self.db.delete(row)
        self.db.flush()

    def find_open_for_user(self, company_id: int, user_id: str) -> Optional[TimeEntryRecord]:
        row = (
            self.db.query(TimeEntry)
            .filter(
                TimeEntry.company_id == int(company_id),
                TimeEntry.user_id == str(user_id),
                TimeEntry.status.in_(OPEN_STATUSES),
            )
            .order_by(TimeEntry.start_time.desc())
            .first()
        )
        return None if row is None else _to_record(row)

    def find_overlapping(
        self,
        company_id: int,
        user_id: str,
        start: datetime,
        end: datetime,
        exclude_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]:
        q = self.db.query(TimeEntry).filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.user_id == str(user_id),
            TimeEntry.start_time < _naive(end),
            or_(TimeEntry.end_time.is_(None), TimeEntry.end_time > _naive(start)),
        )
        if exclude_id is not None:
            q = q.filter(TimeEntry.time_entry_id != str(exclude_id))

        rows = q.order_by(TimeEntry.start_time.asc(), TimeEntry.time_entry_id.asc()).all()
        return [_to_record(r) for r in rows]

    def find_for_period(
        self,
        company_id: int,
        period_start: datetime,
        period_end: datetime,
        user_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]:
        q = self.db.query(TimeEntry).filter(
            TimeEntry.company_id == int(company_id),
            TimeEntry.start_time >= _naive(period_start),
            TimeEntry.start_time < _naive(period_end),
        )
        if user_id is not None:
            q = q.filter(TimeEntry.user_id == str(user_id))

        rows = q.order_by(TimeEntry.start_time.asc(), TimeEntry.time_entry_id.asc()).all()
        return [_to_record(r) for r in rows]

    def find_for_project(self, company_id: int, project_id: str) -> List[TimeEntryRecord]:
        rows = (
            self.db.query(TimeEntry)
            .filter(
                TimeEntry.company_id == int(company_id),
                TimeEntry.project_id == str(project_id),
            )
            .order_by(TimeEntry.start_time.asc(), TimeEntry.time_entry_id.asc())
            .all()
        )
        return [_to_record(r) for r in rows]

    def list_entries(self, filters: EntryFilters, limit: int = 50, offset: int = 0) -> List[TimeEntryRecord]:
        q = self.db.query(TimeEntry).filter(TimeEntry.company_id == int(filters.company_id))

        if filters.user_id is not None:
            q = q.filter(TimeEntry.user_id == str(filters.user_id))
        if filters.project_id is not None:
            q = q.filter(TimeEntry.project_id == str(filters.project_id))
        if filters.task_id is not None:
            q = q.filter(TimeEntry.task_id == str(filters.task_id))
        if filters.status is not None:
            q = q.filter(TimeEntry.status == str(filters.status))
        if filters.billable is not None:
            q = q.filter(TimeEntry.billable == bool(filters.billable))
        if filters.started_from is not None:
            q = q.filter(TimeEntry.start_time >= _naive(filters.started_from))
        if filters.started_to is not None:
            q = q.filter(TimeEntry.start_time <= _naive(filters.started_to))

        rows = (
            q.order_by(TimeEntry.start_time.desc(), TimeEntry.time_entry_id.desc())
            .offset(int(offset))
            .limit(int(limit))
            .all()
        )
        return [_to_record(r) for r in rows]
