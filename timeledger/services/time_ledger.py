from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from timeledger.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from timeledger.core.roles import Caller
from timeledger.services.entities import (
    APPROVAL_APPROVED,
    APPROVAL_PENDING,
    APPROVAL_REJECTED,
    BREAK_TYPES,
    ENTRY_SOURCES,
    ENTRY_STATUSES,
    OPEN_STATUSES,
    STATUS_PAUSED,
    STATUS_RUNNING,
    STATUS_STOPPED,
    Approval,
    BreakRecord,
    EditInfo,
    TimeEntryRecord,
)
from timeledger.services.project_directory import ProjectDirectory
from timeledger.services.repository import EntryFilters, TimeEntryRepository
from timeledger.services.time_math import as_utc, classify_activity, elapsed_seconds, utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

UPDATABLE_FIELDS = frozenset(
    {"description", "project_id", "task_id", "tags", "billable", "rate", "start_time", "end_time"}
)
DERIVED_FIELDS = frozenset({"status", "duration"})


def _normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    if not tags:
        return []
    return sorted({str(t).strip() for t in tags if str(t).strip()})


def _to_rate(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        rate = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError("rate must be a number") from exc
    if rate < 0:
        raise ValidationError("rate must not be negative")
    return rate


def _close_break(item: BreakRecord, now: datetime) -> None:
    item.end_time = max(now, item.start_time)
    item.duration = elapsed_seconds(item.start_time, item.end_time)


def _derive(record: TimeEntryRecord) -> None:
    """Recompute duration and activity fields from timestamps and counters."""
    record.activity_total = int(record.keyboard_count) + int(record.mouse_count)

    if record.end_time is None:
        record.duration = None
        record.activity_level = None
        return

    record.duration = elapsed_seconds(record.start_time, record.end_time)
    if record.status == STATUS_STOPPED:
        record.activity_level = classify_activity(record.keyboard_count, record.mouse_count, record.duration)
    else:
        record.activity_level = None


def _log_extra(record: TimeEntryRecord, **kw: Any) -> Dict[str, Any]:
    extra = {
        "time_entry_id": record.time_entry_id,
        "user_id": record.user_id,
        "company_id": record.company_id,
        "status": record.status,
    }
    extra.update(kw)
    return extra


class TimeEntryLedger:
    """
    Time-entry state machine over an injected repository.

    running -> paused -> running ... -> stopped. Manual entries start stopped.
    All timestamps handed out are aware UTC datetimes taken from the clock.
    """

    def __init__(
        self,
        repository: TimeEntryRepository,
        *,
        clock: Optional[Clock] = None,
        projects: Optional[ProjectDirectory] = None,
    ) -> None:
        self.repository = repository
        self.projects = projects
        self._clock = clock or utc_now

    def _now(self) -> datetime:
        return as_utc(self._clock())

    @staticmethod
    def _require_identity(caller: Caller) -> None:
        if not caller.user_id or caller.company_id is None:
            raise ValidationError("user_id and company_id are required")

    def _owned_entry(self, caller: Caller, time_entry_id: str, statuses: Iterable[str]) -> TimeEntryRecord:
        record = self.repository.get(str(time_entry_id))
        if (
            record is None
            or record.company_id != caller.company_id
            or record.user_id != caller.user_id
            or record.status not in tuple(statuses)
        ):
            raise NotFoundError("Time entry not found")
        return record

    def _scoped_entry(self, caller: Caller, time_entry_id: str) -> TimeEntryRecord:
        record = self.repository.get(str(time_entry_id))
        if record is None or record.company_id != caller.company_id:
            raise NotFoundError("Time entry not found")
        if record.user_id != caller.user_id and not caller.is_approver:
            raise NotFoundError("Time entry not found")
        return record

    def _check_associations(self, caller: Caller, project_id: Optional[str], task_id: Optional[str]) -> None:
        if self.projects is None:
            return
        if project_id is not None and not self.projects.project_in_company(caller.company_id, project_id):
            raise NotFoundError("Project not found")
        if task_id is not None and not self.projects.task_in_company(caller.company_id, task_id, project_id):
            raise NotFoundError("Task not found")

    def get(self, caller: Caller, time_entry_id: str) -> TimeEntryRecord:
        return self._scoped_entry(caller, time_entry_id)

    def current(self, caller: Caller) -> Optional[TimeEntryRecord]:
        return self.repository.find_open_for_user(caller.company_id, caller.user_id)

    def start(
        self,
        caller: Caller,
        *,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        billable: bool = True,
        rate: Any = None,
        source: str = "web",
    ) -> TimeEntryRecord:
        self._require_identity(caller)
        if source not in ENTRY_SOURCES:
            raise ValidationError(f"Unknown source: {source}")
        self._check_associations(caller, project_id, task_id)

        now = self._now()
        record = TimeEntryRecord(
            time_entry_id=str(uuid4()),
            user_id=str(caller.user_id),
            company_id=int(caller.company_id),
            start_time=now,
            status=STATUS_RUNNING,
            project_id=project_id,
            task_id=task_id,
            description=description,
            tags=_normalize_tags(tags),
            billable=bool(billable),
            rate=_to_rate(rate),
            source=source,
            created_at=now,
            updated_at=now,
        )

        try:
            created = self.repository.add_if_no_open_timer(record)
        except ConflictError:
            logger.warning(
                "Timer start rejected: open timer exists",
                extra={"user_id": caller.user_id, "company_id": caller.company_id},
            )
            raise

        logger.info("Time entry started", extra=_log_extra(created, project_id=project_id, task_id=task_id))
        return created

    def stop(self, caller: Caller, time_entry_id: str) -> TimeEntryRecord:
        record = self._owned_entry(caller, time_entry_id, OPEN_STATUSES)
        now = self._now()

        open_break = record.open_break()
        if open_break is not None:
            _close_break(open_break, now)

        record.end_time = max(now, record.start_time)
        record.status = STATUS_STOPPED
        record.updated_at = now
        _derive(record)

        saved = self.repository.save(record)
        logger.info("Time entry stopped", extra=_log_extra(saved, duration=saved.duration))
        return saved

    def pause(self, caller: Caller, time_entry_id: str, break_type: str = "short") -> TimeEntryRecord:
        if break_type not in BREAK_TYPES:
            raise ValidationError(f"Unknown break type: {break_type}")

        record = self._owned_entry(caller, time_entry_id, (STATUS_RUNNING,))
        now = self._now()

        record.status = STATUS_PAUSED
        record.breaks.append(BreakRecord(start_time=now, type=break_type))
        record.updated_at = now

        saved = self.repository.save(record)
        logger.info("Time entry paused", extra=_log_extra(saved, break_type=break_type))
        return saved

    def resume(self, caller: Caller, time_entry_id: str) -> TimeEntryRecord:
        record = self._owned_entry(caller, time_entry_id, (STATUS_PAUSED,))
        now = self._now()

        open_break = record.open_break()
        if open_break is not None:
            _close_break(open_break, now)

        record.status = STATUS_RUNNING
        record.updated_at = now

        saved = self.repository.save(record)
        logger.info("Time entry resumed", extra=_log_extra(saved))
        return saved

    def record_activity(
        self,
        caller: Caller,
        time_entry_id: str,
        *,
        keyboard: int = 0,
        mouse: int = 0,
    ) -> TimeEntryRecord:
        if int(keyboard) < 0 or int(mouse) < 0:
            raise ValidationError("Activity counts must not be negative")

        record = self._owned_entry(caller, time_entry_id, OPEN_STATUSES)
        record.keyboard_count += int(keyboard)
        record.mouse_count += int(mouse)
        record.updated_at = self._now()
        _derive(record)

        return self.repository.save(record)

    def create_manual(
        self,
        caller: Caller,
        *,
        start_time: datetime,
        end_time: datetime,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        description: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        billable: bool = True,
        rate: Any = None,
    ) -> TimeEntryRecord:
        self._require_identity(caller)
        if start_time is None or end_time is None:
            raise ValidationError("start_time and end_time are required")

        start = as_utc(start_time)
        end = as_utc(end_time)
        if start >= end:
            raise ValidationError("End time must be after start time")

        self._check_associations(caller, project_id, task_id)

        now = self._now()
        record = TimeEntryRecord(
            time_entry_id=str(uuid4()),
            user_id=str(caller.user_id),
            company_id=int(caller.company_id),
            start_time=start,
            end_time=end,
            status=STATUS_STOPPED,
            project_id=project_id,
            task_id=task_id,
            description=description,
            tags=_normalize_tags(tags),
            billable=bool(billable),
            rate=_to_rate(rate),
            manual=True,
            source="manual",
            created_at=now,
            updated_at=now,
        )
        _derive(record)

        try:
            created = self.repository.add_if_no_overlap(record)
        except ConflictError:
            logger.warning(
                "Manual entry rejected: overlap",
                extra={"user_id": caller.user_id, "company_id": caller.company_id},
            )
            raise
        logger.info("Manual time entry created", extra=_log_extra(created, duration=created.duration))
        return created

    def update(
        self,
        caller: Caller,
        time_entry_id: str,
        fields: Mapping[str, Any],
        *,
        reason: Optional[str] = None,
    ) -> TimeEntryRecord:
        fields = dict(fields)

        derived = sorted(DERIVED_FIELDS.intersection(fields))
        if derived:
            raise ValidationError(f"Field cannot be modified directly: {', '.join(derived)}")
        unknown = sorted(set(fields) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

        record = self._scoped_entry(caller, time_entry_id)
        if record.status != STATUS_STOPPED:
            raise InvalidStateError("Only stopped time entries can be updated")
        if record.approval.status == APPROVAL_APPROVED and not caller.is_approver:
            raise InvalidStateError("Approved time entries cannot be edited")

        if not fields:
            return record

        if "start_time" in fields and fields["start_time"] is None:
            raise ValidationError("start_time cannot be cleared")
        if "end_time" in fields and fields["end_time"] is None:
            raise ValidationError("end_time cannot be cleared on a stopped entry")
        for name in ("billable", "tags"):
            if name in fields and fields[name] is None:
                raise ValidationError(f"{name} cannot be null")

        new_start = as_utc(fields.get("start_time", record.start_time))
        new_end = as_utc(fields.get("end_time", record.end_time))
        if new_end < new_start:
            raise ValidationError("End time must be after start time")

        if "project_id" in fields or "task_id" in fields:
            self._check_associations(
                caller,
                fields.get("project_id", record.project_id),
                fields.get("task_id", record.task_id),
            )

        times_changed = new_start != record.start_time or new_end != record.end_time

        now = self._now()
        duration_at_call = record.duration

        for name, value in fields.items():
            if name == "tags":
                value = _normalize_tags(value)
            elif name == "rate":
                value = _to_rate(value)
            elif name == "billable":
                value = bool(value)
            elif name in ("start_time", "end_time"):
                value = as_utc(value)
            setattr(record, name, value)

        if not record.edited.is_edited:
            record.edited = EditInfo(
                is_edited=True,
                original_duration=duration_at_call,
                edited_by=caller.user_id,
                edited_at=now,
                reason=reason or "Manual edit",
            )

        record.updated_at = now
        _derive(record)

        if times_changed:
            saved = self.repository.save_if_no_overlap(record)
        else:
            saved = self.repository.save(record)
        logger.info("Time entry updated", extra=_log_extra(saved, fields=sorted(fields)))
        return saved

    def delete(self, caller: Caller, time_entry_id: str) -> None:
        record = self._scoped_entry(caller, time_entry_id)
        if record.status == STATUS_RUNNING:
            raise InvalidStateError("Cannot delete a running timer")
        if record.approval.status == APPROVAL_APPROVED and not caller.is_approver:
            raise InvalidStateError("Approved time entries cannot be deleted")

        self.repository.delete(record)
        logger.info("Time entry deleted", extra=_log_extra(record))

    def _decide(self, caller: Caller, time_entry_id: str, decision: str, notes: Optional[str]) -> TimeEntryRecord:
        if not caller.is_approver:
            raise AuthorizationError("Manager or admin role required")

        record = self.repository.get(str(time_entry_id))
        if record is None or record.company_id != caller.company_id:
            raise NotFoundError("Time entry not found")
        if record.user_id == caller.user_id:
            raise AuthorizationError("Time entries cannot be approved by their owner")
        if record.status != STATUS_STOPPED:
            raise InvalidStateError("Timer still running")
        if record.approval.status != APPROVAL_PENDING:
            raise InvalidStateError(f"Time entry already {record.approval.status}")

        now = self._now()
        record.approval = Approval(
            status=decision,
            approver_id=caller.user_id,
            approved_at=now,
            notes=notes,
        )
        record.updated_at = now

        saved = self.repository.save(record)
        logger.info("Time entry approval decided", extra=_log_extra(saved, decision=decision, approver_id=caller.user_id))
        return saved

    def approve(self, caller: Caller, time_entry_id: str, notes: Optional[str] = None) -> TimeEntryRecord:
        return self._decide(caller, time_entry_id, APPROVAL_APPROVED, notes)

    def reject(self, caller: Caller, time_entry_id: str, notes: Optional[str] = None) -> TimeEntryRecord:
        return self._decide(caller, time_entry_id, APPROVAL_REJECTED, notes)

    def approve_many(
        self,
        caller: Caller,
        time_entry_ids: Iterable[str],
        notes: Optional[str] = None,
    ) -> Dict[str, List[Any]]:
        if not caller.is_approver:
            raise AuthorizationError("Manager or admin role required")

        results: Dict[str, List[Any]] = {"approved": [], "failed": []}
        for entry_id in time_entry_ids:
            try:
                self.approve(caller, entry_id, notes)
            except LedgerError as exc:
                results["failed"].append({"id": str(entry_id), "reason": str(exc)})
                continue
            results["approved"].append(str(entry_id))

        logger.info(
            "Hours approval completed",
            extra={
                "approver_id": caller.user_id,
                "approved_count": len(results["approved"]),
                "failed_count": len(results["failed"]),
            },
        )
        return results

    def list_entries(
        self,
        caller: Caller,
        *,
        user_id: Optional[str] = None,
        project_id: Optional[str] = None,
        task_id: Optional[str] = None,
        status: Optional[str] = None,
        billable: Optional[bool] = None,
        started_from: Optional[datetime] = None,
        started_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[TimeEntryRecord]:
        if status is not None and status not in ENTRY_STATUSES:
            raise ValidationError(f"Unknown status: {status}")

        # employees only ever see their own entries
        if not caller.is_approver:
            user_id = caller.user_id

        filters = EntryFilters(
            company_id=caller.company_id,
            user_id=user_id,
            project_id=project_id,
            task_id=task_id,
            status=status,
            billable=billable,
            started_from=started_from,
            started_to=started_to,
        )
        return self.repository.list_entries(filters, limit=limit, offset=offset)

    def payroll_entries(
        self,
        company_id: int,
        period_start: datetime,
        period_end: datetime,
        user_id: Optional[str] = None,
    ) -> List[TimeEntryRecord]:
        rows = self.repository.find_for_period(company_id, period_start, period_end, user_id=user_id)
        return [r for r in rows if r.is_payroll_eligible]

    def project_entries(self, caller: Caller, project_id: str) -> List[TimeEntryRecord]:
        """Every entry logged against the project, across all users of the caller's company."""
        self._check_associations(caller, project_id, None)
        return self.repository.find_for_project(caller.company_id, project_id)
