from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_STOPPED = "stopped"

OPEN_STATUSES = (STATUS_RUNNING, STATUS_PAUSED)
ENTRY_STATUSES = (STATUS_RUNNING, STATUS_PAUSED, STATUS_STOPPED)

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"

BREAK_TYPES = ("short", "lunch", "other")
ENTRY_SOURCES = ("web", "desktop", "mobile", "api", "manual")


@dataclass
class BreakRecord:
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    type: str = "short"

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass
class Approval:
    status: str = APPROVAL_PENDING
    approver_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass
class EditInfo:
    is_edited: bool = False
    original_duration: Optional[int] = None
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None
    reason: Optional[str] = None


@dataclass
class TimeEntryRecord:
    time_entry_id: str
    user_id: str
    company_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    status: str = STATUS_RUNNING

    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    billable: bool = True
    rate: Optional[Decimal] = None

    keyboard_count: int = 0
    mouse_count: int = 0
    activity_total: int = 0
    activity_level: Optional[str] = None

    breaks: List[BreakRecord] = field(default_factory=list)
    approval: Approval = field(default_factory=Approval)
    edited: EditInfo = field(default_factory=EditInfo)

    manual: bool = False
    source: str = "web"
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_payroll_eligible(self) -> bool:
        return self.status == STATUS_STOPPED and self.approval.status == APPROVAL_APPROVED

    def open_break(self) -> Optional[BreakRecord]:
        if self.breaks and self.breaks[-1].is_open:
            return self.breaks[-1]
        return None
