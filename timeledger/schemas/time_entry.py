from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from timeledger.services.entities import TimeEntryRecord
from timeledger.services.time_math import billable_amount, format_duration, money

BreakType = Literal["short", "lunch", "other"]
EntrySource = Literal["web", "desktop", "mobile", "api"]


class StartTimerRequest(BaseModel):
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    billable: bool = True
    rate: Optional[Decimal] = Field(default=None, ge=0)
    source: EntrySource = "web"


class ManualEntryRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    billable: bool = True
    rate: Optional[Decimal] = Field(default=None, ge=0)


class PauseRequest(BaseModel):
    break_type: BreakType = "short"


class ActivityRequest(BaseModel):
    keyboard: int = Field(default=0, ge=0)
    mouse: int = Field(default=0, ge=0)


class UpdateEntryRequest(BaseModel):
    """Only the fields present in the body are applied."""

    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = None
    project_id: Optional[str] = None
    task_id: Optional[str] = None
    tags: Optional[List[str]] = None
    billable: Optional[bool] = None
    rate: Optional[Decimal] = Field(default=None, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    edit_reason: Optional[str] = None

    # accepted so the ledger can reject them explicitly
    status: Optional[str] = None
    duration: Optional[int] = None


class BreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_time: datetime
    end_time: Optional[datetime]
    duration: Optional[int]
    type: str


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    approver_id: Optional[str]
    approved_at: Optional[datetime]
    notes: Optional[str]


class EditInfoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_edited: bool
    original_duration: Optional[int]
    edited_by: Optional[str]
    edited_at: Optional[datetime]
    reason: Optional[str]


class ActivityResponse(BaseModel):
    keyboard: int
    mouse: int
    total: int
    level: Optional[str]


class TimeEntryResponse(BaseModel):
    time_entry_id: str
    user_id: str
    company_id: int
    project_id: Optional[str]
    task_id: Optional[str]
    status: str
    start_time: datetime
    end_time: Optional[datetime]
    duration: Optional[int]
    formatted_duration: str
    description: Optional[str]
    tags: List[str]
    billable: bool
    rate: Optional[Decimal]
    billable_amount: Decimal
    activity: ActivityResponse
    breaks: List[BreakResponse]
    approval: ApprovalResponse
    edited: EditInfoResponse
    manual: bool
    source: str
    version: int


class EntryTotals(BaseModel):
    count: int
    total_hours: Decimal
    billable_hours: Decimal
    billable_amount: Decimal


class TimeEntryListResponse(BaseModel):
    limit: int
    offset: int
    rows: List[TimeEntryResponse]
    totals: EntryTotals


def to_response(record: TimeEntryRecord) -> TimeEntryResponse:
    return TimeEntryResponse(
        time_entry_id=record.time_entry_id,
        user_id=record.user_id,
        company_id=record.company_id,
        project_id=record.project_id,
        task_id=record.task_id,
        status=record.status,
        start_time=record.start_time,
        end_time=record.end_time,
        duration=record.duration,
        formatted_duration=format_duration(record.duration),
        description=record.description,
        tags=list(record.tags),
        billable=record.billable,
        rate=record.rate,
        billable_amount=money(billable_amount(record.duration, record.billable, record.rate)),
        activity=ActivityResponse(
            keyboard=record.keyboard_count,
            mouse=record.mouse_count,
            total=record.activity_total,
            level=record.activity_level,
        ),
        breaks=[BreakResponse.model_validate(b) for b in record.breaks],
        approval=ApprovalResponse.model_validate(record.approval),
        edited=EditInfoResponse.model_validate(record.edited),
        manual=record.manual,
        source=record.source,
        version=record.version,
    )
