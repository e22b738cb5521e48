from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class PayItemIn(BaseModel):
    type: str = "other"
    amount: Decimal


class PayItemOut(BaseModel):
    type: str
    amount: Decimal


class PayrollCalculateRequest(BaseModel):
    employee_id: str
    period_start: datetime
    period_end: datetime
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    overtime_rate: Optional[Decimal] = Field(default=None, ge=0)
    bonuses: List[PayItemIn] = Field(default_factory=list)
    deductions: List[PayItemIn] = Field(default_factory=list)


class PeriodOut(BaseModel):
    start: str
    end: str


class HoursOut(BaseModel):
    regular: Decimal
    overtime: Decimal
    total: Decimal


class WeekOut(BaseModel):
    week_start: str
    hours: Decimal
    regular: Decimal
    overtime: Decimal


class RatesOut(BaseModel):
    regular: Decimal
    overtime: Decimal


class EarningsOut(BaseModel):
    regular: Decimal
    overtime: Decimal
    bonuses: List[PayItemOut]
    bonus_total: Decimal
    gross: Decimal


class DeductionsOut(BaseModel):
    items: List[PayItemOut]
    total: Decimal


class PayrollCalculationResponse(BaseModel):
    employee_id: Optional[str]
    employee_name: Optional[str] = None
    period: PeriodOut
    hours: HoursOut
    weeks: List[WeekOut]
    rates: RatesOut
    earnings: EarningsOut
    deductions: DeductionsOut
    net_pay: Decimal
    currency: str
    entries_count: int


class SummaryHoursOut(BaseModel):
    total: Decimal
    billable: Decimal


class SummaryRow(BaseModel):
    employee_id: str
    name: str
    hours: SummaryHoursOut
    estimated_pay: Decimal
    entries_count: int


class SummaryTotals(BaseModel):
    employees: int
    total_hours: Decimal
    total_billable_hours: Decimal
    total_estimated_pay: Decimal


class PayrollSummaryResponse(BaseModel):
    period: PeriodOut
    summary: List[SummaryRow]
    totals: SummaryTotals


class ApproveHoursRequest(BaseModel):
    time_entry_ids: List[str] = Field(min_length=1)
    notes: Optional[str] = None


class ApprovalFailure(BaseModel):
    id: str
    reason: str


class ApproveHoursResponse(BaseModel):
    approved: List[str]
    failed: List[ApprovalFailure]


class DecisionRequest(BaseModel):
    notes: Optional[str] = None


class HistoryMonth(BaseModel):
    month: str
    period: PeriodOut
    hours: Decimal
    billable_hours: Decimal
    gross_pay: Decimal
    entries_count: int
    status: str


class HistoryTotals(BaseModel):
    hours: Decimal
    gross_pay: Decimal
    entries_count: int


class PayrollHistoryResponse(BaseModel):
    employee_id: str
    employee_name: str
    currency: str
    hourly_rate: Optional[Decimal]
    period: PeriodOut
    months: List[HistoryMonth]
    totals: HistoryTotals
