from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from timeledger.core import config
from timeledger.core.errors import ValidationError
from timeledger.services.entities import TimeEntryRecord
from timeledger.services.time_math import as_utc, hours, money


@dataclass(frozen=True)
class PayItem:
    type: str
    amount: Decimal


@dataclass(frozen=True)
class EmployeeRate:
    employee_id: str
    name: str
    hourly_rate: Optional[Decimal] = None
    overtime_rate: Optional[Decimal] = None
    currency: Optional[str] = None


PayItemLike = Union[PayItem, Mapping[str, Any]]


def week_start(moment: datetime) -> date:
    """Monday of the ISO week containing moment (UTC). Sunday belongs to the week before."""
    d = as_utc(moment).date()
    return d - timedelta(days=d.weekday())


def _pay_items(items: Iterable[PayItemLike]) -> List[PayItem]:
    out: List[PayItem] = []
    for item in items or ():
        if isinstance(item, PayItem):
            out.append(item)
            continue
        try:
            out.append(PayItem(type=str(item.get("type", "other")), amount=Decimal(str(item["amount"]))))
        except (KeyError, ArithmeticError, ValueError) as exc:
            raise ValidationError(f"Invalid pay item: {item!r}") from exc
    return out


def _eligible(entries: Iterable[TimeEntryRecord], period_start: datetime, period_end: datetime) -> List[TimeEntryRecord]:
    start = as_utc(period_start)
    end = as_utc(period_end)
    return [
        e
        for e in entries
        if e.is_payroll_eligible and e.duration is not None and start <= as_utc(e.start_time) < end
    ]


def weekly_seconds(entries: Iterable[TimeEntryRecord]) -> Dict[date, int]:
    buckets: Dict[date, int] = defaultdict(int)
    for entry in entries:
        buckets[week_start(entry.start_time)] += int(entry.duration or 0)
    return dict(buckets)


def calculate_payroll(
    entries: Iterable[TimeEntryRecord],
    *,
    period_start: datetime,
    period_end: datetime,
    hourly_rate: Union[Decimal, int, float, str],
    overtime_rate: Union[Decimal, int, float, str, None] = None,
    bonuses: Iterable[PayItemLike] = (),
    deductions: Iterable[PayItemLike] = (),
    currency: Optional[str] = None,
    employee_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Pure payroll aggregation for one employee over [period_start, period_end).

    Only stopped + approved entries starting inside the period count. Hours
    are bucketed per ISO week; anything above the weekly threshold is overtime.
    Sums are taken over integer seconds in sorted week order, so the result
    does not depend on input order.
    """
    if as_utc(period_end) <= as_utc(period_start):
        raise ValidationError("Period end must be after period start")

    rate = Decimal(str(hourly_rate))
    ot_rate = Decimal(str(overtime_rate)) if overtime_rate is not None else rate * config.overtime_multiplier()
    if rate < 0 or ot_rate < 0:
        raise ValidationError("Rates must not be negative")

    threshold = Decimal(config.overtime_threshold_hours())
    counted = _eligible(entries, period_start, period_end)

    regular_hours = Decimal("0")
    overtime_hours = Decimal("0")
    total_seconds = 0
    weeks: List[Dict[str, Any]] = []

    for start_of_week, seconds in sorted(weekly_seconds(counted).items()):
        week_hours = hours(seconds)
        total_seconds += seconds
        if week_hours > threshold:
            week_regular = threshold
            week_overtime = week_hours - threshold
        else:
            week_regular = week_hours
            week_overtime = Decimal("0")
        regular_hours += week_regular
        overtime_hours += week_overtime
        weeks.append(
            {
                "week_start": start_of_week.isoformat(),
                "hours": money(week_hours),
                "regular": money(week_regular),
                "overtime": money(week_overtime),
            }
        )

    regular_pay = regular_hours * rate
    overtime_pay = overtime_hours * ot_rate

    bonus_items = _pay_items(bonuses)
    deduction_items = _pay_items(deductions)
    bonus_total = sum((b.amount for b in bonus_items), Decimal("0"))
    deduction_total = sum((d.amount for d in deduction_items), Decimal("0"))

    gross_pay = regular_pay + overtime_pay + bonus_total
    net_pay = gross_pay - deduction_total

    return {
        "employee_id": employee_id,
        "period": {
            "start": as_utc(period_start).isoformat(),
            "end": as_utc(period_end).isoformat(),
        },
        "hours": {
            "regular": money(regular_hours),
            "overtime": money(overtime_hours),
            "total": money(hours(total_seconds)),
        },
        "weeks": weeks,
        "rates": {
            "regular": rate,
            "overtime": ot_rate,
        },
        "earnings": {
            "regular": money(regular_pay),
            "overtime": money(overtime_pay),
            "bonuses": [{"type": b.type, "amount": money(b.amount)} for b in bonus_items],
            "bonus_total": money(bonus_total),
            "gross": money(gross_pay),
        },
        "deductions": {
            "items": [{"type": d.type, "amount": money(d.amount)} for d in deduction_items],
            "total": money(deduction_total),
        },
        "net_pay": money(net_pay),
        "currency": (currency or config.default_currency()).upper(),
        "entries_count": len(counted),
    }


def payroll_summary(
    employees: Iterable[EmployeeRate],
    entries: Iterable[TimeEntryRecord],
    *,
    period_start: datetime,
    period_end: datetime,
) -> Dict[str, Any]:
    """Company-wide overview: hours and straight-time estimated pay per employee."""
    by_user: Dict[str, List[TimeEntryRecord]] = defaultdict(list)
    for entry in _eligible(entries, period_start, period_end):
        by_user[entry.user_id].append(entry)

    rows: List[Dict[str, Any]] = []
    for emp in sorted(employees, key=lambda e: (e.name, e.employee_id)):
        own = by_user.get(emp.employee_id, [])
        total_seconds = sum(int(e.duration or 0) for e in own)
        billable_seconds = sum(int(e.duration or 0) for e in own if e.billable)
        total_hours = money(hours(total_seconds))
        estimated = money(hours(total_seconds) * Decimal(emp.hourly_rate or 0))
        rows.append(
            {
                "employee_id": emp.employee_id,
                "name": emp.name,
                "hours": {
                    "total": total_hours,
                    "billable": money(hours(billable_seconds)),
                },
                "estimated_pay": estimated,
                "entries_count": len(own),
            }
        )

    return {
        "period": {
            "start": as_utc(period_start).isoformat(),
            "end": as_utc(period_end).isoformat(),
        },
        "summary": rows,
        "totals": {
            "employees": len(rows),
            "total_hours": sum((r["hours"]["total"] for r in rows), Decimal("0.00")),
            "total_billable_hours": sum((r["hours"]["billable"] for r in rows), Decimal("0.00")),
            "total_estimated_pay": sum((r["estimated_pay"] for r in rows), Decimal("0.00")),
        },
    }


def month_start(moment: datetime) -> date:
    return as_utc(moment).date().replace(day=1)


def shift_months(first_of_month: date, months: int) -> date:
    index = first_of_month.year * 12 + (first_of_month.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def history_window(as_of: datetime, months: int) -> Tuple[datetime, datetime]:
    """[start, end) covering the month of as_of and the months - 1 before it."""
    if months < 1:
        raise ValidationError("months must be at least 1")
    current = month_start(as_of)
    first = shift_months(current, -(months - 1))
    after = shift_months(current, 1)
    return (
        datetime(first.year, first.month, 1, tzinfo=timezone.utc),
        datetime(after.year, after.month, 1, tzinfo=timezone.utc),
    )


def payroll_history(
    entries: Iterable[TimeEntryRecord],
    *,
    hourly_rate: Union[Decimal, int, float, str, None],
    as_of: datetime,
    months: int = 12,
) -> Dict[str, Any]:
    """
    Straight-time monthly history for one employee, newest month first.

    Months without payroll-eligible hours are left out. Gross pay is an
    estimate at the regular rate; weekly overtime is only applied by
    calculate_payroll.
    """
    window_start, window_end = history_window(as_of, months)
    rate = Decimal(str(hourly_rate or 0))

    by_month: Dict[date, List[TimeEntryRecord]] = defaultdict(list)
    for entry in _eligible(entries, window_start, window_end):
        by_month[month_start(entry.start_time)].append(entry)

    rows: List[Dict[str, Any]] = []
    total_seconds = 0
    for first in sorted(by_month, reverse=True):
        own = by_month[first]
        seconds = sum(int(e.duration or 0) for e in own)
        if seconds <= 0:
            continue
        total_seconds += seconds
        after = shift_months(first, 1)
        rows.append(
            {
                "month": first.strftime("%Y-%m"),
                "period": {
                    "start": datetime(first.year, first.month, 1, tzinfo=timezone.utc).isoformat(),
                    "end": datetime(after.year, after.month, 1, tzinfo=timezone.utc).isoformat(),
                },
                "hours": money(hours(seconds)),
                "billable_hours": money(hours(sum(int(e.duration or 0) for e in own if e.billable))),
                "gross_pay": money(hours(seconds) * rate),
                "entries_count": len(own),
                "status": "calculated",
            }
        )

    return {
        "period": {
            "start": window_start.isoformat(),
            "end": window_end.isoformat(),
        },
        "months": rows,
        "totals": {
            "hours": money(hours(total_seconds)),
            "gross_pay": sum((r["gross_pay"] for r in rows), Decimal("0.00")),
            "entries_count": sum(r["entries_count"] for r in rows),
        },
    }
